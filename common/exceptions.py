"""Custom exception classes for the replica engine and record store clients."""

from typing import Optional


class SyncError(Exception):
    """
    Base exception class for all sync-related errors.
    """
    pass


class RemoteUnavailableError(SyncError):
    """
    Raised when the remote record store cannot be reached or refuses the call
    (network failure, timeout, authentication failure, server error).
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotAuthorError(SyncError):
    """
    Raised when a user attempts to update or delete a record they did not author.
    """

    def __init__(self, record_id: str, author_id: Optional[str], caller_id: Optional[str]):
        super().__init__(
            f"Record {record_id} is owned by {author_id or 'an unknown author'}, "
            f"not {caller_id or 'an unresolved identity'}"
        )
        self.record_id = record_id
        self.author_id = author_id
        self.caller_id = caller_id


class RecordMissingRemoteRefError(SyncError):
    """
    Raised when a remote delete is requested for a record that was never pushed.
    """
    pass


class DecodeFailureError(SyncError):
    """
    Raised when a fetched remote record cannot be parsed into the local model.
    """
    pass


class RecordNotFoundError(SyncError):
    """
    Raised when a requested record does not exist in the local replica.
    """
    pass


class InvalidPayloadError(SyncError, ValueError):
    """
    Raised when a payload lacks the fields required by its record kind.
    """
    pass
