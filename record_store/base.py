"""Record store client contract.

This defines the interface that every remote record store backend must implement.
Currently supported:
- HttpRecordStoreClient: JSON over HTTP against a record store service
- InMemoryRecordStoreClient: process-local shared store for tests and offline use
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from common.types import Profile, Record, RecordKind, SaveReceipt
from record_store.change_feed import ChangeFeed


class RecordStoreClient(ABC):
    """
    Asynchronous access to the remote record store.

    Every method raises RemoteUnavailableError when the store cannot be
    reached or rejects the call.
    """

    @abstractmethod
    async def save(self, record: Record) -> SaveReceipt:
        """
        Upsert a record, uploading its attachment first if needed.

        Args:
            record: Record to push; keyed by remote_ref, else by id

        Returns:
            Remote reference of the stored record, plus the attachment's
            asset reference when one was uploaded
        """

    @abstractmethod
    async def fetch_all(
        self,
        kinds: Optional[Iterable[RecordKind]] = None,
        author_id: Optional[str] = None,
    ) -> List[Record]:
        """
        Fetch a full snapshot of remote records.

        Undecodable items are skipped; they never abort the batch.

        Args:
            kinds: Restrict to these kinds (all kinds when None)
            author_id: Restrict to records authored by this identity

        Returns:
            List of records with remote_ref set
        """

    @abstractmethod
    async def delete_by_id(self, remote_ref: str) -> None:
        """Delete one record. Deleting an already-absent record succeeds."""

    @abstractmethod
    async def delete_all_by_author(self, author_id: str) -> int:
        """Delete every record authored by author_id; returns the count deleted."""

    @abstractmethod
    async def current_author_id(self) -> str:
        """Identity of the signed-in user."""

    @abstractmethod
    async def fetch_attachment(self, ref: str) -> bytes:
        """Download attachment bytes by reference."""

    @abstractmethod
    async def save_profile(self, profile: Profile) -> str:
        """Upsert a profile; returns its remote reference."""

    @abstractmethod
    async def fetch_profiles(
        self,
        author_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> List[Profile]:
        """Fetch profiles by author and/or case-insensitive name."""

    @abstractmethod
    async def delete_profile(self, remote_ref: str) -> None:
        """Delete a profile by remote reference."""

    @abstractmethod
    async def subscribe(self, feed: ChangeFeed) -> None:
        """Register for change notifications delivered through feed."""

    async def close(self) -> None:
        """Release network resources."""
