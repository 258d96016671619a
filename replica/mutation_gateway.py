"""
Local-first create/update/delete of replica records.

Every mutation is applied to the in-memory state and the Local Cache before
the remote leg starts, so the caller sees the change immediately. Remote
legs run as background tasks; their failures are logged and never undo the
local write.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import timedelta
from typing import Coroutine, Optional, Set

from common.exceptions import (
    InvalidPayloadError,
    NotAuthorError,
    RecordMissingRemoteRefError,
    RemoteUnavailableError,
)
from common.types import Payload, Record, RecordKind, new_record_id, utc_now
from replica.reconciliation import ReconciliationEngine

logger = logging.getLogger(__name__)


class MutationGateway:
    """Authorship-gated mutations of one replicated collection."""

    def __init__(self, engine: ReconciliationEngine):
        """
        Initialize the gateway.

        Args:
            engine: Engine owning the collection's state, cache, client and identity
        """
        self.engine = engine
        self.state = engine.state
        self.client = engine.client
        self.identity = engine.identity
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def _validate(self, kind: RecordKind, payload: Payload) -> None:
        if kind not in self.engine.kinds:
            raise InvalidPayloadError(f"{self.engine.name} does not store {kind.value} records")
        missing = payload.missing_fields(kind)
        if missing:
            raise InvalidPayloadError(f"{kind.value} payload is missing: {', '.join(missing)}")

    def _check_owner(self, record: Record) -> None:
        if not self.identity.owns(record):
            raise NotAuthorError(record.id, record.author_id, self.identity.current_author_id())

    @staticmethod
    def _require_remote_ref(record: Record) -> str:
        if record.remote_ref is None:
            raise RecordMissingRemoteRefError(f"Record {record.id} was never pushed")
        return record.remote_ref

    async def create(self, kind: RecordKind, owner_label: str, payload: Payload) -> Record:
        """
        Create a record locally and push it in the background.

        Args:
            kind: Record kind
            owner_label: Display-level owner ("person" name)
            payload: Kind-specific fields and optional attachment

        Returns:
            The new record (remote_ref is None until the push lands)

        Raises:
            InvalidPayloadError: If the payload lacks a field its kind requires
        """
        kind = RecordKind(kind)
        self._validate(kind, payload)

        now = utc_now()
        record = Record(
            id=new_record_id(),
            kind=kind,
            owner_label=owner_label,
            payload=payload,
            created_at=now,
            last_modified=now,
            author_id=self.identity.current_author_id(),
            author_name=self.identity.current_display_name() or owner_label,
        )
        self.state.append(record)
        self.engine.persist()
        logger.info(f"Created {kind.value} record {record.id} in {self.engine.name} [author_id={record.author_id}]")

        self._spawn(self.engine.push_current(record.id))
        return record

    async def update(self, record_id: str, payload: Payload) -> Record:
        """
        Replace the payload of an existing record.

        id, kind, created_at and remote_ref are preserved; last_modified is
        stamped strictly after its previous value.

        Raises:
            RecordNotFoundError: If the record is not in the replica
            NotAuthorError: If the caller is not the record's author
            InvalidPayloadError: If the payload lacks a required field
        """
        existing = self.state.require(record_id)
        self._check_owner(existing)
        self._validate(existing.kind, payload)

        stamp = max(utc_now(), existing.last_modified + timedelta(microseconds=1))
        updated = replace(existing, payload=payload, last_modified=stamp)
        self.state.put(updated)
        self.engine.persist()
        logger.info(f"Updated record {record_id} in {self.engine.name}")

        self._spawn(self.engine.push_current(record_id))
        return updated

    async def delete(self, record_id: str) -> Record:
        """
        Delete a record locally, then remotely if it was ever pushed.

        A failed remote delete is logged and not rolled back; the record may
        reappear at the next sync while the remote copy still exists.

        Returns:
            The removed record

        Raises:
            RecordNotFoundError: If the record is not in the replica
            NotAuthorError: If the caller is not the record's author
        """
        existing = self.state.require(record_id)
        self._check_owner(existing)

        self.state.remove(record_id)
        self.engine.persist()
        self.engine.push_queue.discard(record_id)

        try:
            remote_ref = self._require_remote_ref(existing)
        except RecordMissingRemoteRefError as e:
            logger.info(f"{e}; deleted from {self.engine.name} locally only")
            return existing

        logger.info(f"Deleted record {record_id} from {self.engine.name} [remote_ref={remote_ref}]")
        self._spawn(self._delete_remote(record_id, remote_ref))
        return existing

    async def delete_all_by_author(self, author_id: str) -> bool:
        """
        Remove every record of an author, remotely first.

        Local state is only cleared once the remote bulk delete succeeded, so
        a later sync cannot bring the records back.

        Returns:
            True on success; False if the remote leg failed (local state untouched)
        """
        await self.flush()
        try:
            deleted = await self.client.delete_all_by_author(author_id)
        except RemoteUnavailableError as e:
            logger.warning(f"Bulk delete for {author_id} in {self.engine.name} failed: {e}")
            return False

        removed = self.state.remove_where(lambda r: r.author_id == author_id)
        self.engine.persist()
        for record in removed:
            self.engine.push_queue.discard(record.id)
        logger.info(
            f"Deleted all records of {author_id} in {self.engine.name} "
            f"(remote={deleted}, local={len(removed)})"
        )
        return True

    async def flush(self) -> None:
        """Wait for every in-flight remote leg to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _delete_remote(self, record_id: str, remote_ref: str) -> None:
        try:
            await self.client.delete_by_id(remote_ref)
            logger.debug(f"Remote delete of {record_id} succeeded")
        except RemoteUnavailableError as e:
            logger.warning(f"Remote delete of {record_id} failed, not retried: {e}")

    def _spawn(self, coro: Coroutine) -> Optional[asyncio.Task]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Remote leg failed in {self.engine.name}: {error}", exc_info=error)
