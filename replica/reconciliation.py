"""
Reconciliation of a local replica with a remote snapshot.

Merge policy is last-writer-wins on ``last_modified``:
- a remote copy replaces the local one only when strictly newer (ties keep local)
- a local record absent remotely is kept only if it was never pushed
  (absence of a pushed record means it was deleted elsewhere)
- results are ordered by ``created_at``, then ``id``
"""

import logging
from dataclasses import dataclass
from typing import Collection, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from common.exceptions import RemoteUnavailableError
from common.serialization import record_from_dict, record_to_dict
from common.types import Record, RecordKind
from record_store.base import RecordStoreClient
from replica.identity import IdentityResolver
from replica.local_cache import LocalCache
from replica.push_queue import PendingPushQueue
from replica.state import ReplicaState

logger = logging.getLogger(__name__)


def sort_records(records: Iterable[Record]) -> List[Record]:
    return sorted(records, key=lambda r: (r.created_at, r.id))


@dataclass(frozen=True)
class MergeResult:
    """
    Outcome of one merge.

    Attributes:
        records: Merged collection, sorted by created_at then id
        remote_added: Ids present only remotely
        remote_won: Ids where the remote copy was strictly newer
        local_kept: Ids present on both sides where the local copy was kept
        pending_kept: Ids never pushed (or pushed mid-pass) kept despite remote absence
        tombstoned: Pushed ids dropped because the remote no longer has them
        local_ahead: Ids whose local copy is strictly newer than the remote copy
    """
    records: Tuple[Record, ...]
    remote_added: Tuple[str, ...] = ()
    remote_won: Tuple[str, ...] = ()
    local_kept: Tuple[str, ...] = ()
    pending_kept: Tuple[str, ...] = ()
    tombstoned: Tuple[str, ...] = ()
    local_ahead: Tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.remote_added or self.remote_won or self.tombstoned)

    def summary(self) -> str:
        return (
            f"records={len(self.records)} added={len(self.remote_added)} "
            f"updated={len(self.remote_won)} kept={len(self.local_kept)} "
            f"pending={len(self.pending_kept)} tombstoned={len(self.tombstoned)} "
            f"ahead={len(self.local_ahead)}"
        )


def merge_records(
    local: Sequence[Record],
    remote: Sequence[Record],
    keep_ids: Collection[str] = (),
) -> MergeResult:
    """
    Merge a local collection with a full remote snapshot.

    Pure and idempotent: merging the result with the same snapshot again
    yields the same records.

    Args:
        local: Current local records
        remote: Remote snapshot of the same collection
        keep_ids: Ids to keep when absent remotely even though they carry a
            remote_ref (records whose push landed after the snapshot was taken)

    Returns:
        MergeResult with the merged records and per-id classification
    """
    local_by_id: Dict[str, Record] = {r.id: r for r in local}
    merged: Dict[str, Record] = {}
    remote_ids: Set[str] = set()

    remote_added: List[str] = []
    remote_won: List[str] = []
    local_kept: List[str] = []
    local_ahead: List[str] = []

    for remote_record in remote:
        remote_ids.add(remote_record.id)
        local_record = local_by_id.get(remote_record.id)
        if local_record is None:
            merged[remote_record.id] = remote_record
            remote_added.append(remote_record.id)
        elif remote_record.last_modified > local_record.last_modified:
            merged[remote_record.id] = remote_record
            remote_won.append(remote_record.id)
        else:
            if not local_record.is_pushed and remote_record.is_pushed:
                # the save landed but its reply was lost
                local_record = local_record.with_remote_ref(remote_record.remote_ref)
            merged[remote_record.id] = local_record
            local_kept.append(remote_record.id)
            if local_record.last_modified > remote_record.last_modified:
                local_ahead.append(remote_record.id)

    pending_kept: List[str] = []
    tombstoned: List[str] = []
    for local_record in local:
        if local_record.id in remote_ids:
            continue
        if not local_record.is_pushed or local_record.id in keep_ids:
            merged[local_record.id] = local_record
            pending_kept.append(local_record.id)
        else:
            tombstoned.append(local_record.id)

    return MergeResult(
        records=tuple(sort_records(merged.values())),
        remote_added=tuple(remote_added),
        remote_won=tuple(remote_won),
        local_kept=tuple(local_kept),
        pending_kept=tuple(pending_kept),
        tombstoned=tuple(tombstoned),
        local_ahead=tuple(local_ahead),
    )


class ReconciliationEngine:
    """
    Owns one replicated collection: restore, sync passes, persistence and pushes.
    """

    def __init__(
        self,
        name: str,
        state: ReplicaState,
        client: RecordStoreClient,
        cache: LocalCache,
        identity: IdentityResolver,
        push_queue: PendingPushQueue,
        kinds: Iterable[RecordKind],
        author_scoped: bool = False,
        retry_pending_pushes: bool = False,
    ):
        """
        Initialize the engine.

        Args:
            name: Collection name, also its Local Cache key
            state: In-memory state of the collection
            client: Remote record store client
            cache: Local Cache
            identity: Identity resolver
            push_queue: Pending-push queue of this collection
            kinds: Record kinds stored in this collection
            author_scoped: Fetch only the current author's records
            retry_pending_pushes: Queue failed saves and retry them after each pass
        """
        self.name = name
        self.state = state
        self.client = client
        self.cache = cache
        self.identity = identity
        self.push_queue = push_queue
        self.kinds = tuple(RecordKind(k) for k in kinds)
        self.author_scoped = author_scoped
        self.retry_pending_pushes = retry_pending_pushes
        self.last_result: Optional[MergeResult] = None
        self._pushed_during_sync: Set[str] = set()

    def load(self) -> int:
        """
        Restore the collection from the Local Cache.

        Returns:
            Number of records restored (undecodable items are skipped)
        """
        stored = self.cache.load(self.name) or []
        records = []
        for item in stored:
            try:
                records.append(record_from_dict(item))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping undecodable cached record in {self.name}: {e}")
        self.state.replace(sort_records(records))
        logger.info(f"Restored {len(records)} record(s) into {self.name}")
        return len(records)

    def persist(self) -> None:
        self.cache.save(self.name, [record_to_dict(r) for r in self.state.records])

    async def sync(self) -> Optional[MergeResult]:
        """
        Run one reconciliation pass.

        A call made while a pass is running returns None immediately and is
        not queued. Remote failures abort the pass without touching local state.

        Returns:
            MergeResult of the pass, or None if the pass did not run to completion
        """
        if self.state.is_syncing:
            logger.debug(f"Sync of {self.name} already in progress, skipping")
            return None

        self.state.is_syncing = True
        self._pushed_during_sync = set()
        try:
            author_id = None
            if self.author_scoped:
                author_id = self.identity.current_author_id() or await self.identity.resolve()
                if author_id is None:
                    logger.warning(f"Sync of {self.name} skipped: identity unknown")
                    return None

            try:
                remote = await self.client.fetch_all(kinds=self.kinds, author_id=author_id)
            except RemoteUnavailableError as e:
                logger.warning(f"Sync of {self.name} aborted, fetch failed: {e}")
                return None

            # merge against the local state as it is now, after the fetch
            result = merge_records(self.state.records, remote, keep_ids=self._pushed_during_sync)
            self.state.replace(result.records)
            self.persist()

            for record_id in result.tombstoned:
                self.push_queue.discard(record_id)
            if self.retry_pending_pushes:
                for record_id in result.local_ahead:
                    self.push_queue.add(record_id)
                await self.drain_pending()

            self.last_result = result
            logger.info(f"Sync of {self.name} complete: {result.summary()}")
            return result
        finally:
            self.state.is_syncing = False
            self._pushed_during_sync = set()

    async def push_current(self, record_id: str) -> bool:
        """
        Push the current local copy of a record.

        On success the remote_ref and the uploaded attachment ref are
        recorded (last_modified unchanged) and persisted. On failure the id is queued for retry when retries are on.

        Returns:
            True if the remote save succeeded
        """
        record = self.state.get(record_id)
        if record is None:
            self.push_queue.discard(record_id)
            return False

        try:
            receipt = await self.client.save(record)
        except RemoteUnavailableError as e:
            logger.warning(f"Push of {record_id} in {self.name} failed: {e}")
            if self.retry_pending_pushes:
                self.push_queue.add(record_id)
            return False

        remote_ref = receipt.remote_ref
        if self.state.is_syncing:
            self._pushed_during_sync.add(record_id)
        current = self.state.set_remote_ref(record_id, remote_ref)
        logger.debug(f"Pushed {record_id} in {self.name} [remote_ref={remote_ref}]")
        if current is None:
            # deleted locally while the save was in flight
            self.push_queue.discard(record_id)
            try:
                await self.client.delete_by_id(remote_ref)
            except RemoteUnavailableError as e:
                logger.warning(f"Remote delete of {record_id} after late push failed: {e}")
            return True

        sent = record.payload.attachment
        if receipt.attachment_ref and sent is not None:
            uploaded = current.with_attachment_ref(sent, receipt.attachment_ref)
            if uploaded is not current:
                self.state.put(uploaded)
                current = uploaded
        self.persist()
        if current.last_modified == record.last_modified:
            self.push_queue.discard(record_id)
        return True

    async def drain_pending(self) -> int:
        """
        Retry queued pushes for ids still present locally.

        Returns:
            Number of successful pushes
        """
        pushed = 0
        for record_id in self.push_queue.ids():
            if self.state.get(record_id) is None:
                self.push_queue.discard(record_id)
                continue
            if await self.push_current(record_id):
                pushed += 1
        if pushed:
            logger.info(f"Retried {pushed} pending push(es) in {self.name}, {len(self.push_queue)} remaining")
        return pushed
