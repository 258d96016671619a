"""In-memory state of one replicated collection."""

import logging
from typing import Callable, Iterable, List, Optional, Tuple

from common.exceptions import RecordNotFoundError
from common.types import Record

logger = logging.getLogger(__name__)

Listener = Callable[['ReplicaState'], None]


class ReplicaState:
    """
    Ordered records of one collection plus the in-progress sync flag.

    Records are frozen, and ``records`` is a tuple, so listeners that receive
    the state cannot mutate it. All access happens on the event loop thread.
    """

    def __init__(self, name: str, records: Iterable[Record] = ()):
        self.name = name
        self._records: Tuple[Record, ...] = tuple(records)
        self._listeners: List[Listener] = []
        self.is_syncing = False

    @property
    def records(self) -> Tuple[Record, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def get(self, record_id: str) -> Optional[Record]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def require(self, record_id: str) -> Record:
        record = self.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"No record {record_id} in {self.name}")
        return record

    def replace(self, records: Iterable[Record]) -> None:
        self._records = tuple(records)
        self._publish()

    def append(self, record: Record) -> None:
        self._records = self._records + (record,)
        self._publish()

    def put(self, record: Record) -> bool:
        """
        Replace the record with the same id in place.

        Returns:
            False if no record with that id exists (state unchanged)
        """
        found = False
        updated = []
        for existing in self._records:
            if existing.id == record.id:
                updated.append(record)
                found = True
            else:
                updated.append(existing)
        if found:
            self._records = tuple(updated)
            self._publish()
        return found

    def remove(self, record_id: str) -> Optional[Record]:
        removed = self.get(record_id)
        if removed is None:
            return None
        self._records = tuple(r for r in self._records if r.id != record_id)
        self._publish()
        return removed

    def remove_where(self, predicate: Callable[[Record], bool]) -> List[Record]:
        removed = [r for r in self._records if predicate(r)]
        if removed:
            self._records = tuple(r for r in self._records if not predicate(r))
            self._publish()
        return removed

    def set_remote_ref(self, record_id: str, remote_ref: str) -> Optional[Record]:
        """
        Record the remote reference on the current local copy.

        last_modified is left untouched. Returns the updated record, or None
        when the record was deleted locally in the meantime.
        """
        current = self.get(record_id)
        if current is None:
            return None
        if current.remote_ref == remote_ref:
            return current
        updated = current.with_remote_ref(remote_ref)
        self.put(updated)
        return updated

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with this state after every change.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Listener failed on {self.name} update: {e}", exc_info=True)
