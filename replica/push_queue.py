"""Persistent queue of record ids whose remote save still has to happen."""

import logging
from typing import List

from common.constants import PENDING_PUSHES_KEY_PREFIX
from replica.local_cache import LocalCache

logger = logging.getLogger(__name__)


class PendingPushQueue:
    """
    Ordered set of record ids awaiting a remote save.

    Ids are stored, not record copies: a retry always pushes the current local
    version of the record.
    """

    def __init__(self, name: str, cache: LocalCache):
        self.name = name
        self.cache = cache
        self._key = f"{PENDING_PUSHES_KEY_PREFIX}{name}"
        stored = cache.load(self._key)
        self._ids: List[str] = [i for i in stored if isinstance(i, str)] if isinstance(stored, list) else []
        if self._ids:
            logger.info(f"Restored {len(self._ids)} pending push(es) for {name}")

    def add(self, record_id: str) -> None:
        if record_id in self._ids:
            return
        self._ids.append(record_id)
        self._persist()

    def discard(self, record_id: str) -> None:
        if record_id not in self._ids:
            return
        self._ids.remove(record_id)
        self._persist()

    def ids(self) -> List[str]:
        return list(self._ids)

    def clear(self) -> None:
        if not self._ids:
            return
        self._ids = []
        self._persist()

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def _persist(self) -> None:
        self.cache.save(self._key, list(self._ids))
