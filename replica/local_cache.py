"""
Durable key/value cache backing the local replicas.

The whole cache is one JSON document on disk. It is a cache of remote state:
a missing or corrupt file means starting empty, and a failed write leaves the
in-memory copy authoritative for the rest of the process.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from common.constants import DEFAULT_CACHE_PATH

logger = logging.getLogger(__name__)


class LocalCache:
    """
    Thread-safe persistent key/value store.

    Values must be JSON-serializable. ``save`` replaces the whole value of a
    key and rewrites the file atomically (temp file + rename).
    """

    def __init__(self, cache_path: Optional[str] = DEFAULT_CACHE_PATH):
        """
        Initialize local cache.

        Args:
            cache_path: Path to JSON cache file; None keeps the cache in memory only
        """
        self._cache_path = Path(cache_path).expanduser() if cache_path else None
        self._cache_lock = threading.RLock()
        self._file_lock = threading.Lock()
        self._cache: Dict[str, Any] = {}

        self._load_from_disk()

        logger.info(f"Local cache initialized [path={self._cache_path or '<memory>'}]")

    @property
    def path(self) -> Optional[Path]:
        return self._cache_path

    def load(self, key: str) -> Optional[Any]:
        """
        Return the value stored under key.

        Args:
            key: Storage key (e.g. 'entries', 'pending_pushes:entries')

        Returns:
            The stored JSON value or None if the key is absent
        """
        with self._cache_lock:
            return self._cache.get(key)

    def save(self, key: str, value: Any) -> None:
        """
        Replace the value of key and persist.

        Args:
            key: Storage key
            value: JSON-serializable value
        """
        with self._cache_lock:
            self._cache[key] = value
        self._save_to_disk()

    def remove(self, key: str) -> None:
        with self._cache_lock:
            if key not in self._cache:
                return
            del self._cache[key]
        self._save_to_disk()

    def keys(self) -> List[str]:
        with self._cache_lock:
            return list(self._cache)

    def _load_from_disk(self) -> bool:
        """
        Load cache from JSON file on startup.

        Returns:
            True if load succeeded, False if file missing or corrupted
        """
        if self._cache_path is None:
            return False

        if not self._cache_path.exists():
            logger.debug(f"Cache file not found at {self._cache_path}, starting with empty cache")
            return False

        try:
            with self._file_lock:
                with open(self._cache_path, 'r') as f:
                    data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")

            with self._cache_lock:
                self._cache = data

            logger.info(f"Local cache loaded from {self._cache_path} ({len(data)} key(s))")
            return True

        except (json.JSONDecodeError, ValueError, IOError) as e:
            logger.warning(
                f"Failed to load local cache from {self._cache_path}: {e}, "
                "starting with empty cache"
            )
            with self._cache_lock:
                self._cache = {}
            return False

    def _save_to_disk(self) -> None:
        """
        Persist cache to JSON file.

        Creates parent directories if needed. Continues with in-memory cache
        only if save fails (logs warning).
        """
        if self._cache_path is None:
            return

        tmp_name = None
        try:
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)

            # snapshot and write under one lock so an older snapshot never lands last
            with self._file_lock:
                with self._cache_lock:
                    data = json.dumps(self._cache, indent=2)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=self._cache_path.name + '.',
                    suffix='.tmp',
                    dir=str(self._cache_path.parent),
                )
                with os.fdopen(fd, 'w') as f:
                    f.write(data)
                os.replace(tmp_name, self._cache_path)
                tmp_name = None

            logger.debug(f"Local cache saved to {self._cache_path}")

        except (IOError, OSError) as e:
            logger.warning(
                f"Failed to save local cache to {self._cache_path}: {e}, "
                "continuing with in-memory cache only"
            )
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
