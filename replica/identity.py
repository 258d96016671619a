"""Resolution of the signed-in author's identity and display name."""

import logging
from typing import Optional

from common.constants import PROFILE_CACHE_KEY
from common.exceptions import RemoteUnavailableError
from common.types import Record
from record_store.base import RecordStoreClient
from replica.local_cache import LocalCache

logger = logging.getLogger(__name__)


class IdentityResolver:
    """
    Caches the current author id for the process lifetime.

    The identity is looked up once; an unreachable store leaves it unknown
    and callers treat it as None until ``resolve`` is called again.
    """

    def __init__(self, client: RecordStoreClient, cache: LocalCache):
        self.client = client
        self.cache = cache
        self._author_id: Optional[str] = None

    async def resolve(self) -> Optional[str]:
        """
        Ask the record store for the current author id (once).

        Returns:
            The author id, or None if it could not be resolved
        """
        if self._author_id is not None:
            return self._author_id
        try:
            self._author_id = await self.client.current_author_id()
            logger.info(f"Identity resolved [author_id={self._author_id}]")
        except RemoteUnavailableError as e:
            logger.warning(f"Could not resolve identity: {e}")
        return self._author_id

    def current_author_id(self) -> Optional[str]:
        return self._author_id

    def current_display_name(self) -> Optional[str]:
        """Name of the locally cached profile; works offline."""
        profile = self.cache.load(PROFILE_CACHE_KEY)
        if isinstance(profile, dict):
            return profile.get('name') or None
        return None

    def owns(self, record: Record) -> bool:
        """True when the record has an author and it is the current identity."""
        return (
            record.author_id is not None
            and self._author_id is not None
            and record.author_id == self._author_id
        )
