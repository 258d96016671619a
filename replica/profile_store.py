"""Singleton profile of the signed-in author, cached locally and mirrored remotely."""

import logging
from dataclasses import replace
from datetime import timedelta
from typing import List, Optional

from common.constants import PROFILE_CACHE_KEY
from common.exceptions import NotAuthorError, RecordNotFoundError, RemoteUnavailableError
from common.serialization import profile_from_dict, profile_to_dict
from common.types import Attachment, LocationEntry, Profile, utc_now
from record_store.base import RecordStoreClient
from replica.identity import IdentityResolver
from replica.local_cache import LocalCache

logger = logging.getLogger(__name__)


class ProfileStore:
    """
    Holds the current author's profile.

    Follows the record merge discipline: last_modified decides, ties keep the
    local copy, a pushed profile missing remotely is cleared and a never-pushed
    one is kept and pushed again.
    """

    def __init__(self, client: RecordStoreClient, cache: LocalCache, identity: IdentityResolver):
        self.client = client
        self.cache = cache
        self.identity = identity
        self.is_syncing = False
        self._current: Optional[Profile] = self._restore()

    @property
    def current(self) -> Optional[Profile]:
        return self._current

    def _restore(self) -> Optional[Profile]:
        stored = self.cache.load(PROFILE_CACHE_KEY)
        if not stored:
            return None
        try:
            profile = profile_from_dict(stored)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Discarding undecodable cached profile: {e}")
            return None
        logger.info(f"Restored profile {profile.id} ({profile.name})")
        return profile

    def _set_current(self, profile: Optional[Profile]) -> None:
        self._current = profile
        if profile is None:
            self.cache.remove(PROFILE_CACHE_KEY)
        else:
            self.cache.save(PROFILE_CACHE_KEY, profile_to_dict(profile))

    async def _push(self, profile: Profile) -> Profile:
        try:
            remote_ref = await self.client.save_profile(profile)
        except RemoteUnavailableError as e:
            logger.warning(f"Profile push failed: {e}")
            return profile
        pushed = replace(profile, remote_ref=remote_ref)
        # a newer local save may have landed while the push was in flight
        if self._current is not None and self._current.id == profile.id:
            if self._current.last_modified == profile.last_modified:
                self._set_current(pushed)
            elif self._current.remote_ref is None:
                self._set_current(replace(self._current, remote_ref=remote_ref))
        return pushed

    async def save(self, profile: Profile) -> Profile:
        """
        Save the profile locally, then push it.

        Args:
            profile: Profile to store as the current one

        Returns:
            The stored profile (with remote_ref when the push succeeded)

        Raises:
            NotAuthorError: If the profile belongs to another author
        """
        author_id = self.identity.current_author_id()
        if profile.author_id is not None and author_id is not None and profile.author_id != author_id:
            raise NotAuthorError(profile.id, profile.author_id, author_id)

        previous = self._current.last_modified if self._current and self._current.id == profile.id else None
        stamp = utc_now()
        if previous is not None and stamp <= previous:
            stamp = previous + timedelta(microseconds=1)
        profile = replace(profile, author_id=profile.author_id or author_id, last_modified=stamp)

        self._set_current(profile)
        logger.info(f"Saved profile {profile.id} [author_id={profile.author_id}]")
        return await self._push(profile)

    async def update(
        self,
        name: Optional[str] = None,
        vision: Optional[str] = None,
        selfie: Optional[Attachment] = None,
    ) -> Profile:
        """Change profile attributes, creating the profile if there is none yet."""
        profile = self._current
        if profile is None:
            profile = Profile.new(name or "", author_id=self.identity.current_author_id())
        changes = {}
        if name is not None:
            changes['name'] = name
        if vision is not None:
            changes['vision'] = vision
        if selfie is not None:
            changes['selfie'] = selfie
        return await self.save(replace(profile, **changes))

    async def record_location(self, location: str, is_travel: bool = False) -> Profile:
        """
        Set the current location and append it to the location history.

        Raises:
            RecordNotFoundError: If there is no profile yet
        """
        if self._current is None:
            raise RecordNotFoundError("No profile to record a location on")
        now = utc_now()
        entry = LocationEntry(location=location, date=now, is_travel=is_travel)
        updated = replace(
            self._current,
            current_location=location,
            location_history=self._current.location_history + (entry,),
        )
        return await self.save(updated)

    async def sync(self) -> Optional[Profile]:
        """
        Reconcile the local profile with the remote copy for the current author.

        Returns:
            The resulting current profile (None if there is none)
        """
        if self.is_syncing:
            logger.debug("Profile sync already in progress, skipping")
            return self._current

        self.is_syncing = True
        try:
            author_id = self.identity.current_author_id() or await self.identity.resolve()
            if author_id is None:
                logger.warning("Profile sync skipped: identity unknown")
                return self._current

            try:
                remote_profiles = await self.client.fetch_profiles(author_id=author_id)
            except RemoteUnavailableError as e:
                logger.warning(f"Profile sync aborted, fetch failed: {e}")
                return self._current

            remote = max(remote_profiles, key=lambda p: p.last_modified, default=None)
            local = self._current

            if remote is None:
                if local is None:
                    return None
                if local.remote_ref is not None:
                    logger.info(f"Profile {local.id} deleted remotely, clearing local copy")
                    self._set_current(None)
                    return None
                logger.info(f"Profile {local.id} never pushed, pushing")
                await self._push(local)
                return self._current

            if local is None or remote.last_modified > local.last_modified:
                self._set_current(remote)
                logger.info(f"Profile {remote.id} updated from remote")
            elif local.last_modified > remote.last_modified:
                await self._push(local)
            return self._current
        finally:
            self.is_syncing = False

    async def fetch_by_author(self, author_id: str) -> Optional[Profile]:
        """Profile of an author: local copy if it matches, else the remote one."""
        if self._current is not None and self._current.author_id == author_id:
            return self._current
        try:
            profiles = await self.client.fetch_profiles(author_id=author_id)
        except RemoteUnavailableError as e:
            logger.warning(f"Profile lookup for {author_id} failed: {e}")
            return None
        return max(profiles, key=lambda p: p.last_modified, default=None)

    async def fetch_by_name(self, name: str) -> Optional[Profile]:
        """
        Find a profile by display name, case-insensitively.

        Checks the local profile, then a remote name query, then falls back to
        scanning every remote profile (older stores match names case-sensitively).
        """
        wanted = name.strip().lower()
        if self._current is not None and self._current.name.lower() == wanted:
            return self._current
        try:
            profiles = await self.client.fetch_profiles(name=name)
            matches = self._match_name(profiles, wanted)
            if not matches:
                matches = self._match_name(await self.client.fetch_profiles(), wanted)
        except RemoteUnavailableError as e:
            logger.warning(f"Profile lookup for name {name!r} failed: {e}")
            return None
        return max(matches, key=lambda p: p.last_modified, default=None)

    @staticmethod
    def _match_name(profiles: List[Profile], wanted: str) -> List[Profile]:
        return [p for p in profiles if p.name.lower() == wanted]

    async def delete(self) -> bool:
        """
        Delete the current profile, remotely first when it was pushed.

        Returns:
            False if the remote delete failed (local profile kept)
        """
        profile = self._current
        if profile is None:
            return True
        if profile.remote_ref is not None:
            try:
                await self.client.delete_profile(profile.remote_ref)
            except RemoteUnavailableError as e:
                logger.warning(f"Profile delete failed: {e}")
                return False
        self._set_current(None)
        logger.info(f"Deleted profile {profile.id}")
        return True
