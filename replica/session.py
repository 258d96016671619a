"""
Session: composition root of the journal replica.

Builds every collaborator once and wires them explicitly: Local Cache,
identity, profile store, the two replicated collections and the background
sync manager. Consumers receive the session (or one of its parts) by
reference; nothing here is global.
"""

import logging
from typing import Any, Dict, Optional

from common.config import Config
from common.constants import ACTIVITIES_CACHE_KEY, ENTRIES_CACHE_KEY, SYNC_INTERVAL_SECONDS
from common.exceptions import RemoteUnavailableError
from common.types import Attachment, Payload, Record, RecordKind
from record_store.base import RecordStoreClient
from record_store.change_feed import ChangeFeed
from record_store.http_client import HttpRecordStoreClient
from replica.identity import IdentityResolver
from replica.local_cache import LocalCache
from replica.mutation_gateway import MutationGateway
from replica.profile_store import ProfileStore
from replica.push_queue import PendingPushQueue
from replica.reconciliation import MergeResult, ReconciliationEngine
from replica.state import ReplicaState
from replica.sync_manager import SyncManager

logger = logging.getLogger(__name__)


def location_message(location: str, is_travel: bool = False, what_for: str = "") -> str:
    """Text of a location-update entry."""
    if is_travel and what_for:
        return f"is now in {location} for {what_for}"
    if is_travel:
        return f"is now in {location}"
    return f"moved to {location}"


class Session:
    """One signed-in device: replicas, their engines and gateways, and the sync loop."""

    def __init__(
        self,
        client: RecordStoreClient,
        cache: LocalCache,
        sync_interval: float = SYNC_INTERVAL_SECONDS,
        retry_pending_pushes: bool = False,
        feed: Optional[ChangeFeed] = None,
    ):
        """
        Initialize the session.

        Args:
            client: Remote record store client
            cache: Local Cache shared by all collections and the profile
            sync_interval: Seconds between background sync passes
            retry_pending_pushes: Queue failed saves and retry them after each pass
            feed: Change feed for remote change signals (a new one by default)
        """
        self.client = client
        self.cache = cache
        self.feed = feed or ChangeFeed()
        self.retry_pending_pushes = retry_pending_pushes

        self.identity = IdentityResolver(client, cache)
        self.profiles = ProfileStore(client, cache, self.identity)

        self.entries = self._build_engine(
            ENTRIES_CACHE_KEY,
            (RecordKind.REGULAR, RecordKind.LOCATION_UPDATE),
            author_scoped=False,
        )
        self.entries_gateway = MutationGateway(self.entries)

        self.activities = self._build_engine(
            ACTIVITIES_CACHE_KEY,
            (RecordKind.ACTIVITY,),
            author_scoped=True,
        )
        self.activities_gateway = MutationGateway(self.activities)

        self.sync_manager = SyncManager(self.sync_all, self.feed, sync_interval)
        self.started = False

    @classmethod
    def from_config(
        cls,
        config: Config,
        client: Optional[RecordStoreClient] = None,
        cache: Optional[LocalCache] = None,
    ) -> 'Session':
        """
        Build a session from configuration.

        Args:
            config: Loaded configuration
            client: Record store client (HTTP client built from config by default)
            cache: Local Cache (file at the configured cache_path by default)
        """
        return cls(
            client=client or HttpRecordStoreClient.from_config(config),
            cache=cache or LocalCache(str(config.get_cache_path())),
            sync_interval=config.get_sync_interval(),
            retry_pending_pushes=config.retry_pending_pushes(),
        )

    def _build_engine(self, name: str, kinds, author_scoped: bool) -> ReconciliationEngine:
        return ReconciliationEngine(
            name=name,
            state=ReplicaState(name),
            client=self.client,
            cache=self.cache,
            identity=self.identity,
            push_queue=PendingPushQueue(name, self.cache),
            kinds=kinds,
            author_scoped=author_scoped,
            retry_pending_pushes=self.retry_pending_pushes,
        )

    async def start(self, background: bool = True) -> None:
        """
        Restore cached state, resolve identity, subscribe and run the first sync.

        Args:
            background: Also start the background sync manager
        """
        self.entries.load()
        self.activities.load()
        await self.identity.resolve()
        try:
            await self.client.subscribe(self.feed)
        except RemoteUnavailableError as e:
            logger.warning(f"Change subscription failed, relying on periodic sync: {e}")
        await self.sync_all()
        if background:
            await self.sync_manager.start()
        self.started = True
        logger.info(
            f"Session started [author_id={self.identity.current_author_id()}, "
            f"entries={len(self.entries.state)}, activities={len(self.activities.state)}]"
        )

    async def stop(self) -> None:
        await self.sync_manager.stop()
        await self.entries_gateway.flush()
        await self.activities_gateway.flush()
        await self.client.close()
        self.started = False
        logger.info("Session stopped")

    async def sync_all(self) -> Dict[str, Optional[MergeResult]]:
        """
        Sync the profile, then entries, then activities.

        Returns:
            Merge result per collection (None where the pass did not complete)
        """
        await self.profiles.sync()
        return {
            self.entries.name: await self.entries.sync(),
            self.activities.name: await self.activities.sync(),
        }

    def request_sync(self) -> bool:
        return self.sync_manager.request_sync()

    def owner_name(self) -> str:
        profile = self.profiles.current
        if profile is not None and profile.name:
            return profile.name
        return self.identity.current_display_name() or ""

    async def add_entry(self, person: str, activity: str, assumption: str = "",
                        photo: Optional[bytes] = None) -> Record:
        attachment = Attachment(data=photo) if photo else None
        payload = Payload(fields={'activity': activity, 'assumption': assumption}, attachment=attachment)
        return await self.entries_gateway.create(RecordKind.REGULAR, person, payload)

    async def edit_entry(self, record_id: str, activity: str, assumption: str = "") -> Record:
        existing = self.entries.state.require(record_id)
        fields = dict(existing.payload.fields, activity=activity, assumption=assumption)
        payload = Payload(fields=fields, attachment=existing.payload.attachment)
        return await self.entries_gateway.update(record_id, payload)

    async def delete_entry(self, record_id: str) -> Record:
        return await self.entries_gateway.delete(record_id)

    async def entry_photo(self, record_id: str) -> Optional[bytes]:
        """
        Photo bytes of an entry, downloading them on first access.

        Returns:
            The bytes, or None if the entry has no photo or the download failed
        """
        record = self.entries.state.require(record_id)
        attachment = record.payload.attachment
        if attachment is None:
            return None
        if attachment.data is not None:
            return attachment.data
        try:
            return await self.client.fetch_attachment(attachment.ref)
        except RemoteUnavailableError as e:
            logger.warning(f"Photo download for {record_id} failed: {e}")
            return None

    async def add_activity(self, name: str) -> Record:
        payload = Payload(fields={'name': name})
        return await self.activities_gateway.create(RecordKind.ACTIVITY, self.owner_name(), payload)

    async def rename_activity(self, record_id: str, name: str) -> Record:
        existing = self.activities.state.require(record_id)
        payload = Payload(fields=dict(existing.payload.fields, name=name), attachment=existing.payload.attachment)
        return await self.activities_gateway.update(record_id, payload)

    async def delete_activity(self, record_id: str) -> Record:
        return await self.activities_gateway.delete(record_id)

    async def move_to(self, location: str, is_travel: bool = False, what_for: str = "") -> Record:
        """
        Update the profile location and post a location-update entry.

        Returns:
            The created location-update record
        """
        if self.profiles.current is not None:
            await self.profiles.record_location(location, is_travel)
        else:
            logger.warning("No profile yet, location history not recorded")

        fields: Dict[str, Any] = {
            'location': location,
            'message': location_message(location, is_travel, what_for),
            'is_travel': is_travel,
        }
        if what_for:
            fields['what_for'] = what_for
        return await self.entries_gateway.create(RecordKind.LOCATION_UPDATE, self.owner_name(), Payload(fields=fields))

    async def reset_account(self) -> bool:
        """
        Delete everything the current author created: entries, activities, profile.

        Each remote bulk delete must succeed before local data is cleared.

        Returns:
            True if every step succeeded
        """
        author_id = self.identity.current_author_id() or await self.identity.resolve()
        if author_id is None:
            logger.warning("Account reset refused: identity unknown")
            return False

        entries_ok = await self.entries_gateway.delete_all_by_author(author_id)
        activities_ok = await self.activities_gateway.delete_all_by_author(author_id)
        if not (entries_ok and activities_ok):
            return False
        return await self.profiles.delete()

    def status(self) -> Dict[str, Any]:
        return {
            'author_id': self.identity.current_author_id(),
            'display_name': self.owner_name() or None,
            'entries': len(self.entries.state),
            'activities': len(self.activities.state),
            'pending_entries': len(self.entries.push_queue),
            'pending_activities': len(self.activities.push_queue),
            'syncing': self.entries.state.is_syncing or self.activities.state.is_syncing,
            'sync_passes': self.sync_manager.passes,
        }
