"""
In-memory record store shared by several device clients.

Used by the test suite and by the shell's offline mode. The store keeps the
same flat wire documents the HTTP service stores, so every save and fetch
goes through the pydantic schema exactly as it would over the network.
"""

import asyncio
import threading
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from common.exceptions import DecodeFailureError, RemoteUnavailableError
from common.logging_config import get_logger
from common.types import Attachment, Profile, Record, RecordKind, SaveReceipt
from record_store.base import RecordStoreClient
from record_store.change_feed import ChangeFeed
from record_store.schemas import decode_profile, decode_record, encode_profile, encode_record

logger = get_logger(__name__)


class InMemoryRecordStore:
    """Shared remote state: records, profiles, assets and subscribed feeds."""

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.assets: Dict[str, Tuple[bytes, str]] = {}
        self._feeds: List[ChangeFeed] = []
        self._lock = threading.RLock()

    def put_raw(self, doc: Dict[str, Any], remote_ref: Optional[str] = None) -> str:
        """
        Store a wire document as-is (legacy or malformed documents included).

        Returns:
            Remote reference under which the document is stored
        """
        ref = remote_ref or str(doc.get('id') or uuid.uuid4())
        with self._lock:
            self.records[ref] = dict(doc, remote_ref=ref)
        self.notify()
        return ref

    def add_feed(self, feed: ChangeFeed) -> None:
        with self._lock:
            if feed not in self._feeds:
                self._feeds.append(feed)

    def notify(self) -> None:
        with self._lock:
            feeds = list(self._feeds)
        for feed in feeds:
            feed.publish()

    def __len__(self) -> int:
        return len(self.records)


class InMemoryRecordStoreClient(RecordStoreClient):
    """
    Device-side client bound to one author identity.

    Attributes:
        store: Shared store
        author_id: Identity returned by current_author_id(); None simulates
            a signed-out device whose identity lookup fails
        offline: When True every call raises RemoteUnavailableError
    """

    def __init__(self, store: InMemoryRecordStore, author_id: Optional[str] = None):
        self.store = store
        self.author_id = author_id
        self.offline = False
        self.calls: List[str] = []
        self._failures: List[Optional[str]] = []

    def fail_next(self, count: int = 1, operation: Optional[str] = None) -> None:
        """
        Make the next ``count`` calls fail with RemoteUnavailableError.

        Args:
            count: Number of calls to fail
            operation: Only fail calls to this method name (any call when None)
        """
        self._failures.extend([operation] * count)

    async def _enter(self, operation: str) -> None:
        # yield like a network round trip would
        await asyncio.sleep(0)
        self.calls.append(operation)
        if self.offline:
            raise RemoteUnavailableError(f"{operation}: record store unreachable (offline)")
        for i, wanted in enumerate(self._failures):
            if wanted is None or wanted == operation:
                del self._failures[i]
                raise RemoteUnavailableError(f"{operation}: injected failure", status_code=503)

    def _store_asset(self, asset_id: str, attachment: Attachment) -> Optional[str]:
        if attachment.is_uploaded:
            return attachment.ref
        if attachment.data is None:
            return None
        with self.store._lock:
            self.store.assets[asset_id] = (attachment.data, attachment.content_type)
        return asset_id

    async def current_author_id(self) -> str:
        await self._enter('current_author_id')
        if self.author_id is None:
            raise RemoteUnavailableError("Not signed in", status_code=401)
        return self.author_id

    async def save(self, record: Record) -> SaveReceipt:
        await self._enter('save')
        attachment_ref = None
        if record.payload.attachment is not None:
            attachment_ref = self._store_asset(record.id, record.payload.attachment)
        ref = record.remote_ref or record.id
        doc = encode_record(record, attachment_ref)
        doc['remote_ref'] = ref
        with self.store._lock:
            self.store.records[ref] = doc
        self.store.notify()
        return SaveReceipt(ref, attachment_ref)

    async def fetch_all(
        self,
        kinds: Optional[Iterable[RecordKind]] = None,
        author_id: Optional[str] = None,
    ) -> List[Record]:
        await self._enter('fetch_all')
        wanted = {RecordKind(k) for k in kinds} if kinds else None
        with self.store._lock:
            docs = [(ref, dict(doc)) for ref, doc in self.store.records.items()]

        records = []
        for ref, doc in docs:
            try:
                record = decode_record(doc, remote_ref=ref)
            except DecodeFailureError as e:
                logger.warning(f"Skipping remote record: {e}")
                continue
            if wanted and record.kind not in wanted:
                continue
            if author_id and record.author_id != author_id:
                continue
            records.append(record)
        return records

    async def delete_by_id(self, remote_ref: str) -> None:
        await self._enter('delete_by_id')
        with self.store._lock:
            removed = self.store.records.pop(remote_ref, None)
        if removed is not None:
            self.store.notify()

    async def delete_all_by_author(self, author_id: str) -> int:
        await self._enter('delete_all_by_author')
        with self.store._lock:
            refs = [
                ref for ref, doc in self.store.records.items()
                if author_id in (doc.get('author_id'), doc.get('authorID'), doc.get('userCloudKitID'))
            ]
            for ref in refs:
                del self.store.records[ref]
        if refs:
            self.store.notify()
        return len(refs)

    async def fetch_attachment(self, ref: str) -> bytes:
        await self._enter('fetch_attachment')
        with self.store._lock:
            asset = self.store.assets.get(ref)
        if asset is None:
            raise RemoteUnavailableError(f"Attachment {ref} not found", status_code=404)
        return asset[0]

    async def save_profile(self, profile: Profile) -> str:
        await self._enter('save_profile')
        selfie_ref = None
        if profile.selfie is not None:
            selfie_ref = self._store_asset(f"profile-{profile.id}", profile.selfie)
        ref = profile.remote_ref or profile.id
        doc = encode_profile(profile, selfie_ref)
        doc['remote_ref'] = ref
        with self.store._lock:
            self.store.profiles[ref] = doc
        return ref

    async def fetch_profiles(self, author_id: Optional[str] = None, name: Optional[str] = None) -> List[Profile]:
        await self._enter('fetch_profiles')
        with self.store._lock:
            docs = [(ref, dict(doc)) for ref, doc in self.store.profiles.items()]

        profiles = []
        for ref, doc in docs:
            try:
                profile = decode_profile(doc, remote_ref=ref)
            except DecodeFailureError as e:
                logger.warning(f"Skipping remote profile: {e}")
                continue
            if author_id and profile.author_id != author_id:
                continue
            if name and profile.name.lower() != name.lower():
                continue
            profiles.append(profile)
        return profiles

    async def delete_profile(self, remote_ref: str) -> None:
        await self._enter('delete_profile')
        with self.store._lock:
            self.store.profiles.pop(remote_ref, None)

    async def subscribe(self, feed: ChangeFeed) -> None:
        await self._enter('subscribe')
        self.store.add_feed(feed)

