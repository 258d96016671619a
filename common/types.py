"""Shared data type definitions (Record, Payload, Attachment, Profile, etc.)."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class RecordKind(str, Enum):
    """Closed set of record kinds stored in a replica."""
    REGULAR = "regular"
    ACTIVITY = "activity"
    LOCATION_UPDATE = "location_update"


KIND_REQUIRED_FIELDS: Dict[RecordKind, Tuple[str, ...]] = {
    RecordKind.REGULAR: ("activity",),
    RecordKind.ACTIVITY: ("name",),
    RecordKind.LOCATION_UPDATE: ("location", "message"),
}


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    """Fresh record identifier; never reused."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Attachment:
    """
    Binary attachment (photo) carried by a record or profile.

    Remotely the bytes live behind ``ref``; ``data`` is None until fetched.
    """
    content_type: str = "image/jpeg"
    data: Optional[bytes] = None
    ref: Optional[str] = None

    @property
    def is_uploaded(self) -> bool:
        return self.ref is not None


@dataclass(frozen=True)
class Payload:
    """Kind-specific text fields plus an optional attachment."""
    fields: Dict[str, Any] = field(default_factory=dict)
    attachment: Optional[Attachment] = None

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def missing_fields(self, kind: RecordKind) -> List[str]:
        """
        Return required field names for ``kind`` that are absent or blank.

        Args:
            kind: Record kind whose schema applies

        Returns:
            List of missing field names (empty when the payload is valid)
        """
        missing = []
        for name in KIND_REQUIRED_FIELDS[kind]:
            value = self.fields.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing


@dataclass(frozen=True)
class Record:
    """
    A unit of user-generated content (journal entry, activity, location update).

    Attributes:
        id: Stable unique identifier, assigned at creation
        kind: Record kind discriminant
        owner_label: Display-level owner ("person" name), not an identity
        payload: Kind-specific fields and optional attachment
        created_at: Immutable creation timestamp (default ordering key)
        last_modified: Last mutation timestamp, sole merge tie-breaker
        author_id: Identity of the creating user; None for legacy records
        author_name: Display name of the author when the record was created
        remote_ref: Identity in the remote store; None means never pushed
    """
    id: str
    kind: RecordKind
    owner_label: str
    payload: Payload
    created_at: datetime
    last_modified: datetime
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    remote_ref: Optional[str] = None

    @property
    def is_pushed(self) -> bool:
        return self.remote_ref is not None

    def with_remote_ref(self, remote_ref: str) -> 'Record':
        return replace(self, remote_ref=remote_ref)

    def with_attachment_ref(self, sent: Attachment, ref: str) -> 'Record':
        """
        Mark the attachment as uploaded under ``ref``.

        Only applies while the attachment is still the one that was sent;
        a photo replaced in the meantime is left for the next push.
        """
        attachment = self.payload.attachment
        if attachment is None or attachment.is_uploaded or attachment != sent:
            return self
        return replace(self, payload=replace(self.payload, attachment=replace(attachment, ref=ref)))

    def display_text(self) -> str:
        """Single-line rendering used by the shell."""
        if self.kind == RecordKind.ACTIVITY:
            return str(self.payload.get("name", ""))
        if self.kind == RecordKind.LOCATION_UPDATE:
            return f"{self.owner_label} {self.payload.get('message', '')}"
        text = f"{self.owner_label}: {self.payload.get('activity', '')}"
        assumption = self.payload.get("assumption")
        if assumption:
            text += f" ({assumption})"
        return text


@dataclass(frozen=True)
class SaveReceipt:
    """What the record store reports back after a record upsert."""
    remote_ref: str
    attachment_ref: Optional[str] = None


@dataclass(frozen=True)
class LocationEntry:
    """One entry of a profile's location history."""
    location: str
    date: datetime
    is_travel: bool = False
    id: str = field(default_factory=new_record_id)


@dataclass(frozen=True)
class Profile:
    """
    Singleton-per-author profile with owner-chosen attributes.
    """
    id: str
    name: str
    vision: str
    created_at: datetime
    last_modified: datetime
    selfie: Optional[Attachment] = None
    current_location: Optional[str] = None
    location_history: Tuple[LocationEntry, ...] = ()
    author_id: Optional[str] = None
    remote_ref: Optional[str] = None

    @classmethod
    def new(cls, name: str, vision: str = "", author_id: Optional[str] = None,
            now: Optional[datetime] = None) -> 'Profile':
        now = now or utc_now()
        return cls(
            id=new_record_id(),
            name=name,
            vision=vision,
            created_at=now,
            last_modified=now,
            author_id=author_id,
        )
