"""Pydantic schemas for records and profiles as stored in the remote store."""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from common.exceptions import DecodeFailureError
from common.serialization import encode_datetime
from common.types import Attachment, LocationEntry, Payload, Profile, Record, RecordKind


# keys the store adds to a document that are not part of the record payload
STORE_KEYS = frozenset({"remote_ref"})


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _validate_uuid(value: str) -> str:
    return str(uuid.UUID(str(value)))


class RemoteRecord(BaseModel):
    """
    Flat remote representation of a record.

    Kind-specific payload fields are stored as extra top-level keys. Legacy
    field names written by older app versions are accepted on input.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    kind: RecordKind = Field(
        default=RecordKind.REGULAR,
        validation_alias=AliasChoices("kind", "entryType"),
    )
    owner_label: str = Field(default="", validation_alias=AliasChoices("owner_label", "person"))
    author_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("author_id", "authorID", "userCloudKitID"),
    )
    author_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("author_name", "authorName"))
    created_at: datetime = Field(validation_alias=AliasChoices("created_at", "timestamp", "createdAt"))
    last_modified: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("last_modified", "lastModified"),
    )
    attachment_ref: Optional[str] = None
    attachment_content_type: Optional[str] = None

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        return _validate_uuid(value)

    def payload_fields(self) -> Dict[str, Any]:
        """Extra keys minus store bookkeeping."""
        return {k: v for k, v in (self.model_extra or {}).items() if k not in STORE_KEYS}

    def to_record(self, remote_ref: str) -> Record:
        """Convert to the local model; the attachment is left to be fetched lazily."""
        created_at = _as_utc(self.created_at)
        attachment = None
        if self.attachment_ref:
            attachment = Attachment(
                content_type=self.attachment_content_type or "image/jpeg",
                ref=self.attachment_ref,
            )
        return Record(
            id=self.id,
            kind=self.kind,
            owner_label=self.owner_label,
            payload=Payload(fields=self.payload_fields(), attachment=attachment),
            created_at=created_at,
            last_modified=_as_utc(self.last_modified) if self.last_modified else created_at,
            author_id=self.author_id,
            author_name=self.author_name,
            remote_ref=remote_ref,
        )


class RemoteLocationEntry(BaseModel):
    """Location history entry as stored remotely."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    location: str
    date: datetime
    is_travel: bool = Field(default=False, validation_alias=AliasChoices("is_travel", "isTravel"))


class RemoteProfile(BaseModel):
    """Flat remote representation of a profile."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    vision: str = Field(default="", validation_alias=AliasChoices("vision", "idealVision"))
    created_at: datetime = Field(validation_alias=AliasChoices("created_at", "createdAt"))
    last_modified: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("last_modified", "lastModified"),
    )
    current_location: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("current_location", "currentLocation"),
    )
    location_history: List[RemoteLocationEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("location_history", "locationHistory"),
    )
    author_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("author_id", "userCloudKitID"))
    selfie_ref: Optional[str] = None
    selfie_content_type: Optional[str] = None

    @field_validator("location_history", mode="before")
    @classmethod
    def _parse_history(cls, value: Any) -> Any:
        # older clients stored the history as a JSON string
        if isinstance(value, str):
            return json.loads(value) if value else []
        return value

    def to_profile(self, remote_ref: str) -> Profile:
        created_at = _as_utc(self.created_at)
        selfie = None
        if self.selfie_ref:
            selfie = Attachment(content_type=self.selfie_content_type or "image/jpeg", ref=self.selfie_ref)
        return Profile(
            id=self.id,
            name=self.name,
            vision=self.vision,
            created_at=created_at,
            last_modified=_as_utc(self.last_modified) if self.last_modified else created_at,
            selfie=selfie,
            current_location=self.current_location,
            location_history=tuple(
                LocationEntry(id=e.id, location=e.location, date=_as_utc(e.date), is_travel=e.is_travel)
                for e in self.location_history
            ),
            author_id=self.author_id,
            remote_ref=remote_ref,
        )


class RecordListResponse(BaseModel):
    """Response model for record listing."""
    records: List[Any]


class ProfileListResponse(BaseModel):
    """Response model for profile listing."""
    profiles: List[Any]


class SaveResponse(BaseModel):
    """Response model for record/profile upsert."""
    remote_ref: str


class AssetResponse(BaseModel):
    """Response model for attachment upload."""
    asset_ref: str


class WhoAmIResponse(BaseModel):
    """Response model for identity lookup."""
    author_id: str


class DeleteByAuthorResponse(BaseModel):
    """Response model for author-scoped bulk delete."""
    deleted_count: int


def encode_record(record: Record, attachment_ref: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the flat wire document for a record.

    Args:
        record: Record to encode
        attachment_ref: Remote reference of the already-uploaded attachment, if any

    Returns:
        JSON-safe dict
    """
    doc: Dict[str, Any] = dict(record.payload.fields)
    doc.update({
        'id': record.id,
        'kind': record.kind.value,
        'owner_label': record.owner_label,
        'author_id': record.author_id,
        'author_name': record.author_name,
        'created_at': encode_datetime(record.created_at),
        'last_modified': encode_datetime(record.last_modified),
    })
    attachment = record.payload.attachment
    if attachment_ref or (attachment and attachment.ref):
        doc['attachment_ref'] = attachment_ref or attachment.ref
        doc['attachment_content_type'] = attachment.content_type if attachment else None
    return doc


def decode_record(raw: Any, remote_ref: Optional[str] = None) -> Record:
    """
    Parse a wire document into a record.

    Args:
        raw: Wire document
        remote_ref: Remote identity; defaults to the document's own id

    Raises:
        DecodeFailureError: If the document does not match the schema
    """
    if not isinstance(raw, dict):
        raise DecodeFailureError(f"Undecodable record: expected an object, got {type(raw).__name__}")
    try:
        model = RemoteRecord.model_validate(raw)
    except ValidationError as e:
        raise DecodeFailureError(f"Undecodable record {raw.get('id', '<no id>')}: {e.error_count()} error(s)") from e
    return model.to_record(remote_ref or raw.get('remote_ref') or model.id)


def encode_profile(profile: Profile, selfie_ref: Optional[str] = None) -> Dict[str, Any]:
    """Build the flat wire document for a profile."""
    doc: Dict[str, Any] = {
        'id': profile.id,
        'name': profile.name,
        'vision': profile.vision,
        'created_at': encode_datetime(profile.created_at),
        'last_modified': encode_datetime(profile.last_modified),
        'current_location': profile.current_location,
        'location_history': [
            {
                'id': e.id,
                'location': e.location,
                'date': encode_datetime(e.date),
                'is_travel': e.is_travel,
            }
            for e in profile.location_history
        ],
        'author_id': profile.author_id,
    }
    selfie = profile.selfie
    if selfie_ref or (selfie and selfie.ref):
        doc['selfie_ref'] = selfie_ref or selfie.ref
        doc['selfie_content_type'] = selfie.content_type if selfie else None
    return doc


def decode_profile(raw: Any, remote_ref: Optional[str] = None) -> Profile:
    """
    Parse a wire document into a profile.

    Raises:
        DecodeFailureError: If the document does not match the schema
    """
    if not isinstance(raw, dict):
        raise DecodeFailureError(f"Undecodable profile: expected an object, got {type(raw).__name__}")
    try:
        model = RemoteProfile.model_validate(raw)
    except (ValidationError, json.JSONDecodeError) as e:
        raise DecodeFailureError(f"Undecodable profile {raw.get('id', '<no id>')}") from e
    return model.to_profile(remote_ref or raw.get('remote_ref') or model.id)
