"""Local cache serialization formats for records and profiles."""

import base64
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from common.types import Attachment, LocationEntry, Payload, Profile, Record, RecordKind


def encode_datetime(value: datetime) -> str:
    """Serialize an aware datetime to ISO 8601 (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def decode_datetime(value: str) -> datetime:
    """Deserialize ISO 8601 into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def attachment_to_dict(attachment: Attachment) -> Dict[str, Any]:
    """Serialize an attachment; bytes are base64-encoded."""
    return {
        'content_type': attachment.content_type,
        'data': base64.b64encode(attachment.data).decode('ascii') if attachment.data is not None else None,
        'ref': attachment.ref,
    }


def attachment_from_dict(obj: Dict[str, Any]) -> Attachment:
    """Deserialize an attachment."""
    data = obj.get('data')
    return Attachment(
        content_type=obj.get('content_type', 'image/jpeg'),
        data=base64.b64decode(data) if data is not None else None,
        ref=obj.get('ref'),
    )


def record_to_dict(record: Record) -> Dict[str, Any]:
    """Serialize a record to a JSON-safe dict."""
    return {
        'id': record.id,
        'kind': record.kind.value,
        'owner_label': record.owner_label,
        'fields': dict(record.payload.fields),
        'attachment': attachment_to_dict(record.payload.attachment) if record.payload.attachment else None,
        'created_at': encode_datetime(record.created_at),
        'last_modified': encode_datetime(record.last_modified),
        'author_id': record.author_id,
        'author_name': record.author_name,
        'remote_ref': record.remote_ref,
    }


def record_from_dict(obj: Dict[str, Any]) -> Record:
    """
    Deserialize a record.

    Raises:
        KeyError: If a required key is missing
        ValueError: If a value cannot be parsed
    """
    created_at = decode_datetime(obj['created_at'])
    last_modified = obj.get('last_modified')
    attachment = obj.get('attachment')
    return Record(
        id=obj['id'],
        kind=RecordKind(obj.get('kind', RecordKind.REGULAR.value)),
        owner_label=obj['owner_label'],
        payload=Payload(
            fields=dict(obj.get('fields') or {}),
            attachment=attachment_from_dict(attachment) if attachment else None,
        ),
        created_at=created_at,
        last_modified=decode_datetime(last_modified) if last_modified else created_at,
        author_id=obj.get('author_id'),
        author_name=obj.get('author_name'),
        remote_ref=obj.get('remote_ref'),
    )


def location_entry_to_dict(entry: LocationEntry) -> Dict[str, Any]:
    return {
        'id': entry.id,
        'location': entry.location,
        'date': encode_datetime(entry.date),
        'is_travel': entry.is_travel,
    }


def location_entry_from_dict(obj: Dict[str, Any]) -> LocationEntry:
    return LocationEntry(
        id=obj['id'],
        location=obj['location'],
        date=decode_datetime(obj['date']),
        is_travel=bool(obj.get('is_travel', False)),
    )


def profile_to_dict(profile: Profile) -> Dict[str, Any]:
    """Serialize a profile to a JSON-safe dict."""
    return {
        'id': profile.id,
        'name': profile.name,
        'vision': profile.vision,
        'created_at': encode_datetime(profile.created_at),
        'last_modified': encode_datetime(profile.last_modified),
        'selfie': attachment_to_dict(profile.selfie) if profile.selfie else None,
        'current_location': profile.current_location,
        'location_history': [location_entry_to_dict(e) for e in profile.location_history],
        'author_id': profile.author_id,
        'remote_ref': profile.remote_ref,
    }


def profile_from_dict(obj: Dict[str, Any]) -> Profile:
    """
    Deserialize a profile.

    Raises:
        KeyError: If a required key is missing
        ValueError: If a value cannot be parsed
    """
    created_at = decode_datetime(obj['created_at'])
    last_modified: Optional[str] = obj.get('last_modified')
    selfie = obj.get('selfie')
    return Profile(
        id=obj['id'],
        name=obj['name'],
        vision=obj.get('vision', ''),
        created_at=created_at,
        last_modified=decode_datetime(last_modified) if last_modified else created_at,
        selfie=attachment_from_dict(selfie) if selfie else None,
        current_location=obj.get('current_location'),
        location_history=tuple(location_entry_from_dict(e) for e in obj.get('location_history') or []),
        author_id=obj.get('author_id'),
        remote_ref=obj.get('remote_ref'),
    )
