"""Formatting helpers for shell output."""

from datetime import datetime
from typing import Iterable, Optional

from cli.constants import DIM, RESET, SHORT_ID_LENGTH
from common.exceptions import RecordNotFoundError
from common.types import Profile, Record, RecordKind


def short_id(record_id: str) -> str:
    return record_id[:SHORT_ID_LENGTH]


def resolve_id(records: Iterable[Record], prefix: str) -> str:
    """
    Expand an id prefix to the full id of exactly one record.

    Args:
        records: Candidate records
        prefix: Full id or unique prefix

    Returns:
        Full record id

    Raises:
        RecordNotFoundError: If no record or more than one record matches
    """
    matches = [r.id for r in records if r.id.startswith(prefix)]
    if prefix in matches:
        return prefix
    if not matches:
        raise RecordNotFoundError(f"No record matches id '{prefix}'")
    if len(matches) > 1:
        raise RecordNotFoundError(f"Id '{prefix}' is ambiguous ({len(matches)} matches)")
    return matches[0]


def format_when(value: datetime) -> str:
    return value.astimezone().strftime('%Y-%m-%d %H:%M')


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count with a binary unit (B, KiB, MiB, GiB).

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    size = size_bytes / 1024.0
    for unit in ['KiB', 'MiB', 'GiB']:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    return f"{size:.2f} TiB"


def format_record(record: Record, owned: bool = False) -> str:
    """One shell line for a record; own records are marked with '*'."""
    marker = "*" if owned else " "
    pending = f" {DIM}(not synced){RESET}" if record.remote_ref is None else ""
    photo = " [photo]" if record.payload.attachment is not None else ""
    if record.kind == RecordKind.ACTIVITY:
        return f"{marker} {short_id(record.id)}  {record.display_text()}{pending}"
    return f"{marker} {short_id(record.id)}  {format_when(record.created_at)}  {record.display_text()}{photo}{pending}"


def format_profile(profile: Optional[Profile]) -> str:
    if profile is None:
        return "No profile yet. Use 'set-name <name>' to create one."
    lines = [
        f"Name:     {profile.name or '(unset)'}",
        f"Vision:   {profile.vision or '(unset)'}",
        f"Location: {profile.current_location or '(unknown)'}",
    ]
    if profile.location_history:
        lines.append("History:")
        for entry in profile.location_history[-5:]:
            kind = "trip" if entry.is_travel else "move"
            lines.append(f"  {format_when(entry.date)}  {kind:<4}  {entry.location}")
    if profile.remote_ref is None:
        lines.append(f"{DIM}(not synced){RESET}")
    return "\n".join(lines)
