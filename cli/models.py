"""Command request data types for the journal shell."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class AddEntryCommand:
    """Add a journal entry for a person."""

    person: str
    activity: str
    assumption: str = ""
    photo_path: str | None = None
    command: Literal["add"] = "add"


@dataclass(frozen=True)
class EditEntryCommand:
    """Replace the activity and assumption of an entry."""

    record_id: str
    activity: str
    assumption: str = ""
    command: Literal["edit"] = "edit"


@dataclass(frozen=True)
class DeleteEntryCommand:
    """Delete an entry."""

    record_id: str
    command: Literal["delete"] = "delete"


@dataclass(frozen=True)
class ListEntriesCommand:
    """List entries, optionally only those of one person."""

    person: str | None = None
    command: Literal["list"] = "list"


@dataclass(frozen=True)
class ShowPhotoCommand:
    """Save an entry's photo to a file."""

    record_id: str
    output_path: str
    command: Literal["photo"] = "photo"


@dataclass(frozen=True)
class ListActivitiesCommand:
    """List the current author's activities."""

    command: Literal["activities"] = "activities"


@dataclass(frozen=True)
class AddActivityCommand:
    """Add an activity."""

    name: str
    command: Literal["add-activity"] = "add-activity"


@dataclass(frozen=True)
class RenameActivityCommand:
    """Rename an activity."""

    record_id: str
    name: str
    command: Literal["rename-activity"] = "rename-activity"


@dataclass(frozen=True)
class DeleteActivityCommand:
    """Delete an activity."""

    record_id: str
    command: Literal["delete-activity"] = "delete-activity"


@dataclass(frozen=True)
class MoveCommand:
    """Record a move or a trip to a location."""

    location: str
    is_travel: bool = False
    what_for: str = ""
    command: Literal["move", "travel"] = "move"


@dataclass(frozen=True)
class ShowProfileCommand:
    """Show the current profile."""

    command: Literal["profile"] = "profile"


@dataclass(frozen=True)
class SetProfileCommand:
    """Change the profile name or vision."""

    field: Literal["name", "vision"]
    value: str
    command: Literal["set-name", "set-vision"] = "set-name"


@dataclass(frozen=True)
class SyncCommand:
    """Run a sync pass now."""

    command: Literal["sync"] = "sync"


@dataclass(frozen=True)
class StatusCommand:
    """Show replica and sync status."""

    command: Literal["status"] = "status"


@dataclass(frozen=True)
class WhoAmICommand:
    """Show the resolved identity."""

    command: Literal["whoami"] = "whoami"


@dataclass(frozen=True)
class ResetCommand:
    """Delete all data authored by the current identity."""

    confirmed: bool = False
    command: Literal["reset"] = "reset"


CommandRequest = (
    AddEntryCommand
    | EditEntryCommand
    | DeleteEntryCommand
    | ListEntriesCommand
    | ShowPhotoCommand
    | ListActivitiesCommand
    | AddActivityCommand
    | RenameActivityCommand
    | DeleteActivityCommand
    | MoveCommand
    | ShowProfileCommand
    | SetProfileCommand
    | SyncCommand
    | StatusCommand
    | WhoAmICommand
    | ResetCommand
)
