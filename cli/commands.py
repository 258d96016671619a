"""Command handler functions for shell operations."""

from pathlib import Path

from cli.models import (
    AddActivityCommand,
    AddEntryCommand,
    DeleteActivityCommand,
    DeleteEntryCommand,
    EditEntryCommand,
    ListActivitiesCommand,
    ListEntriesCommand,
    MoveCommand,
    RenameActivityCommand,
    ResetCommand,
    SetProfileCommand,
    ShowPhotoCommand,
    ShowProfileCommand,
    StatusCommand,
    SyncCommand,
    WhoAmICommand,
)
from cli.utils import format_file_size, format_profile, format_record, resolve_id, short_id
from common.logging_config import get_logger
from replica.session import Session

logger = get_logger(__name__)


async def handle_add(cmd: AddEntryCommand, session: Session) -> str:
    """
    Handle 'add' command.

    Args:
        cmd: AddEntryCommand with person, activity, assumption and optional photo path
        session: Running session

    Returns:
        Success or error message
    """
    photo = None
    if cmd.photo_path:
        path = Path(cmd.photo_path).expanduser()
        if not path.is_file():
            return f"Error: Photo not found: {cmd.photo_path}"
        photo = path.read_bytes()
        if not photo:
            return f"Error: Photo is empty: {cmd.photo_path}"

    logger.info(f"Executing add command: person={cmd.person} photo={photo is not None}")
    record = await session.add_entry(cmd.person, cmd.activity, cmd.assumption, photo)
    return f"Added entry {short_id(record.id)}: {record.display_text()}"


async def handle_edit(cmd: EditEntryCommand, session: Session) -> str:
    """
    Handle 'edit' command.

    Args:
        cmd: EditEntryCommand with id prefix, activity and assumption
        session: Running session

    Returns:
        Success message

    Raises:
        NotAuthorError: If the entry was written by someone else
    """
    record_id = resolve_id(session.entries.state, cmd.record_id)
    record = await session.edit_entry(record_id, cmd.activity, cmd.assumption)
    return f"Updated entry {short_id(record.id)}: {record.display_text()}"


async def handle_delete(cmd: DeleteEntryCommand, session: Session) -> str:
    record_id = resolve_id(session.entries.state, cmd.record_id)
    record = await session.delete_entry(record_id)
    return f"Deleted entry {short_id(record.id)}: {record.display_text()}"


async def handle_list(cmd: ListEntriesCommand, session: Session) -> str:
    """
    Handle 'list' command.

    Args:
        cmd: ListEntriesCommand with optional person filter
        session: Running session

    Returns:
        Formatted list of entries, oldest first
    """
    records = list(session.entries.state)
    if cmd.person:
        wanted = cmd.person.lower()
        records = [r for r in records if r.owner_label.lower() == wanted]
    if not records:
        return "No entries."
    lines = [format_record(r, owned=session.identity.owns(r)) for r in records]
    lines.append(f"\n{len(records)} entr{'y' if len(records) == 1 else 'ies'}")
    return "\n".join(lines)


async def handle_photo(cmd: ShowPhotoCommand, session: Session) -> str:
    record_id = resolve_id(session.entries.state, cmd.record_id)
    data = await session.entry_photo(record_id)
    if data is None:
        return f"Entry {short_id(record_id)} has no photo available."
    output = Path(cmd.output_path).expanduser()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    return f"Saved photo ({format_file_size(len(data))}) to {output}"


async def handle_activities(cmd: ListActivitiesCommand, session: Session) -> str:
    records = list(session.activities.state)
    if not records:
        return "No activities."
    return "\n".join(format_record(r, owned=session.identity.owns(r)) for r in records)


async def handle_add_activity(cmd: AddActivityCommand, session: Session) -> str:
    record = await session.add_activity(cmd.name)
    return f"Added activity {short_id(record.id)}: {record.display_text()}"


async def handle_rename_activity(cmd: RenameActivityCommand, session: Session) -> str:
    record_id = resolve_id(session.activities.state, cmd.record_id)
    record = await session.rename_activity(record_id, cmd.name)
    return f"Renamed activity {short_id(record.id)}: {record.display_text()}"


async def handle_delete_activity(cmd: DeleteActivityCommand, session: Session) -> str:
    record_id = resolve_id(session.activities.state, cmd.record_id)
    record = await session.delete_activity(record_id)
    return f"Deleted activity {short_id(record.id)}: {record.display_text()}"


async def handle_move(cmd: MoveCommand, session: Session) -> str:
    """
    Handle 'move' and 'travel' commands.

    Args:
        cmd: MoveCommand with location, travel flag and purpose
        session: Running session

    Returns:
        The posted location update
    """
    logger.info(f"Executing {cmd.command} command: location={cmd.location}")
    record = await session.move_to(cmd.location, cmd.is_travel, cmd.what_for)
    return f"Posted {short_id(record.id)}: {record.display_text()}"


async def handle_profile(cmd: ShowProfileCommand, session: Session) -> str:
    return format_profile(session.profiles.current)


async def handle_set_profile(cmd: SetProfileCommand, session: Session) -> str:
    if cmd.field == "name":
        profile = await session.profiles.update(name=cmd.value)
    else:
        profile = await session.profiles.update(vision=cmd.value)
    return f"Profile updated.\n{format_profile(profile)}"


async def handle_sync(cmd: SyncCommand, session: Session) -> str:
    """
    Handle 'sync' command.

    Returns:
        One summary line per collection
    """
    results = await session.sync_all()
    lines = []
    for name, result in results.items():
        if result is None:
            lines.append(f"{name}: not synced (store unreachable, identity unknown or sync already running)")
        else:
            lines.append(f"{name}: {result.summary()}")
    return "\n".join(lines)


async def handle_status(cmd: StatusCommand, session: Session) -> str:
    status = session.status()
    return "\n".join([
        f"Author:      {status['author_id'] or '(unknown)'}",
        f"Name:        {status['display_name'] or '(unset)'}",
        f"Entries:     {status['entries']} ({status['pending_entries']} queued for retry)",
        f"Activities:  {status['activities']} ({status['pending_activities']} queued for retry)",
        f"Syncing:     {'yes' if status['syncing'] else 'no'}",
        f"Sync passes: {status['sync_passes']}",
    ])


async def handle_whoami(cmd: WhoAmICommand, session: Session) -> str:
    author_id = session.identity.current_author_id() or await session.identity.resolve()
    if author_id is None:
        return "Identity unknown (record store unreachable or not signed in)."
    name = session.owner_name()
    return f"{author_id} ({name})" if name else author_id


async def handle_reset(cmd: ResetCommand, session: Session) -> str:
    """
    Handle 'reset' command.

    Args:
        cmd: ResetCommand; nothing is deleted unless confirmed
        session: Running session

    Returns:
        Outcome message
    """
    if not cmd.confirmed:
        return "This deletes every entry, activity and profile you authored. Run 'reset --yes' to confirm."
    logger.info("Executing reset command")
    if await session.reset_account():
        return "All your data was deleted."
    return "Error: Reset failed; your local data was left untouched. Try again when online."
