"""Command parser for shell input."""

import shlex

from cli.models import (
    AddActivityCommand,
    AddEntryCommand,
    CommandRequest,
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


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]
    args = tokens[1:]

    if command_name == "add":
        return _parse_add(args)
    elif command_name == "edit":
        return _parse_edit(args)
    elif command_name == "delete":
        return DeleteEntryCommand(record_id=_single_id("delete", args))
    elif command_name == "list":
        return _parse_list(args)
    elif command_name == "photo":
        return _parse_photo(args)
    elif command_name == "activities":
        _no_args("activities", args)
        return ListActivitiesCommand()
    elif command_name == "add-activity":
        return AddActivityCommand(name=_joined("add-activity", args, "<name>"))
    elif command_name == "rename-activity":
        return _parse_rename_activity(args)
    elif command_name == "delete-activity":
        return DeleteActivityCommand(record_id=_single_id("delete-activity", args))
    elif command_name == "move":
        return MoveCommand(location=_joined("move", args, "<location>"))
    elif command_name == "travel":
        return _parse_travel(args)
    elif command_name == "profile":
        _no_args("profile", args)
        return ShowProfileCommand()
    elif command_name == "set-name":
        return SetProfileCommand(field="name", value=_joined("set-name", args, "<name>"), command="set-name")
    elif command_name == "set-vision":
        return SetProfileCommand(field="vision", value=_joined("set-vision", args, "<text>"), command="set-vision")
    elif command_name == "sync":
        _no_args("sync", args)
        return SyncCommand()
    elif command_name == "status":
        _no_args("status", args)
        return StatusCommand()
    elif command_name == "whoami":
        _no_args("whoami", args)
        return WhoAmICommand()
    elif command_name == "reset":
        return _parse_reset(args)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_add(args: list[str]) -> AddEntryCommand:
    """Parse 'add <person> <activity...> [-- <assumption...>] [--photo <path>]' command."""
    args, photo_path = _extract_option(args, "--photo")
    if len(args) < 2:
        raise ParseError("add requires a person and an activity")

    person = args[0]
    activity, assumption = _split_on_separator(args[1:])
    if not activity:
        raise ParseError("add requires an activity")

    return AddEntryCommand(
        person=person,
        activity=" ".join(activity),
        assumption=" ".join(assumption),
        photo_path=photo_path,
    )


def _parse_edit(args: list[str]) -> EditEntryCommand:
    """Parse 'edit <id> <activity...> [-- <assumption...>]' command."""
    if len(args) < 2:
        raise ParseError("edit requires an entry id and an activity")

    activity, assumption = _split_on_separator(args[1:])
    if not activity:
        raise ParseError("edit requires an activity")

    return EditEntryCommand(record_id=args[0], activity=" ".join(activity), assumption=" ".join(assumption))


def _parse_list(args: list[str]) -> ListEntriesCommand:
    """Parse 'list [person]' command."""
    return ListEntriesCommand(person=" ".join(args) if args else None)


def _parse_photo(args: list[str]) -> ShowPhotoCommand:
    """Parse 'photo <id> <output_path>' command."""
    if len(args) != 2:
        raise ParseError("photo requires exactly 2 arguments: <id> <output_path>")
    return ShowPhotoCommand(record_id=args[0], output_path=args[1])


def _parse_rename_activity(args: list[str]) -> RenameActivityCommand:
    """Parse 'rename-activity <id> <name...>' command."""
    if len(args) < 2:
        raise ParseError("rename-activity requires an activity id and a new name")
    return RenameActivityCommand(record_id=args[0], name=" ".join(args[1:]))


def _parse_travel(args: list[str]) -> MoveCommand:
    """Parse 'travel <location...> [-- <what-for...>]' command."""
    location, what_for = _split_on_separator(args)
    if not location:
        raise ParseError("travel requires a location")
    return MoveCommand(location=" ".join(location), is_travel=True, what_for=" ".join(what_for), command="travel")


def _parse_reset(args: list[str]) -> ResetCommand:
    """Parse 'reset [--yes]' command."""
    if args and args != ["--yes"]:
        raise ParseError("reset takes no arguments other than --yes")
    return ResetCommand(confirmed=bool(args))


def _find_separator(args: list[str]) -> int:
    """Find separator '--' in args, return index or -1."""
    try:
        return args.index("--")
    except ValueError:
        return -1


def _split_on_separator(args: list[str]) -> tuple[list[str], list[str]]:
    separator_index = _find_separator(args)
    if separator_index == -1:
        return list(args), []
    return list(args[:separator_index]), list(args[separator_index + 1 :])


def _extract_option(args: list[str], option: str) -> tuple[list[str], str | None]:
    """Remove '<option> <value>' from args, returning the rest and the value."""
    if option not in args:
        return list(args), None
    index = args.index(option)
    if index + 1 >= len(args):
        raise ParseError(f"{option} requires a value")
    return list(args[:index]) + list(args[index + 2 :]), args[index + 1]


def _single_id(command_name: str, args: list[str]) -> str:
    if len(args) != 1:
        raise ParseError(f"{command_name} requires exactly 1 argument: <id>")
    return args[0]


def _joined(command_name: str, args: list[str], placeholder: str) -> str:
    if not args:
        raise ParseError(f"{command_name} requires {placeholder}")
    return " ".join(args)


def _no_args(command_name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")
