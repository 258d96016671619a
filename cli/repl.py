"""REPL with prompt_toolkit for user interaction."""

import os
import sys

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout

from cli.commands import (
    handle_activities,
    handle_add,
    handle_add_activity,
    handle_delete,
    handle_delete_activity,
    handle_edit,
    handle_list,
    handle_move,
    handle_photo,
    handle_profile,
    handle_rename_activity,
    handle_reset,
    handle_set_profile,
    handle_status,
    handle_sync,
    handle_whoami,
)
from cli.completer import JournalCompleter
from cli.constants import (
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
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
from cli.parser import ParseError, parse_command
from common.exceptions import SyncError
from replica.session import Session

HANDLERS = {
    AddEntryCommand: handle_add,
    EditEntryCommand: handle_edit,
    DeleteEntryCommand: handle_delete,
    ListEntriesCommand: handle_list,
    ShowPhotoCommand: handle_photo,
    ListActivitiesCommand: handle_activities,
    AddActivityCommand: handle_add_activity,
    RenameActivityCommand: handle_rename_activity,
    DeleteActivityCommand: handle_delete_activity,
    MoveCommand: handle_move,
    ShowProfileCommand: handle_profile,
    SetProfileCommand: handle_set_profile,
    SyncCommand: handle_sync,
    StatusCommand: handle_status,
    WhoAmICommand: handle_whoami,
    ResetCommand: handle_reset,
}


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


async def dispatch_command(cmd_obj, session: Session) -> str:
    """Dispatch parsed command to appropriate handler.

    Ownership, missing-record and payload errors are reported as messages.
    """
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj)}"
    try:
        return await handler(cmd_obj, session)
    except SyncError as e:
        return f"Error: {e}"


async def repl_loop(session: Session) -> None:
    """Start interactive REPL with prompt_toolkit."""
    history = InMemoryHistory()
    prompt_session: PromptSession = PromptSession(
        completer=JournalCompleter(session), history=history, style=STYLE
    )

    clear_screen()
    show_welcome()

    while True:
        try:
            with patch_stdout():
                user_input = await prompt_session.prompt_async([("class:prompt", PROMPT_TEXT)])

            if not user_input.strip():
                continue

            if user_input.strip() == "exit":
                print("Goodbye!")
                break

            if user_input.strip() == "help":
                print(HELP_TEXT)
                continue

            if user_input.strip() == "clear":
                clear_screen()
                show_welcome()
                continue

            cmd_obj = parse_command(user_input)
            result = await dispatch_command(cmd_obj, session)
            print(result)

        except ParseError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break
