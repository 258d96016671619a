"""Shell constants and styling."""

from prompt_toolkit.styles import Style

COMMANDS = [
    "add", "edit", "delete", "list", "photo",
    "activities", "add-activity", "rename-activity", "delete-activity",
    "move", "travel", "profile", "set-name", "set-vision",
    "sync", "status", "whoami", "reset", "clear", "exit", "help",
]

ENTRY_ID_COMMANDS = ("edit", "delete", "photo")
ACTIVITY_ID_COMMANDS = ("rename-activity", "delete-activity")

STYLE = Style.from_dict(
    {
        "prompt": "#3FA796 bold",
        "command": "#0088ff bold",
    }
)

TEAL = "\033[38;2;63;167;150m"
DIM = "\033[2m"
RESET = "\033[0m"

LOGO = f"""{TEAL}
     _                              _
    (_) ___  _   _ _ __ _ __   __ _| |   ___ _   _ _ __   ___
    | |/ _ \\| | | | '__| '_ \\ / _` | |  / __| | | | '_ \\ / __|
    | | (_) | |_| | |  | | | | (_| | |  \\__ \\ |_| | | | | (__
   _/ |\\___/ \\__,_|_|  |_| |_|\\__,_|_|  |___/\\__, |_| |_|\\___|
  |__/                                       |___/
{RESET}"""

WELCOME_TITLE = "journal-sync - shared journal with local-first sync"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "journal> "

SHORT_ID_LENGTH = 8

HELP_TEXT = """Available commands:
  add <person> <activity...> [-- <assumption...>] [--photo <path>]
                                      Add a journal entry
  edit <id> <activity...> [-- <assumption...>]
                                      Edit one of your entries
  delete <id>                         Delete one of your entries
  list [person]                       List entries (optionally for one person)
  photo <id> <output_path>            Save an entry's photo to a file
  activities                          List your activities
  add-activity <name...>              Add an activity
  rename-activity <id> <name...>      Rename one of your activities
  delete-activity <id>                Delete one of your activities
  move <location...>                  Record that you moved to a location
  travel <location...> [-- <what-for...>]
                                      Record a trip
  profile                             Show your profile
  set-name <name...>                  Set your profile name
  set-vision <text...>                Set your profile vision
  sync                                Sync with the record store now
  status                              Show replica and sync status
  whoami                              Show your author identity
  reset [--yes]                       Delete everything you authored
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Ids may be shortened to any unique prefix (the first 8 characters are shown).
Use '--' to separate the activity from the assumption in add/edit.
Examples:
  set-name Alice
  add Bob "went running" -- "he wanted fresh air"
  add Alice cooking --photo ./dinner.jpg
  travel Lisbon -- a conference
  edit 3f2a9c1d "went swimming"
  delete 3f2a9c1d"""
