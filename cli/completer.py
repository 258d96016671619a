"""Custom completer for the journal shell with record id completion."""

from typing import Iterable, Optional

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import ACTIVITY_ID_COMMANDS, COMMANDS, ENTRY_ID_COMMANDS
from cli.utils import short_id
from replica.session import Session


class JournalCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Record id completion for commands taking an entry or activity id
    """

    def __init__(self, session: Optional[Session] = None):
        self.session = session

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.

        For the first token, completes command names.
        For the second token of id-taking commands, completes record ids.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        position = len(tokens) if is_typing_new_token else len(tokens) - 1
        if position != 1 or self.session is None:
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        if command in ENTRY_ID_COMMANDS:
            yield from self._complete_ids(self.session.entries.state, current_word)
        elif command in ACTIVITY_ID_COMMANDS:
            yield from self._complete_ids(self.session.activities.state, current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_ids(self, records, partial: str) -> Iterable[Completion]:
        """Complete short ids of records the current author may edit."""
        for record in records:
            if not self.session.identity.owns(record):
                continue
            if record.id.startswith(partial):
                yield Completion(
                    record.id[:max(len(short_id(record.id)), len(partial))],
                    start_position=-len(partial),
                    display_meta=record.display_text(),
                )
