"""Tests for JournalCompleter."""

import pytest
from prompt_toolkit.document import Document

from cli.completer import JournalCompleter
from cli.constants import COMMANDS
from common.types import RecordKind
from replica.session import Session


@pytest.fixture
def completer():
    """Create a JournalCompleter without a session."""
    return JournalCompleter()


def get_completions_list(completer, text):
    """Helper to get list of completion texts from completer."""
    doc = Document(text, len(text))
    return [c.text for c in completer.get_completions(doc, None)]


async def session_with_records(client, cache, make_record):
    """Session holding two own entries, one foreign entry and one own activity."""
    session = Session(client, cache)
    await session.identity.resolve()
    session.entries.state.replace([
        make_record("aaaa1111-0000-4000-8000-000000000001", activity="reading"),
        make_record("aaaa2222-0000-4000-8000-000000000002", activity="chess"),
        make_record("bbbb3333-0000-4000-8000-000000000003", author_id="u2"),
    ])
    session.activities.state.replace([
        make_record("cccc4444-0000-4000-8000-000000000004", kind=RecordKind.ACTIVITY),
    ])
    return session


class TestCommandCompletion:
    """Tests for command name completion."""

    def test_empty_input_shows_all_commands(self, completer):
        """Empty input should suggest all commands."""
        completions = get_completions_list(completer, "")
        for cmd in COMMANDS:
            assert cmd in completions

    def test_partial_command_filters(self, completer):
        """Partial command should filter to matching commands."""
        completions = get_completions_list(completer, "add")
        assert completions == ["add", "add-activity"]

    def test_case_insensitive(self, completer):
        """Command completion ignores case."""
        assert "status" in get_completions_list(completer, "STA")

    def test_no_match(self, completer):
        """Unknown prefix yields nothing."""
        assert get_completions_list(completer, "xyz") == []

    def test_no_id_completion_without_session(self, completer):
        """Without a session there are no ids to offer."""
        assert get_completions_list(completer, "delete ") == []


class TestIdCompletion:
    """Tests for record id completion."""

    @pytest.mark.asyncio
    async def test_entry_ids_offer_only_own_records(self, client, cache, make_record):
        """Foreign entries are not offered for edit or delete."""
        completer = JournalCompleter(await session_with_records(client, cache, make_record))

        completions = get_completions_list(completer, "edit ")

        assert completions == ["aaaa1111", "aaaa2222"]

    @pytest.mark.asyncio
    async def test_partial_id_filters(self, client, cache, make_record):
        """A typed prefix narrows the ids."""
        completer = JournalCompleter(await session_with_records(client, cache, make_record))

        assert get_completions_list(completer, "delete aaaa2") == ["aaaa2222"]

    @pytest.mark.asyncio
    async def test_long_prefix_is_kept(self, client, cache, make_record):
        """Completions are never shorter than what was typed."""
        completer = JournalCompleter(await session_with_records(client, cache, make_record))

        assert get_completions_list(completer, "photo aaaa1111-00") == ["aaaa1111-00"]

    @pytest.mark.asyncio
    async def test_activity_commands_complete_activity_ids(self, client, cache, make_record):
        """Activity commands offer activity ids."""
        completer = JournalCompleter(await session_with_records(client, cache, make_record))

        assert get_completions_list(completer, "rename-activity ") == ["cccc4444"]

    @pytest.mark.asyncio
    async def test_only_first_argument_is_completed(self, client, cache, make_record):
        """Later arguments get no id completion."""
        completer = JournalCompleter(await session_with_records(client, cache, make_record))

        assert get_completions_list(completer, "edit aaaa1111 ") == []
