"""Tests for the shell command parser."""

import pytest

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


class TestEntryCommands:
    """Parsing of entry commands."""

    def test_add_with_assumption(self):
        cmd = parse_command("add Alice reading a book -- she was bored")

        assert cmd == AddEntryCommand(person="Alice", activity="reading a book", assumption="she was bored")

    def test_add_quoted_person_and_photo(self):
        cmd = parse_command('add "Aunt May" baking --photo ~/cake.jpg')

        assert cmd.person == "Aunt May"
        assert cmd.activity == "baking"
        assert cmd.photo_path == "~/cake.jpg"

    def test_add_requires_activity(self):
        with pytest.raises(ParseError, match="person and an activity"):
            parse_command("add Alice")

    def test_add_separator_without_activity(self):
        with pytest.raises(ParseError):
            parse_command("add Alice -- guess")

    def test_photo_option_requires_value(self):
        with pytest.raises(ParseError, match="--photo requires a value"):
            parse_command("add Alice reading --photo")

    def test_edit(self):
        cmd = parse_command("edit 1a2b3c4d chess -- rainy")

        assert cmd == EditEntryCommand(record_id="1a2b3c4d", activity="chess", assumption="rainy")

    def test_delete_requires_one_id(self):
        assert parse_command("delete abc") == DeleteEntryCommand(record_id="abc")
        with pytest.raises(ParseError, match="exactly 1 argument"):
            parse_command("delete a b")

    def test_list_with_and_without_person(self):
        assert parse_command("list") == ListEntriesCommand()
        assert parse_command("list Alice") == ListEntriesCommand(person="Alice")

    def test_photo(self):
        assert parse_command("photo abc out.jpg") == ShowPhotoCommand(record_id="abc", output_path="out.jpg")
        with pytest.raises(ParseError):
            parse_command("photo abc")


class TestActivityCommands:
    """Parsing of activity commands."""

    def test_activities(self):
        assert parse_command("activities") == ListActivitiesCommand()

    def test_add_activity_joins_words(self):
        assert parse_command("add-activity board games") == AddActivityCommand(name="board games")

    def test_rename_activity(self):
        assert parse_command("rename-activity abc go") == RenameActivityCommand(record_id="abc", name="go")

    def test_delete_activity(self):
        assert parse_command("delete-activity abc") == DeleteActivityCommand(record_id="abc")


class TestLocationAndProfileCommands:
    """Parsing of move, travel and profile commands."""

    def test_move(self):
        assert parse_command("move New York") == MoveCommand(location="New York")

    def test_travel_with_purpose(self):
        cmd = parse_command("travel Rome -- a conference")

        assert cmd == MoveCommand(location="Rome", is_travel=True, what_for="a conference", command="travel")

    def test_travel_requires_location(self):
        with pytest.raises(ParseError):
            parse_command("travel -- holiday")

    def test_profile_commands(self):
        assert parse_command("profile") == ShowProfileCommand()
        assert parse_command("set-name Alice Smith") == SetProfileCommand(field="name", value="Alice Smith")
        assert parse_command("set-vision live by the sea") == SetProfileCommand(
            field="vision", value="live by the sea", command="set-vision"
        )


class TestSessionCommands:
    """Parsing of sync, status, whoami and reset."""

    def test_no_argument_commands(self):
        assert parse_command("sync") == SyncCommand()
        assert parse_command("status") == StatusCommand()
        assert parse_command("whoami") == WhoAmICommand()

    def test_no_argument_commands_reject_arguments(self):
        with pytest.raises(ParseError, match="takes no arguments"):
            parse_command("sync now")

    def test_reset_confirmation(self):
        assert parse_command("reset") == ResetCommand(confirmed=False)
        assert parse_command("reset --yes") == ResetCommand(confirmed=True)
        with pytest.raises(ParseError):
            parse_command("reset please")


class TestParserErrors:
    """Invalid input."""

    def test_unknown_command(self):
        with pytest.raises(ParseError, match="Unknown command: fly"):
            parse_command("fly away")

    def test_empty_input(self):
        with pytest.raises(ParseError):
            parse_command("   ")

    def test_unbalanced_quotes(self):
        with pytest.raises(ParseError, match="Invalid syntax"):
            parse_command('add "Alice reading')
