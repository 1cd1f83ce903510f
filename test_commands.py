"""Tests for control-command dispatch."""

from datetime import datetime, timedelta, timezone

import pytest

from commands import COMMANDS, CommandDispatcher, help_text
from pet import PetState, StateStore
from scrollback import ScrollbackBuffer


@pytest.fixture
def store(tmp_path):
    s = StateStore(tmp_path / "state.json", name="Whiskers")
    s.load()
    s.state = PetState(
        name="Whiskers",
        mood=0.734,
        last_interaction=datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc),
        chat_history=[("hi", "meow"), ("treat", "purr")],
    )
    return s


@pytest.fixture
def dispatcher(store):
    return CommandDispatcher(store, ScrollbackBuffer.from_history(store.state.chat_history, "Whiskers"))


class TestDispatch:
    def test_stats(self, dispatcher, store):
        result = dispatcher.dispatch("/stats")
        assert result.handled and not result.exit
        text = dispatcher.scrollback.messages[-1].text
        assert text.startswith("Whiskers: Current Stats:")
        assert "Mood: 73%" in text
        assert "Last Interaction: 2026-03-04 05:06:07 UTC" in text
        assert "Chat History: 2 messages" in text
        assert len(store.state.chat_history) == 2

    def test_stats_converts_to_utc(self, dispatcher, store):
        store.state.last_interaction = datetime(2026, 3, 4, 7, 6, 7, tzinfo=timezone(timedelta(hours=2)))
        dispatcher.dispatch("/stats")
        assert "Last Interaction: 2026-03-04 05:06:07 UTC" in dispatcher.scrollback.messages[-1].text

    def test_clear_only_touches_display(self, dispatcher, store):
        assert dispatcher.dispatch("/clear").handled
        assert [m.text for m in dispatcher.scrollback] == ["Chat window cleared."]
        assert len(store.state.chat_history) == 2
        assert not store.path.exists()

    def test_purge(self, dispatcher, store):
        assert dispatcher.dispatch("/purge").handled
        assert store.state.chat_history == []
        assert store.state.mood == 0.734
        assert store.state.name == "Whiskers"
        assert [m.text for m in dispatcher.scrollback] == ["Chat history has been purged from disk."]
        assert store.path.exists()

    def test_help(self, dispatcher):
        assert dispatcher.dispatch("/help").handled
        text = dispatcher.scrollback.messages[-1].text
        for c in COMMANDS:
            assert c["name"] in text

    def test_exit_saves_and_stops(self, dispatcher, store):
        result = dispatcher.dispatch("  /exit  ")
        assert result.exit
        assert "Goodbye" in dispatcher.scrollback.messages[-1].text
        assert store.path.exists()

    def test_trailing_whitespace_still_matches(self, dispatcher):
        assert dispatcher.dispatch("/stats   ").handled

    @pytest.mark.parametrize("line", ["/bogus", "/STATS", "/stats now", "hello", "stats"])
    def test_unrecognized_falls_through(self, dispatcher, line):
        before = len(dispatcher.scrollback)
        result = dispatcher.dispatch(line)
        assert not result.handled and not result.exit
        assert len(dispatcher.scrollback) == before


class TestCaptureShellCommand:
    def test_captures_trimmed(self, dispatcher):
        assert dispatcher.capture_shell_command("$  git log --oneline ") == "git log --oneline"
        assert list(dispatcher.captured_commands) == ["git log --oneline"]

    def test_ignores_other_lines(self, dispatcher):
        assert dispatcher.capture_shell_command("hello $HOME") is None
        assert not dispatcher.captured_commands

    def test_capped_at_five(self, dispatcher):
        for i in range(8):
            dispatcher.capture_shell_command(f"$cmd{i}")
        assert list(dispatcher.captured_commands) == [f"cmd{i}" for i in range(3, 8)]


def test_help_text_lists_every_command():
    lines = help_text().splitlines()
    assert lines[0] == "Available Commands:"
    assert len(lines) == len(COMMANDS) + 1
    assert lines[1].startswith("/stats - ")
