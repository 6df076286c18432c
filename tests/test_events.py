"""Tests for event models and EventWatcher."""

from pathlib import Path

import pytest
from conftest import activity_event, append_jsonl, end_event, start_event
from pydantic import ValidationError

from agent_tracker.events import EventWatcher
from agent_tracker.models import (
    ActivityEvent,
    ActivityType,
    SessionEndEvent,
    SessionStartEvent,
    parse_event,
)


class TestParseEvent:
    """Tests for parse_event."""

    def test_session_start(self) -> None:
        """Start events carry their terminal, docker and git metadata."""
        event = parse_event(start_event("s1"))
        assert isinstance(event, SessionStartEvent)
        assert event.session_id == "s1"
        assert event.terminal.term_program == "iTerm.app"
        assert event.git.branch == "main"
        assert event.timestamp.tzinfo is not None

    def test_session_end(self) -> None:
        """End events are recognised by event_type."""
        assert isinstance(parse_event(end_event("s1")), SessionEndEvent)

    def test_activity(self) -> None:
        """Activity events keep the tool details."""
        event = parse_event(
            activity_event("s1", "tool_use", tool_name="Edit", tool_input={"file_path": "/x"})
        )
        assert isinstance(event, ActivityEvent)
        assert event.activity_type == ActivityType.TOOL_USE
        assert event.tool_name == "Edit"
        assert event.tool_input == {"file_path": "/x"}

    def test_minimal_start(self) -> None:
        """Missing metadata falls back to defaults."""
        event = parse_event(
            {"event_type": "session_start", "session_id": "s", "timestamp": "2025-10-17T00:00:00Z"}
        )
        assert event.cwd == ""
        assert event.docker.is_container is False

    def test_unknown_fields_kept(self) -> None:
        """Fields added by newer hook scripts are accepted."""
        event = parse_event(start_event("s1", extra_field="x"))
        assert event.model_extra == {"extra_field": "x"}

    @pytest.mark.parametrize(
        "data",
        [
            {"event_type": "bogus", "session_id": "s", "timestamp": "2025-10-17T00:00:00Z"},
            {"event_type": "session_start", "timestamp": "2025-10-17T00:00:00Z"},
            {"event_type": "activity", "session_id": "s", "timestamp": "2025-10-17T00:00:00Z"},
            {"event_type": "activity", "activity_type": "dance", "session_id": "s",
             "timestamp": "2025-10-17T00:00:00Z"},
            {"event_type": "session_end", "session_id": "s", "timestamp": "yesterday"},
        ],
    )
    def test_invalid(self, data: dict) -> None:
        """Unknown types and missing or malformed fields are rejected."""
        with pytest.raises(ValidationError):
            parse_event(data)


class TestEventWatcher:
    """Tests for EventWatcher."""

    def make_watcher(self, log_path: Path) -> tuple[EventWatcher, list, list]:
        events: list = []
        errors: list[Exception] = []
        watcher = EventWatcher(events.append, errors.append, log_path, watch=False)
        return watcher, events, errors

    def test_creates_missing_file(self, tmp_path: Path) -> None:
        """The events file and its directory are created on start."""
        log_path = tmp_path / "tracker" / "sessions.jsonl"
        watcher, events, errors = self.make_watcher(log_path)
        assert not watcher.file_exists()
        watcher.start()
        assert watcher.file_exists()
        assert events == []
        assert errors == []
        watcher.stop()

    def test_reads_history_on_start(self, sample_events: Path, tmp_path: Path) -> None:
        """All existing events are delivered once, in file order."""
        log_path = tmp_path / "sessions.jsonl"
        log_path.write_bytes(sample_events.read_bytes())
        watcher, events, errors = self.make_watcher(log_path)
        watcher.start()
        assert [e.event_type for e in events] == [
            "session_start",
            "session_start",
            "activity",
            "activity",
            "session_end",
        ]
        assert errors == []
        assert watcher.read_new_events() == 0
        assert watcher.position == log_path.stat().st_size

    def test_bad_line_skipped(self, tmp_path: Path) -> None:
        """A malformed line is reported and does not affect its neighbours."""
        log_path = tmp_path / "sessions.jsonl"
        watcher, events, errors = self.make_watcher(log_path)
        watcher.start()

        append_jsonl(log_path, start_event("a"), "not json", start_event("b"))
        assert watcher.read_new_events() == 3
        assert [e.session_id for e in events] == ["a", "b"]
        assert len(errors) == 1
        assert isinstance(errors[0], ValueError)
        assert "Failed to parse event" in str(errors[0])

    def test_unknown_event_type_reported(self, tmp_path: Path) -> None:
        """Records that fail validation are reported, not delivered."""
        log_path = tmp_path / "sessions.jsonl"
        watcher, events, errors = self.make_watcher(log_path)
        watcher.start()

        append_jsonl(log_path, {"event_type": "mystery", "session_id": "x"})
        watcher.read_new_events()
        assert events == []
        assert len(errors) == 1

    def test_handler_error_reported(self, tmp_path: Path) -> None:
        """An exception raised by on_event is reported and later events still arrive."""
        log_path = tmp_path / "sessions.jsonl"
        seen: list[str] = []
        errors: list[Exception] = []

        def on_event(event) -> None:
            seen.append(event.session_id)
            if event.session_id == "a":
                raise RuntimeError("boom")

        watcher = EventWatcher(on_event, errors.append, log_path, watch=False)
        watcher.start()
        append_jsonl(log_path, start_event("a"), start_event("b"))
        watcher.read_new_events()
        assert seen == ["a", "b"]
        assert [str(e) for e in errors] == ["boom"]

    def test_incremental_reads(self, tmp_path: Path) -> None:
        """Each read delivers only what was appended since the last one."""
        log_path = tmp_path / "sessions.jsonl"
        watcher, events, _ = self.make_watcher(log_path)
        watcher.start()

        append_jsonl(log_path, start_event("a"))
        watcher.read_new_events()
        append_jsonl(log_path, activity_event("a", "prompt_submit"))
        watcher.read_new_events()
        watcher.read_new_events()

        assert [type(e) for e in events] == [SessionStartEvent, ActivityEvent]

    def test_default_path_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without an explicit path the configured events file is used."""
        monkeypatch.setenv("AGENT_TRACKER_EVENTS_FILE", str(tmp_path / "env.jsonl"))
        watcher = EventWatcher(lambda e: None, watch=False)
        assert watcher.log_path == tmp_path / "env.jsonl"
