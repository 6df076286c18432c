"""Pytest configuration and fixtures."""

import json
from pathlib import Path

import pytest

from agent_tracker.store import ActivityStore


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_transcript(fixtures_dir: Path) -> Path:
    """Return path to transcript.jsonl fixture."""
    return fixtures_dir / "transcript.jsonl"


@pytest.fixture
def sample_events(fixtures_dir: Path) -> Path:
    """Return path to sessions.jsonl fixture."""
    return fixtures_dir / "sessions.jsonl"


@pytest.fixture
def store() -> ActivityStore:
    """Store with short thresholds: 1s until inactive, 0.5s until ended sessions are removed."""
    return ActivityStore(inactive_threshold_ms=1000, remove_ended_sessions_ms=500)


def append_jsonl(path: Path, *records: dict | str) -> None:
    """Append records (dicts are JSON-encoded, strings written verbatim) as lines."""
    with open(path, "a") as f:
        for rec in records:
            f.write((rec if isinstance(rec, str) else json.dumps(rec)) + "\n")


def start_event(session_id: str, timestamp: str = "2025-10-17T00:00:00Z", **extra) -> dict:
    return {
        "event_type": "session_start",
        "session_id": session_id,
        "cwd": f"/test/dir-{session_id}",
        "transcript_path": f"/test/transcript-{session_id}.jsonl",
        "terminal": {"tty": "/dev/ttys001", "term_program": "iTerm.app"},
        "docker": {"is_container": False},
        "git": {"is_repo": True, "branch": "main", "repo_name": "test"},
        "timestamp": timestamp,
        **extra,
    }


def end_event(session_id: str, timestamp: str = "2025-10-17T00:00:00Z") -> dict:
    return {**start_event(session_id, timestamp), "event_type": "session_end"}


def activity_event(
    session_id: str, activity_type: str, timestamp: str = "2025-10-17T00:00:00Z", **extra
) -> dict:
    return {
        "event_type": "activity",
        "activity_type": activity_type,
        "session_id": session_id,
        "timestamp": timestamp,
        **extra,
    }


def user_record(uuid: str, content, **extra) -> dict:
    return {
        "uuid": uuid,
        "type": "user",
        "timestamp": "2025-10-17T10:00:00Z",
        "message": {"role": "user", "content": content},
        **extra,
    }


def assistant_record(uuid: str, blocks: list[dict], **extra) -> dict:
    return {
        "uuid": uuid,
        "type": "assistant",
        "timestamp": "2025-10-17T10:00:05Z",
        "message": {"role": "assistant", "content": blocks},
        **extra,
    }
