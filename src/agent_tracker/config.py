"""agent-tracker configuration."""

import os
from pathlib import Path

from pydantic import BaseModel

DEFAULT_TRACKER_DIR = Path.home() / ".agent-tracker"
EVENTS_FILE_NAME = "sessions.jsonl"

DEFAULT_INACTIVE_THRESHOLD_MS = 5 * 60 * 1000
DEFAULT_REMOVE_ENDED_SESSIONS_MS = 60 * 1000
DEFAULT_TRANSCRIPT_RETRY_MS = 1000
DEFAULT_STATUS_INTERVAL_MS = 10 * 1000


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def default_events_file() -> Path:
    """Events file location, honouring AGENT_TRACKER_EVENTS_FILE and AGENT_TRACKER_DIR."""
    explicit = os.getenv("AGENT_TRACKER_EVENTS_FILE")
    if explicit:
        return Path(explicit).expanduser()
    base_dir = os.getenv("AGENT_TRACKER_DIR")
    tracker_dir = Path(base_dir).expanduser() if base_dir else DEFAULT_TRACKER_DIR
    return tracker_dir / EVENTS_FILE_NAME


class TrackerConfig(BaseModel):
    """Runtime settings for the session tracker."""

    events_file: Path
    inactive_threshold_ms: int = DEFAULT_INACTIVE_THRESHOLD_MS
    remove_ended_sessions_ms: int = DEFAULT_REMOVE_ENDED_SESSIONS_MS
    transcript_retry_ms: int = DEFAULT_TRANSCRIPT_RETRY_MS
    status_interval_ms: int = DEFAULT_STATUS_INTERVAL_MS
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, events_file: Path | None = None) -> "TrackerConfig":
        """Build a config from AGENT_TRACKER_* environment variables."""
        return cls(
            events_file=events_file or default_events_file(),
            inactive_threshold_ms=_env_int(
                "AGENT_TRACKER_INACTIVE_THRESHOLD_MS", DEFAULT_INACTIVE_THRESHOLD_MS
            ),
            remove_ended_sessions_ms=_env_int(
                "AGENT_TRACKER_REMOVE_ENDED_MS", DEFAULT_REMOVE_ENDED_SESSIONS_MS
            ),
            transcript_retry_ms=_env_int(
                "AGENT_TRACKER_TRANSCRIPT_RETRY_MS", DEFAULT_TRANSCRIPT_RETRY_MS
            ),
            status_interval_ms=_env_int(
                "AGENT_TRACKER_STATUS_INTERVAL_MS", DEFAULT_STATUS_INTERVAL_MS
            ),
            log_level=os.getenv("AGENT_TRACKER_LOG_LEVEL", "WARNING").upper(),
        )
