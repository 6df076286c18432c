"""Session tracker service: the events watcher wired into the activity store."""

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from . import actions
from .config import DEFAULT_INACTIVE_THRESHOLD_MS, DEFAULT_REMOVE_ENDED_SESSIONS_MS, TrackerConfig
from .events import EventWatcher, SessionEventModel
from .models import (
    ActivityEvent,
    ActivityStats,
    ActivityType,
    ParsedTranscriptEntry,
    Session,
    SessionCounts,
)
from .store import ActivityStore
from .transcript import read_transcript
from .transcript_watcher import TranscriptWatcher

logger = logging.getLogger("agent-tracker.tracker")

# Tool the agent calls to publish a one-line summary of its current work
WORK_SUMMARY_TOOL = "mcp__plugin_agent-tracker_agent-tracker__set_work_summary"


class SessionTrackerService:
    """Tracks agent sessions from the events file.

    Usage:
        service = SessionTrackerService(events_file=Path("~/.agent-tracker/sessions.jsonl"))
        service.subscribe(lambda: render(service.get_sessions()))
        service.start()
        # ... every few seconds
        service.update_session_statuses()
        # ... later
        service.stop()
    """

    def __init__(
        self,
        events_file: Path,
        inactive_threshold_ms: int = DEFAULT_INACTIVE_THRESHOLD_MS,
        remove_ended_sessions_ms: int = DEFAULT_REMOVE_ENDED_SESSIONS_MS,
        *,
        transcript_retry_interval: float = 1.0,
        watch: bool = True,
        store: ActivityStore | None = None,
    ):
        self.store = store or ActivityStore(
            inactive_threshold_ms=inactive_threshold_ms,
            remove_ended_sessions_ms=remove_ended_sessions_ms,
        )
        self.watcher = EventWatcher(
            self._handle_event, self._handle_error, Path(events_file).expanduser(), watch=watch
        )
        self.transcript_retry_interval = transcript_retry_interval
        self._watch = watch
        self._started = False

    @classmethod
    def from_config(cls, config: TrackerConfig, *, watch: bool = True) -> "SessionTrackerService":
        return cls(
            events_file=config.events_file,
            inactive_threshold_ms=config.inactive_threshold_ms,
            remove_ended_sessions_ms=config.remove_ended_sessions_ms,
            transcript_retry_interval=config.transcript_retry_ms / 1000,
            watch=watch,
        )

    def start(self) -> None:
        """Start watching for events. Idempotent."""
        if self._started:
            return
        self.watcher.start()
        self._started = True

    def stop(self) -> None:
        """Stop watching for events. Idempotent."""
        if not self._started:
            return
        self.watcher.stop()
        self._started = False

    def is_started(self) -> bool:
        return self._started

    def file_exists(self) -> bool:
        return self.watcher.file_exists()

    def get_sessions(self) -> list[Session]:
        return self.store.get_sessions()

    def get_session(self, session_id: str) -> Session | None:
        return self.store.get_session(session_id)

    def get_session_counts(self) -> SessionCounts:
        return self.store.get_session_counts()

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def update_session_statuses(self) -> None:
        self.store.update_session_statuses()

    def update_session_activity_from_transcript(self, session_id: str, timestamp: datetime) -> None:
        self.store.update_session_activity_from_transcript(session_id, timestamp)

    def get_stats(self) -> ActivityStats:
        return self.store.get_stats()

    def get_recent_activity(self, limit: int | None = None) -> list[ActivityEvent]:
        return self.store.get_recent_activity(limit)

    def get_session_activity(self, session_id: str, limit: int | None = None) -> list[ActivityEvent]:
        return self.store.get_session_activity(session_id, limit)

    def read_transcript(self, session_id: str) -> list[ParsedTranscriptEntry]:
        """Fully load a tracked session's transcript.

        Raises:
            KeyError: if the session is not tracked
            FileNotFoundError: if the transcript does not exist yet
        """
        session = self._require_session(session_id)
        return read_transcript(Path(session.transcript_path))

    def watch_transcript(
        self,
        session_id: str,
        on_new_entries: Callable[[list[ParsedTranscriptEntry]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> TranscriptWatcher:
        """Start a live tail of a session's transcript; the caller stops it."""
        session = self._require_session(session_id)
        watcher = TranscriptWatcher(
            Path(session.transcript_path),
            on_new_entries,
            on_error,
            retry_interval=self.transcript_retry_interval,
            watch=self._watch,
        )
        watcher.start()
        return watcher

    def _require_session(self, session_id: str) -> Session:
        session = self.store.get_session(session_id)
        if session is None:
            raise KeyError(f"Unknown session: {session_id}")
        return session

    def _handle_event(self, event: SessionEventModel) -> None:
        if (
            isinstance(event, ActivityEvent)
            and event.activity_type == ActivityType.TOOL_USE
            and event.tool_name == WORK_SUMMARY_TOOL
            and event.tool_input
        ):
            summary = event.tool_input.get("summary")
            if summary and isinstance(summary, str):
                self.store.dispatch(actions.update_work_summary(event.session_id, summary))

        self.store.dispatch(actions.action_for_event(event))

    def _handle_error(self, error: Exception) -> None:
        logger.warning(f"Event watcher error: {error}")
