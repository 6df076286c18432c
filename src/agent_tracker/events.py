"""Watching the global session events file."""

import json
import logging
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from .config import default_events_file
from .models import ActivityEvent, SessionEndEvent, SessionStartEvent, parse_event
from .tailer import ErrorSink, IncrementalTailer

logger = logging.getLogger("agent-tracker.events")

SessionEventModel = SessionStartEvent | SessionEndEvent | ActivityEvent


class EventWatcher:
    """Tails ``sessions.jsonl`` and forwards each valid event to ``on_event``.

    Existing events are consumed once on start; afterwards only appended
    lines are read. A line that is not JSON or not a known event is reported
    to ``on_error`` and skipped without affecting the rest of the batch.
    """

    def __init__(
        self,
        on_event: Callable[[SessionEventModel], None],
        on_error: ErrorSink | None = None,
        log_path: Path | None = None,
        *,
        watch: bool = True,
    ):
        self.log_path = Path(log_path) if log_path else default_events_file()
        self.on_event = on_event
        self.on_error = on_error
        self._tailer = IncrementalTailer(
            self.log_path,
            self._handle_lines,
            self._report,
            create=True,
            watch=watch,
        )

    def start(self) -> None:
        """Create the events file if needed, read its history, and start watching."""
        self._tailer.start()

    def stop(self) -> None:
        self._tailer.stop()

    def read_new_events(self) -> int:
        """Manually read events appended since the last read."""
        return self._tailer.read_new_data()

    def file_exists(self) -> bool:
        return self.log_path.exists()

    @property
    def position(self) -> int:
        return self._tailer.position

    def _handle_lines(self, lines: list[str]) -> None:
        for line in lines:
            try:
                event = parse_event(json.loads(line))
            except (json.JSONDecodeError, ValidationError) as e:
                self._report(ValueError(f"Failed to parse event: {line[:200]} ({e})"))
                continue

            try:
                self.on_event(event)
            except Exception as e:
                self._report(e)

    def _report(self, error: Exception) -> None:
        if self.on_error:
            self.on_error(error)
        else:
            logger.warning(f"Event watcher error: {error}")
