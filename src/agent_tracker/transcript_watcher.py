"""Live tailing of a session transcript."""

import json
import logging
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from .config import DEFAULT_TRANSCRIPT_RETRY_MS
from .models import ParsedTranscriptEntry
from .tailer import ErrorSink, IncrementalTailer
from .transcript import parse_entry

logger = logging.getLogger("agent-tracker.transcript")


class TranscriptWatcher:
    """Reports entries appended to a transcript after the watcher started.

    The existing conversation is skipped; load it with ``read_transcript``.
    Each new line is parsed on its own, so a bash input and its output are
    only merged when the transcript is reloaded in full. If the transcript
    has not been created yet, start() retries until it appears.
    """

    def __init__(
        self,
        transcript_path: Path,
        on_new_entries: Callable[[list[ParsedTranscriptEntry]], None],
        on_error: ErrorSink | None = None,
        *,
        retry_interval: float = DEFAULT_TRANSCRIPT_RETRY_MS / 1000,
        watch: bool = True,
    ):
        self.transcript_path = Path(transcript_path)
        self.on_new_entries = on_new_entries
        self.on_error = on_error
        self._tailer = IncrementalTailer(
            self.transcript_path,
            self._handle_lines,
            self._report,
            from_end=True,
            retry_interval=retry_interval,
            watch=watch,
        )

    def start(self) -> None:
        self._tailer.start()

    def stop(self) -> None:
        self._tailer.stop()

    def read_new_entries(self) -> int:
        """Manually read lines appended since the last read."""
        return self._tailer.read_new_data()

    @property
    def is_running(self) -> bool:
        return self._tailer.is_running

    @property
    def is_waiting(self) -> bool:
        return self._tailer.is_waiting

    @property
    def position(self) -> int:
        return self._tailer.position

    def _handle_lines(self, lines: list[str]) -> None:
        entries: list[ParsedTranscriptEntry] = []
        for line in lines:
            try:
                rec = json.loads(line)
            except json.JSONDecodeError:
                self._report(ValueError(f"Failed to parse transcript line: {line[:200]}"))
                continue
            if not isinstance(rec, dict):
                self._report(ValueError(f"Transcript line is not an object: {line[:200]}"))
                continue

            try:
                parsed, _ = parse_entry(rec)
            except (ValidationError, ValueError) as e:
                self._report(ValueError(f"Failed to parse transcript record: {line[:200]} ({e})"))
                continue
            if parsed:
                entries.append(parsed)

        if entries:
            self.on_new_entries(entries)

    def _report(self, error: Exception) -> None:
        if self.on_error:
            self.on_error(error)
        else:
            logger.warning(f"Transcript watcher error for {self.transcript_path}: {error}")
