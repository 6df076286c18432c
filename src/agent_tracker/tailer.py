"""Incremental reading of append-only files."""

import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger("agent-tracker.tailer")

ErrorSink = Callable[[Exception], None]


class _FileChangeHandler(FileSystemEventHandler):
    """Forwards change notifications for a single file in the watched directory."""

    def __init__(self, target: Path, callback: Callable[[], None]):
        super().__init__()
        self.target = os.path.abspath(target)
        self.callback = callback

    def _matches(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(p and os.path.abspath(os.fsdecode(p)) == self.target for p in paths)

    def on_created(self, event: FileSystemEvent) -> None:
        if self._matches(event):
            self.callback()

    def on_modified(self, event: FileSystemEvent) -> None:
        if self._matches(event):
            self.callback()

    def on_moved(self, event: FileSystemEvent) -> None:
        if self._matches(event):
            self.callback()


class IncrementalTailer:
    """Delivers only the lines appended to a file since the previous read.

    Usage:
        tailer = IncrementalTailer(path, on_lines=handle_batch)
        tailer.start()
        # ... later
        tailer.stop()

    ``from_end`` chooses the baseline: False consumes the existing content
    once on start, True skips it. With ``create`` the file (and its parent
    directory) is created on start; without it a missing file is retried
    every ``retry_interval`` seconds until it appears.
    """

    def __init__(
        self,
        path: Path,
        on_lines: Callable[[list[str]], None],
        on_error: ErrorSink | None = None,
        *,
        from_end: bool = False,
        create: bool = False,
        retry_interval: float = 1.0,
        watch: bool = True,
    ):
        self._path = Path(path)
        self._on_lines = on_lines
        self._on_error = on_error
        self._from_end = from_end
        self._create = create
        self._retry_interval = retry_interval
        self._watch = watch

        self._position = 0
        self._read_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._observer: Observer | None = None
        self._retry_timer: threading.Timer | None = None
        self._running = False
        self._closed = True

    @property
    def path(self) -> Path:
        return self._path

    @property
    def position(self) -> int:
        """Byte offset up to which the file has been consumed."""
        return self._position

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_waiting(self) -> bool:
        """True while a retry is scheduled for a file that does not exist yet."""
        return self._retry_timer is not None

    def start(self) -> None:
        """Establish the baseline and begin watching. Safe to call twice."""
        with self._state_lock:
            if self._running or self._retry_timer is not None:
                return
            self._closed = False
        self._try_start()

    def stop(self) -> None:
        """Cancel any pending retry and release the file watch. Idempotent."""
        with self._state_lock:
            self._closed = True
            self._running = False
            timer, self._retry_timer = self._retry_timer, None
            observer, self._observer = self._observer, None

        if timer:
            timer.cancel()
        if observer:
            observer.stop()
            observer.join(timeout=5.0)

    def read_new_data(self) -> int:
        """Read bytes appended since the last read and hand over the new lines.

        Returns the number of lines delivered. Returns 0 without reading if
        another read is in progress; the bytes stay past the current
        position and are picked up by the next trigger.
        """
        if not self._read_lock.acquire(blocking=False):
            return 0

        try:
            size = self._path.stat().st_size

            if size < self._position:
                logger.info(f"{self._path} was truncated, reading from the start")
                self._position = 0

            if size == self._position:
                return 0

            with open(self._path, "rb") as f:
                f.seek(self._position)
                data = f.read(size - self._position)

            self._position = size

            text = data.decode("utf-8", errors="replace")
            lines = [line for line in text.split("\n") if line.strip()]
            if not lines:
                return 0

            try:
                self._on_lines(lines)
            except Exception as e:
                self._report(e)
            return len(lines)
        except OSError as e:
            self._report(e)
            return 0
        finally:
            self._read_lock.release()

    def _try_start(self) -> None:
        errors: list[Exception] = []
        with self._state_lock:
            self._retry_timer = None
            if self._closed:
                return

            if self._create:
                try:
                    self._path.parent.mkdir(parents=True, exist_ok=True)
                    self._path.touch(exist_ok=True)
                except OSError as e:
                    errors.append(e)

            waiting = not self._path.exists()
            if waiting:
                logger.debug(f"{self._path} does not exist yet, retrying")
                self._retry_timer = threading.Timer(self._retry_interval, self._try_start)
                self._retry_timer.daemon = True
                self._retry_timer.start()
            else:
                self._position = 0
                if self._from_end:
                    try:
                        self._position = self._path.stat().st_size
                    except OSError as e:
                        errors.append(e)
                self._running = True

        for error in errors:
            self._report(error)
        if waiting:
            return

        if not self._from_end:
            self.read_new_data()

        if self._watch:
            self._attach_observer()

    def _attach_observer(self) -> None:
        observer = Observer()
        handler = _FileChangeHandler(self._path, self.read_new_data)
        try:
            observer.schedule(handler, str(self._path.parent.absolute()), recursive=False)
        except OSError as e:
            self._report(e)
            return

        with self._state_lock:
            if self._closed:
                return
            observer.start()
            self._observer = observer

    def _report(self, error: Exception) -> None:
        if self._on_error:
            self._on_error(error)
        else:
            logger.warning(f"Error tailing {self._path}: {error}")

    def __enter__(self) -> "IncrementalTailer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
