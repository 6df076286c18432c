"""agent-tracker: live session state for coding agents from their hook events and transcripts."""

from .actions import Action, ActionType, action_for_event
from .config import TrackerConfig
from .events import EventWatcher
from .models import (
    ActivityEvent,
    EntryType,
    ParsedTranscriptEntry,
    ParseResult,
    Session,
    SessionCounts,
    SessionEndEvent,
    SessionStartEvent,
    SessionStatus,
)
from .store import ActivityState, ActivityStore, activity_reducer
from .tailer import IncrementalTailer
from .tracker import SessionTrackerService
from .transcript import parse_entry, read_transcript
from .transcript_watcher import TranscriptWatcher

__all__ = [
    "Action",
    "ActionType",
    "ActivityEvent",
    "ActivityState",
    "ActivityStore",
    "EntryType",
    "EventWatcher",
    "IncrementalTailer",
    "ParseResult",
    "ParsedTranscriptEntry",
    "Session",
    "SessionCounts",
    "SessionEndEvent",
    "SessionStartEvent",
    "SessionStatus",
    "SessionTrackerService",
    "TrackerConfig",
    "TranscriptWatcher",
    "action_for_event",
    "activity_reducer",
    "parse_entry",
    "read_transcript",
]
