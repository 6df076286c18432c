"""Session state: a pure reducer and the store that owns its state."""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel

from . import actions
from .actions import AWAITING_ACTIONS, Action, ActionType
from .config import DEFAULT_INACTIVE_THRESHOLD_MS, DEFAULT_REMOVE_ENDED_SESSIONS_MS
from .models import (
    ActivityEvent,
    ActivityStats,
    Session,
    SessionCounts,
    SessionEndEvent,
    SessionStartEvent,
    SessionStatus,
)

logger = logging.getLogger("agent-tracker.store")

RECENT_ACTIVITY_LIMIT = 100
AWAITING_INPUT_MESSAGE = "Awaiting user input"

STATUS_RANK = {
    SessionStatus.ACTIVE: 0,
    SessionStatus.INACTIVE: 1,
    SessionStatus.ENDED: 2,
}


class ActivityState(BaseModel):
    """Snapshot of everything the tracker knows."""

    sessions: dict[str, Session] = {}
    recent_activity: list[ActivityEvent] = []  # newest first
    stats: ActivityStats = ActivityStats()


def _count(stats: ActivityStats, action_type: ActionType) -> ActivityStats:
    by_type = dict(stats.events_by_type)
    by_type[action_type.value] = by_type.get(action_type.value, 0) + 1
    return ActivityStats(total_events=stats.total_events + 1, events_by_type=by_type)


def _start(state: ActivityState, event: SessionStartEvent) -> ActivityState:
    session = Session(
        id=event.session_id,
        cwd=event.cwd,
        transcript_path=event.transcript_path,
        terminal=event.terminal,
        docker=event.docker,
        git=event.git,
        status=SessionStatus.ACTIVE,
        start_time=event.timestamp,
        last_activity_time=event.timestamp,
    )
    sessions = dict(state.sessions)
    sessions[event.session_id] = session
    return state.model_copy(
        update={"sessions": sessions, "stats": _count(state.stats, ActionType.SESSION_START)}
    )


def _end(state: ActivityState, event: SessionEndEvent) -> ActivityState:
    session = state.sessions.get(event.session_id)
    if session is None:
        logger.debug(f"Dropping session_end for unknown session {event.session_id}")
        return state

    sessions = dict(state.sessions)
    sessions[event.session_id] = session.model_copy(
        update={
            "status": SessionStatus.ENDED,
            "end_time": event.timestamp,
            "awaiting_input": False,
            "notification_message": None,
        }
    )
    return state.model_copy(
        update={"sessions": sessions, "stats": _count(state.stats, ActionType.SESSION_END)}
    )


def _activity(state: ActivityState, action_type: ActionType, event: ActivityEvent) -> ActivityState:
    session = state.sessions.get(event.session_id)
    if session is None:
        logger.debug(f"Dropping {action_type.value} for unknown session {event.session_id}")
        return state

    update = {
        "last_activity_time": event.timestamp,
        "status": SessionStatus.ACTIVE,
        "end_time": None,
    }
    if action_type in AWAITING_ACTIONS:
        message = AWAITING_INPUT_MESSAGE
        if action_type == ActionType.ACTIVITY_NOTIFICATION and event.notification_message:
            message = event.notification_message
        update.update(awaiting_input=True, notification_message=message)
    else:
        update.update(awaiting_input=False, notification_message=None)

    sessions = dict(state.sessions)
    sessions[event.session_id] = session.model_copy(update=update)
    recent = [event, *state.recent_activity][:RECENT_ACTIVITY_LIMIT]
    return state.model_copy(
        update={
            "sessions": sessions,
            "recent_activity": recent,
            "stats": _count(state.stats, action_type),
        }
    )


def _sweep(state: ActivityState, payload: actions.StatusSweep) -> ActivityState:
    now = payload.current_time
    inactive_after = timedelta(milliseconds=payload.inactive_threshold_ms)
    remove_after = timedelta(milliseconds=payload.remove_ended_sessions_ms)

    sessions: dict[str, Session] = {}
    changed = False
    for session_id, session in state.sessions.items():
        if session.status == SessionStatus.ENDED:
            if session.end_time is not None and now - session.end_time > remove_after:
                changed = True
                continue
            sessions[session_id] = session
            continue

        should_be_inactive = now - session.last_activity_time > inactive_after
        if should_be_inactive and session.status == SessionStatus.ACTIVE:
            sessions[session_id] = session.model_copy(update={"status": SessionStatus.INACTIVE})
            changed = True
        elif not should_be_inactive and session.status == SessionStatus.INACTIVE:
            sessions[session_id] = session.model_copy(update={"status": SessionStatus.ACTIVE})
            changed = True
        else:
            sessions[session_id] = session

    return state.model_copy(update={"sessions": sessions}) if changed else state


def _work_summary(state: ActivityState, payload: actions.WorkSummary) -> ActivityState:
    session = state.sessions.get(payload.session_id)
    if session is None or session.work_summary == payload.summary:
        return state
    sessions = dict(state.sessions)
    sessions[payload.session_id] = session.model_copy(update={"work_summary": payload.summary})
    return state.model_copy(update={"sessions": sessions})


def _transcript_activity(state: ActivityState, payload: actions.TranscriptActivity) -> ActivityState:
    session = state.sessions.get(payload.session_id)
    if session is None or session.status == SessionStatus.ENDED:
        return state
    if payload.timestamp <= session.last_activity_time:
        return state
    sessions = dict(state.sessions)
    sessions[payload.session_id] = session.model_copy(
        update={"last_activity_time": payload.timestamp, "status": SessionStatus.ACTIVE}
    )
    return state.model_copy(update={"sessions": sessions})


def activity_reducer(state: ActivityState, action: Action) -> ActivityState:
    """Pure reducer: (state, action) -> new state.

    The input state is never mutated. When an action changes nothing (for
    example activity for an unknown session) the same state object is
    returned, which is how the store decides whether to notify listeners.
    """
    payload = action.payload
    if action.type == ActionType.SESSION_START:
        return _start(state, payload)
    if action.type == ActionType.SESSION_END:
        return _end(state, payload)
    if action.type in actions.ACTIVITY_ACTIONS.values():
        return _activity(state, action.type, payload)
    if action.type == ActionType.UPDATE_SESSION_STATUSES:
        return _sweep(state, payload)
    if action.type == ActionType.UPDATE_WORK_SUMMARY:
        return _work_summary(state, payload)
    if action.type == ActionType.TRANSCRIPT_ACTIVITY:
        return _transcript_activity(state, payload)
    return state


def session_sort_key(session: Session) -> tuple[bool, int, float]:
    """Awaiting input first, then active, inactive, ended; most recent first within each."""
    return (
        not session.awaiting_input,
        STATUS_RANK[session.status],
        -session.last_activity_time.timestamp(),
    )


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ActivityStore:
    """Owns the session state and notifies subscribers when it changes.

    Usage:
        store = ActivityStore()
        unsubscribe = store.subscribe(lambda: print(store.get_session_counts()))
        store.dispatch(actions.session_start(event))
        # ... on a timer
        store.update_session_statuses()
    """

    def __init__(
        self,
        inactive_threshold_ms: int = DEFAULT_INACTIVE_THRESHOLD_MS,
        remove_ended_sessions_ms: int = DEFAULT_REMOVE_ENDED_SESSIONS_MS,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.inactive_threshold_ms = inactive_threshold_ms
        self.remove_ended_sessions_ms = remove_ended_sessions_ms
        self._clock = clock
        self._state = ActivityState()
        self._listeners: list[Callable[[], None]] = []
        self._lock = threading.RLock()

    def dispatch(self, action: Action) -> None:
        """Apply an action; listeners run once if the state changed."""
        with self._lock:
            previous = self._state
            self._state = activity_reducer(previous, action)
            changed = self._state is not previous

        if changed:
            logger.debug(f"State changed by {action.type.value}")
            self._notify()

    def get_state(self) -> ActivityState:
        return self._state

    def get_sessions(self) -> list[Session]:
        """All sessions in display priority order."""
        return sorted(self._state.sessions.values(), key=session_sort_key)

    def get_session(self, session_id: str) -> Session | None:
        return self._state.sessions.get(session_id)

    def get_session_counts(self) -> SessionCounts:
        counts = SessionCounts(total=len(self._state.sessions))
        for session in self._state.sessions.values():
            if session.status == SessionStatus.ACTIVE:
                counts.active += 1
            elif session.status == SessionStatus.INACTIVE:
                counts.inactive += 1
            elif session.status == SessionStatus.ENDED:
                counts.ended += 1
            if session.awaiting_input:
                counts.awaiting_input += 1
        return counts

    def get_recent_activity(self, limit: int | None = None) -> list[ActivityEvent]:
        recent = self._state.recent_activity
        return recent[:limit] if limit else list(recent)

    def get_session_activity(self, session_id: str, limit: int | None = None) -> list[ActivityEvent]:
        events = [e for e in self._state.recent_activity if e.session_id == session_id]
        return events[:limit] if limit else events

    def get_stats(self) -> ActivityStats:
        return self._state.stats

    def update_session_statuses(self) -> None:
        """Periodic sweep: mark idle sessions inactive and drop long-ended ones."""
        self.dispatch(
            actions.update_session_statuses(
                self._clock(), self.inactive_threshold_ms, self.remove_ended_sessions_ms
            )
        )

    def update_session_activity_from_transcript(self, session_id: str, timestamp: datetime) -> None:
        """Record transcript activity newer than the last event; ended sessions are left alone."""
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        self.dispatch(actions.transcript_activity(session_id, timestamp))

    def update_work_summary(self, session_id: str, summary: str) -> None:
        self.dispatch(actions.update_work_summary(session_id, summary))

    def clear(self) -> None:
        with self._lock:
            self._state = ActivityState()
        self._notify()

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener()
