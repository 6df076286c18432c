"""Actions that drive the session state reducer."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from .models import ActivityEvent, ActivityType, SessionEndEvent, SessionStartEvent


class ActionType(str, Enum):
    SESSION_START = "SESSION_START"
    SESSION_END = "SESSION_END"
    ACTIVITY_TOOL_USE = "ACTIVITY_TOOL_USE"
    ACTIVITY_PROMPT_SUBMIT = "ACTIVITY_PROMPT_SUBMIT"
    ACTIVITY_STOP = "ACTIVITY_STOP"
    ACTIVITY_SUBAGENT_STOP = "ACTIVITY_SUBAGENT_STOP"
    ACTIVITY_NOTIFICATION = "ACTIVITY_NOTIFICATION"
    UPDATE_SESSION_STATUSES = "UPDATE_SESSION_STATUSES"
    UPDATE_WORK_SUMMARY = "UPDATE_WORK_SUMMARY"
    TRANSCRIPT_ACTIVITY = "TRANSCRIPT_ACTIVITY"


ACTIVITY_ACTIONS = {
    ActivityType.TOOL_USE: ActionType.ACTIVITY_TOOL_USE,
    ActivityType.PROMPT_SUBMIT: ActionType.ACTIVITY_PROMPT_SUBMIT,
    ActivityType.STOP: ActionType.ACTIVITY_STOP,
    ActivityType.SUBAGENT_STOP: ActionType.ACTIVITY_SUBAGENT_STOP,
    ActivityType.NOTIFICATION: ActionType.ACTIVITY_NOTIFICATION,
}

# Activity that means the agent is waiting on the user
AWAITING_ACTIONS = frozenset({ActionType.ACTIVITY_STOP, ActionType.ACTIVITY_NOTIFICATION})


class StatusSweep(BaseModel):
    current_time: datetime
    inactive_threshold_ms: int
    remove_ended_sessions_ms: int


class WorkSummary(BaseModel):
    session_id: str
    summary: str


class TranscriptActivity(BaseModel):
    session_id: str
    timestamp: datetime


class Action(BaseModel):
    type: ActionType
    payload: (
        SessionStartEvent
        | SessionEndEvent
        | ActivityEvent
        | StatusSweep
        | WorkSummary
        | TranscriptActivity
    )


def session_start(event: SessionStartEvent) -> Action:
    return Action(type=ActionType.SESSION_START, payload=event)


def session_end(event: SessionEndEvent) -> Action:
    return Action(type=ActionType.SESSION_END, payload=event)


def activity(event: ActivityEvent) -> Action:
    """Action for an activity event, chosen by its activity_type."""
    return Action(type=ACTIVITY_ACTIONS[event.activity_type], payload=event)


def update_session_statuses(
    current_time: datetime, inactive_threshold_ms: int, remove_ended_sessions_ms: int
) -> Action:
    return Action(
        type=ActionType.UPDATE_SESSION_STATUSES,
        payload=StatusSweep(
            current_time=current_time,
            inactive_threshold_ms=inactive_threshold_ms,
            remove_ended_sessions_ms=remove_ended_sessions_ms,
        ),
    )


def update_work_summary(session_id: str, summary: str) -> Action:
    return Action(
        type=ActionType.UPDATE_WORK_SUMMARY,
        payload=WorkSummary(session_id=session_id, summary=summary),
    )


def transcript_activity(session_id: str, timestamp: datetime) -> Action:
    return Action(
        type=ActionType.TRANSCRIPT_ACTIVITY,
        payload=TranscriptActivity(session_id=session_id, timestamp=timestamp),
    )


def action_for_event(event: SessionStartEvent | SessionEndEvent | ActivityEvent) -> Action:
    """Classify a producer event into the reducer action it triggers."""
    if isinstance(event, SessionStartEvent):
        return session_start(event)
    if isinstance(event, SessionEndEvent):
        return session_end(event)
    return activity(event)
