"""Domain models for agent-tracker."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, NamedTuple, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, TypeAdapter


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class SessionStatus(str, Enum):
    """Lifecycle status of a tracked session."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ENDED = "ended"


class ActivityType(str, Enum):
    """Kinds of activity reported by the agent hooks."""

    TOOL_USE = "tool_use"
    PROMPT_SUBMIT = "prompt_submit"
    STOP = "stop"
    SUBAGENT_STOP = "subagent_stop"
    NOTIFICATION = "notification"


class EntryType(str, Enum):
    """Types of normalized transcript entries."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    THINKING = "thinking"
    SYSTEM = "system"
    FILE_HISTORY = "file-history"
    META = "meta"


class _ProducerModel(BaseModel):
    """Base for records written by the hook scripts; unknown fields are kept."""

    model_config = ConfigDict(extra="allow")


class ITermInfo(_ProducerModel):
    session_id: str = ""
    profile: str = ""
    tab_name: str = ""
    window_name: str = ""


class TerminalInfo(_ProducerModel):
    """Terminal metadata captured when the session started."""

    tty: str = ""
    term: str = ""
    shell: str = ""
    pid: str | None = None
    ppid: str = ""
    term_program: str = ""
    term_session_id: str = ""
    lc_terminal: str = ""
    lc_terminal_version: str = ""
    iterm: ITermInfo = ITermInfo()


class DockerInfo(_ProducerModel):
    is_container: bool = False
    container_id: str = ""
    container_name: str = ""


class GitInfo(_ProducerModel):
    """Repository state at session start/end."""

    is_repo: bool = False
    branch: str = ""
    is_worktree: bool = False
    is_dirty: bool = False
    repo_name: str = ""


class TranscriptFileInfo(_ProducerModel):
    birthtime: str | None = None
    mtime: str | None = None
    size: int = 0


class SessionStartEvent(_ProducerModel):
    event_type: Literal["session_start"] = "session_start"
    session_id: str
    timestamp: UtcDatetime
    cwd: str = ""
    transcript_path: str = ""
    terminal: TerminalInfo = TerminalInfo()
    docker: DockerInfo = DockerInfo()
    git: GitInfo = GitInfo()
    transcript_file: TranscriptFileInfo | None = None


class SessionEndEvent(_ProducerModel):
    event_type: Literal["session_end"] = "session_end"
    session_id: str
    timestamp: UtcDatetime
    cwd: str = ""
    transcript_path: str = ""
    terminal: TerminalInfo = TerminalInfo()
    docker: DockerInfo = DockerInfo()
    git: GitInfo = GitInfo()


class ActivityEvent(_ProducerModel):
    """Tool usage, prompts and stop/notification signals for a session."""

    event_type: Literal["activity"] = "activity"
    activity_type: ActivityType
    session_id: str
    timestamp: UtcDatetime
    tool_name: str | None = None  # for tool_use
    tool_input: dict[str, Any] | None = None  # for tool_use
    notification_message: str | None = None  # for notification
    hook_event_name: str | None = None


SessionEvent = Annotated[
    Union[SessionStartEvent, SessionEndEvent, ActivityEvent],
    Field(discriminator="event_type"),
]

_SESSION_EVENT_ADAPTER: TypeAdapter[SessionEvent] = TypeAdapter(SessionEvent)


def parse_event(data: Any) -> SessionStartEvent | SessionEndEvent | ActivityEvent:
    """Validate one decoded events-file record.

    Raises:
        pydantic.ValidationError: if the record has an unknown ``event_type``
            or is missing required fields.
    """
    return _SESSION_EVENT_ADAPTER.validate_python(data)


class Session(BaseModel):
    """One tracked agent session."""

    id: str
    cwd: str = ""
    transcript_path: str = ""
    terminal: TerminalInfo = TerminalInfo()
    docker: DockerInfo = DockerInfo()
    git: GitInfo = GitInfo()

    status: SessionStatus = SessionStatus.ACTIVE
    start_time: datetime
    last_activity_time: datetime
    end_time: datetime | None = None  # set only while status is ENDED

    awaiting_input: bool = False
    notification_message: str | None = None
    work_summary: str | None = None


class SessionCounts(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    ended: int = 0
    awaiting_input: int = 0


class ActivityStats(BaseModel):
    total_events: int = 0
    events_by_type: dict[str, int] = {}


class CompactMetadata(BaseModel):
    """Metadata about a compaction event."""

    trigger: str
    pre_tokens: int


class ParsedTranscriptEntry(BaseModel):
    """A transcript record normalized for display."""

    uuid: str
    timestamp: datetime | None = None
    type: EntryType
    content: str
    tool_name: str | None = None  # for tool_use
    tool_id: str | None = None  # for tool_use
    tool_input: dict[str, Any] | None = None  # for tool_use
    tool_use_id: str | None = None  # for tool_result
    is_error: bool | None = None  # for tool_result
    system_subtype: str | None = None  # for system
    compact_metadata: CompactMetadata | None = None  # for system
    file_count: int | None = None  # for file-history
    is_system_message: bool = False


class ParseResult(NamedTuple):
    """Outcome of parsing one raw record.

    ``consumed`` is how many of the upcoming records were merged into
    ``parsed`` and must be skipped by the caller.
    """

    parsed: ParsedTranscriptEntry | None
    consumed: int = 0
