"""API request/response models for the tmux API.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from agentdeck.core.models import AgentEvent, LivePane, PaneCapture, UnifiedSession

_WIRE_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class CreateSessionRequest(BaseModel):  # type: ignore[explicit-any]
    """Request to create a new session.

    Missing fields default to empty so the tracker reports them as a 400.
    """

    model_config = _WIRE_CONFIG

    name: str = ""
    command: str = ""
    cwd: str | None = None
    topic: str | None = None
    system_prompt: str | None = None


class CreateSessionResponseDTO(BaseModel):  # type: ignore[explicit-any]
    model_config = _WIRE_CONFIG

    success: bool = True
    session_name: str


class SendKeysRequest(BaseModel):  # type: ignore[explicit-any]
    """Raw keystrokes for one pane."""

    model_config = _WIRE_CONFIG

    pane_id: str = ""
    keys: str = ""


class SuccessDTO(BaseModel):  # type: ignore[explicit-any]
    model_config = _WIRE_CONFIG

    success: bool = True


class UnifiedSessionDTO(BaseModel):  # type: ignore[explicit-any]
    """DTO for a live session merged with its metadata."""

    model_config = _WIRE_CONFIG

    name: str
    agent: str
    repo: str
    created: str
    last_used: str
    status: Literal["running", "idle"]
    activity_state: Literal["running", "waiting"]
    last_line: str = ""
    active_pane_id: str | None = None
    current_command: str | None = None
    system_prompt: str | None = None
    topic: str | None = None

    @classmethod
    def from_core(cls, session: "UnifiedSession") -> "UnifiedSessionDTO":
        """Map from core UnifiedSession dataclass."""
        return cls(
            name=session.name,
            agent=session.agent,
            repo=session.repo,
            created=session.created,
            last_used=session.last_used,
            status=session.status,
            activity_state=session.activity_state,
            last_line=session.last_line,
            active_pane_id=session.active_pane_id,
            current_command=session.current_command,
            system_prompt=session.system_prompt,
            topic=session.topic,
        )


class SessionsResponseDTO(BaseModel):  # type: ignore[explicit-any]
    model_config = _WIRE_CONFIG

    sessions: dict[str, UnifiedSessionDTO]
    error: str | None = None


class PaneDTO(BaseModel):  # type: ignore[explicit-any]
    """DTO for one tmux pane."""

    model_config = _WIRE_CONFIG

    session_name: str
    id: str
    width: int
    height: int
    current_command: str
    current_path: str
    is_active: bool

    @classmethod
    def from_core(cls, pane: "LivePane") -> "PaneDTO":
        return cls(
            session_name=pane.session_name,
            id=pane.id,
            width=pane.width,
            height=pane.height,
            current_command=pane.current_command,
            current_path=pane.current_path,
            is_active=pane.is_active,
        )


class PanesResponseDTO(BaseModel):  # type: ignore[explicit-any]
    model_config = _WIRE_CONFIG

    panes: list[PaneDTO]


class CursorDTO(BaseModel):  # type: ignore[explicit-any]
    model_config = _WIRE_CONFIG

    x: int = 0
    y: int = 0


class CaptureResponseDTO(BaseModel):  # type: ignore[explicit-any]
    """Pane content (escape sequences kept) plus cursor position."""

    model_config = _WIRE_CONFIG

    content: str
    cursor: CursorDTO

    @classmethod
    def from_core(cls, capture: "PaneCapture") -> "CaptureResponseDTO":
        return cls(content=capture.content, cursor=CursorDTO(x=capture.cursor.x, y=capture.cursor.y))


class AgentEventDTO(BaseModel):  # type: ignore[explicit-any]
    model_config = _WIRE_CONFIG

    timestamp: str
    type: Literal["teammate-idle", "task-completed"]
    message: str
    agent: str | None = None
    repo: str | None = None

    @classmethod
    def from_core(cls, event: "AgentEvent") -> "AgentEventDTO":
        return cls(
            timestamp=event.timestamp,
            type=event.type,
            message=event.message,
            agent=event.agent,
            repo=event.repo,
        )


class EventsResponseDTO(BaseModel):  # type: ignore[explicit-any]
    model_config = _WIRE_CONFIG

    events: list[AgentEventDTO]
