"""Data models for live tmux state and persisted session metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

from typing_extensions import TypedDict

AgentKind = Literal["claude", "codex"]
SessionStatus = Literal["running", "idle"]
ActivityState = Literal["running", "waiting"]


@dataclass(frozen=True)
class LiveSession:
    """A tmux session as reported by list-sessions (never persisted)."""

    name: str
    created_epoch: Optional[int]
    activity_epoch: Optional[int]
    attached_clients: int = 0


@dataclass(frozen=True)
class LivePane:
    """A tmux pane as reported by list-panes."""

    session_name: str
    id: str
    width: int
    height: int
    current_command: str
    current_path: str
    is_active: bool


@dataclass(frozen=True)
class CursorPosition:
    x: int = 0
    y: int = 0


class SessionMetadataDict(TypedDict, total=False):
    """Serialized session metadata (on-disk JSON keys)."""

    name: str
    agent: str
    repo: str
    systemPrompt: str
    topic: str
    created: str
    status: str


class SessionsStateDict(TypedDict):
    """Serialized metadata document."""

    sessions: dict[str, SessionMetadataDict]


@dataclass
class PersistedSessionMetadata:
    """Operator-supplied attributes tmux cannot report.

    ``status`` is kept verbatim; only "running"/"idle" act as an override.
    """

    name: str
    agent: str = "claude"
    repo: str = "~"
    created: str = ""
    system_prompt: Optional[str] = None
    topic: Optional[str] = None
    status: Optional[str] = None

    def to_dict(self) -> SessionMetadataDict:
        data: SessionMetadataDict = {
            "name": self.name,
            "agent": self.agent,
            "repo": self.repo,
            "created": self.created,
        }
        if self.system_prompt is not None:
            data["systemPrompt"] = self.system_prompt
        if self.topic is not None:
            data["topic"] = self.topic
        if self.status is not None:
            data["status"] = self.status
        return data

    @classmethod
    def from_dict(cls, name: str, data: SessionMetadataDict) -> PersistedSessionMetadata:
        return cls(
            name=str(data.get("name") or name),
            agent=str(data.get("agent") or "claude"),
            repo=str(data.get("repo") or "~"),
            created=str(data.get("created") or ""),
            system_prompt=data.get("systemPrompt"),
            topic=data.get("topic"),
            status=data.get("status"),
        )


@dataclass
class SessionsState:
    sessions: dict[str, PersistedSessionMetadata] = field(default_factory=dict)

    def to_dict(self) -> SessionsStateDict:
        return {"sessions": {name: meta.to_dict() for name, meta in self.sessions.items()}}


@dataclass
class UnifiedSession:  # pylint: disable=too-many-instance-attributes  # Merged view has many fields
    """Live session merged with its panes and persisted metadata."""

    name: str
    agent: str
    repo: str
    created: str
    last_used: str
    status: SessionStatus
    activity_state: ActivityState
    last_line: str = ""
    active_pane_id: Optional[str] = None
    current_command: Optional[str] = None
    system_prompt: Optional[str] = None
    topic: Optional[str] = None


@dataclass(frozen=True)
class PaneCapture:
    content: str
    cursor: CursorPosition


@dataclass(frozen=True)
class AgentEvent:
    timestamp: str
    type: Literal["teammate-idle", "task-completed"]
    message: str
    agent: Optional[str] = None
    repo: Optional[str] = None
