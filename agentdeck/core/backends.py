"""Tracker backends: real tmux, or canned demo data for UI development.

The backend is chosen once at process start (``config.backend``) and handed to
the SessionTracker; nothing downstream checks which one it got.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, List, Optional

from agentdeck.config import Config
from agentdeck.core import tmux_bridge
from agentdeck.core.agent_events import DEMO_EVENTS, filter_since, read_events
from agentdeck.core.models import (
    AgentEvent,
    CursorPosition,
    LivePane,
    LiveSession,
    PersistedSessionMetadata,
    SessionsState,
)
from agentdeck.core.protocols import MetadataStore, MultiplexerClient
from agentdeck.core.session_store import InMemorySessionStore, SessionMetadataStore
from agentdeck.core.tmux_bridge import TmuxCommandError

logger = logging.getLogger(__name__)


class TmuxMultiplexer:
    """MultiplexerClient backed by the local tmux server."""

    async def list_sessions(self) -> List[LiveSession]:
        return await tmux_bridge.list_sessions()

    async def list_panes(self, session_name: Optional[str] = None) -> List[LivePane]:
        return await tmux_bridge.list_panes(session_name)

    async def capture_pane(self, pane_id: str, lines: Optional[int] = None) -> str:
        return await tmux_bridge.capture_pane(pane_id, lines)

    async def get_cursor_position(self, pane_id: str) -> CursorPosition:
        return await tmux_bridge.get_cursor_position(pane_id)

    async def send_keys(self, pane_id: str, keys: str) -> None:
        await tmux_bridge.send_keys(pane_id, keys)

    async def send_text_and_enter(self, session_name: str, text: str) -> None:
        await tmux_bridge.send_text_and_enter(session_name, text)

    async def kill_session(self, session_name: str) -> None:
        await tmux_bridge.kill_session(session_name)

    async def new_session(self, name: str, shell_command: str, cwd: str) -> None:
        await tmux_bridge.new_session(name, shell_command, cwd)


DEMO_PANE_CONTENT = """
\x1b[32m✓\x1b[0m Starting development server...
\x1b[36minfo\x1b[0m  - SvelteKit running on \x1b[1mhttp://localhost:5173\x1b[0m

\x1b[33m▶\x1b[0m Building routes...
  \x1b[2m/\x1b[0m
  \x1b[2m/mission-control\x1b[0m

\x1b[32m✓\x1b[0m Build complete

Agent working on task: \x1b[1mImplement shopping cart\x1b[0m
  \x1b[2m- Adding cart state management\x1b[0m
  \x1b[2m- Writing tests\x1b[0m

\x1b[32m✓\x1b[0m Task completed successfully
"""

DEMO_METADATA: dict[str, PersistedSessionMetadata] = {
    "exfoliate-shop": PersistedSessionMetadata(
        name="exfoliate-shop",
        agent="claude",
        repo="~/repos/exfoliate-shop",
        system_prompt="You are a coding agent for an e-commerce store",
        topic="Sticker store development",
        created="2026-02-11T10:30:00+00:00",
        status="running",
    ),
    "knowhere-backend": PersistedSessionMetadata(
        name="knowhere-backend",
        agent="codex",
        repo="~/repos/knowhere",
        system_prompt="You are a backend development specialist",
        topic="API refactoring",
        created="2026-02-10T14:20:00+00:00",
        status="idle",
    ),
    "clarity-ui": PersistedSessionMetadata(
        name="clarity-ui",
        agent="claude",
        repo="~/repos/clarity",
        topic="Dashboard UI improvements",
        created="2026-02-11T16:00:00+00:00",
    ),
}


def _target_missing(kind: str, target: str) -> TmuxCommandError:
    stderr = f"can't find {kind}: {target}"
    return TmuxCommandError(f"tmux failed (exit 1): {stderr}", returncode=1, stderr=stderr)


class DemoMultiplexer:
    """In-memory MultiplexerClient that mimics a small tmux server.

    Unknown targets fail with the same stderr tmux produces, so error
    classification behaves exactly as with the real backend.
    """

    def __init__(self, now: Optional[float] = None) -> None:
        current = int(time.time() if now is None else now)
        self._sessions: dict[str, LiveSession] = {}
        self._panes: dict[str, LivePane] = {}
        self._content: dict[str, str] = {}
        self._next_pane = 0
        self._add("exfoliate-shop", "node", "~/repos/exfoliate-shop", current - 3600, current - 60)
        self._add("knowhere-backend", "zsh", "~/repos/knowhere", current - 7200, current - 1500)
        self._add("clarity-ui", "zsh", "~/repos/clarity", current - 5400, current - 120)

    def _add(self, name: str, command: str, path: str, created: int, activity: int) -> LivePane:
        pane_id = f"%{self._next_pane}"
        self._next_pane += 1
        self._sessions[name] = LiveSession(name=name, created_epoch=created, activity_epoch=activity)
        pane = LivePane(
            session_name=name,
            id=pane_id,
            width=120,
            height=40,
            current_command=command,
            current_path=path,
            is_active=True,
        )
        self._panes[pane_id] = pane
        self._content[pane_id] = DEMO_PANE_CONTENT
        return pane

    def _pane(self, pane_id: str) -> LivePane:
        pane = self._panes.get(pane_id)
        if pane is None:
            raise _target_missing("pane", pane_id)
        return pane

    def _resolve_target(self, target: str) -> LivePane:
        if target in self._panes:
            return self._panes[target]
        for pane in self._panes.values():
            if pane.session_name == target and pane.is_active:
                return pane
        raise _target_missing("pane", target)

    async def list_sessions(self) -> List[LiveSession]:
        return list(self._sessions.values())

    async def list_panes(self, session_name: Optional[str] = None) -> List[LivePane]:
        if session_name is None:
            return list(self._panes.values())
        if session_name not in self._sessions:
            raise _target_missing("session", session_name)
        return [p for p in self._panes.values() if p.session_name == session_name]

    async def capture_pane(self, pane_id: str, lines: Optional[int] = None) -> str:
        self._pane(pane_id)
        content = self._content.get(pane_id, "")
        if lines is None:
            return content
        return "\n".join(content.split("\n")[-lines:])

    async def get_cursor_position(self, pane_id: str) -> CursorPosition:
        self._pane(pane_id)
        return CursorPosition(x=0, y=len(self._content.get(pane_id, "").split("\n")) - 1)

    async def send_keys(self, pane_id: str, keys: str) -> None:
        pane = self._pane(pane_id)
        self._content[pane.id] += "\n" if keys in ("\r", "\n") else keys
        self._touch(pane.session_name)

    async def send_text_and_enter(self, session_name: str, text: str) -> None:
        pane = self._resolve_target(session_name)
        self._content[pane.id] += f"{text}\n"
        words = text.split()
        if words and pane.current_command in ("zsh", "bash", "sh"):
            # The typed program takes over the foreground
            self._panes[pane.id] = replace(pane, current_command=words[0])
        self._touch(pane.session_name)

    async def kill_session(self, session_name: str) -> None:
        if session_name not in self._sessions:
            raise _target_missing("session", session_name)
        del self._sessions[session_name]
        for pane_id in [p.id for p in self._panes.values() if p.session_name == session_name]:
            del self._panes[pane_id]
            self._content.pop(pane_id, None)

    async def new_session(self, name: str, shell_command: str, cwd: str) -> None:
        if name in self._sessions:
            stderr = f"duplicate session: {name}"
            raise TmuxCommandError(f"tmux new-session failed (exit 1): {stderr}", returncode=1, stderr=stderr)
        current = int(time.time())
        shell_name = shell_command.rsplit("/", 1)[-1]
        pane = self._add(name, shell_name, cwd, current, current)
        self._content[pane.id] = ""

    def _touch(self, session_name: str) -> None:
        live = self._sessions.get(session_name)
        if live is not None:
            self._sessions[session_name] = replace(live, activity_epoch=int(time.time()))


@dataclass
class Backend:
    """Everything the tracker and API need from the outside world."""

    multiplexer: MultiplexerClient
    store: MetadataStore
    read_events: Callable[[Optional[datetime]], List[AgentEvent]]


def create_backend(cfg: Config) -> Backend:
    """Build the backend selected by ``cfg.backend``."""
    if cfg.backend == "demo":
        logger.info("Using demo backend (no tmux calls)")
        seeded = SessionsState(sessions={name: replace(meta) for name, meta in DEMO_METADATA.items()})
        return Backend(
            multiplexer=DemoMultiplexer(),
            store=InMemorySessionStore(seeded),
            read_events=lambda since: filter_since(DEMO_EVENTS, since),
        )

    events_path = cfg.state.events_log_path
    return Backend(
        multiplexer=TmuxMultiplexer(),
        store=SessionMetadataStore(cfg.state.sessions_path),
        read_events=lambda since: read_events(events_path, since),
    )
