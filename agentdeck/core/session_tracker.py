"""Live session tracker - merges tmux state with persisted session metadata.

Every call re-derives live state from tmux; nothing is cached between
requests. Reads degrade instead of failing where a tmux error only means
"nothing there" (no server, pane vanished mid-request), and per-session
preview captures are isolated from each other.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections import defaultdict
from pathlib import Path
from typing import Callable, Dict, List, Optional

from agentdeck.config import TrackerConfig, config
from agentdeck.constants import RESERVED_SESSION_NAME_CHARS
from agentdeck.core.models import (
    LivePane,
    LiveSession,
    PaneCapture,
    PersistedSessionMetadata,
    UnifiedSession,
)
from agentdeck.core.output_parsing import extract_last_line
from agentdeck.core.protocols import MetadataStore, MultiplexerClient
from agentdeck.core.status_inference import infer_activity_state, infer_agent, infer_status, resolve_status
from agentdeck.core.tmux_bridge import TmuxCommandError
from agentdeck.core.tmux_errors import TmuxErrorKind, classify_tmux_error
from agentdeck.runtime.binaries import resolve_shell
from agentdeck.utils import epoch_to_iso, utc_now_iso

logger = logging.getLogger(__name__)

_GONE_KINDS = frozenset({TmuxErrorKind.TARGET_MISSING, TmuxErrorKind.SERVER_NOT_RUNNING})


class SessionValidationError(ValueError):
    """Caller supplied invalid input for a session operation."""


def pick_active_pane(panes: List[LivePane]) -> Optional[LivePane]:
    """First pane flagged active, else the first pane listed, else None."""
    for pane in panes:
        if pane.is_active:
            return pane
    return panes[0] if panes else None


class SessionTracker:
    """Builds the unified session view and issues create/kill commands."""

    def __init__(
        self,
        multiplexer: MultiplexerClient,
        store: MetadataStore,
        *,
        tracker_config: Optional[TrackerConfig] = None,
        shell: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        cfg = tracker_config or config.tracker
        self.multiplexer = multiplexer
        self.store = store
        self.idle_threshold_seconds = cfg.idle_threshold_seconds
        self.preview_tail_lines = cfg.preview_tail_lines
        self.shell_commands = cfg.bare_shell_commands
        self._shell = shell
        self._clock = clock

    async def list_sessions(self) -> Dict[str, UnifiedSession]:
        """Build the unified view of every live session, keyed by name.

        Raises:
            TmuxCommandError: If the session enumeration itself fails
        """
        live_sessions = await self.multiplexer.list_sessions()
        if not live_sessions:
            return {}

        panes_by_session: Dict[str, List[LivePane]] = defaultdict(list)
        for pane in await self._list_all_panes():
            panes_by_session[pane.session_name].append(pane)

        state = await asyncio.to_thread(self.store.load)
        now = self._clock()
        unified = await asyncio.gather(
            *(
                self._build_session(live, state.sessions.get(live.name), panes_by_session.get(live.name, []), now)
                for live in live_sessions
            )
        )
        # Persisted entries without a live session are left out, not deleted
        return {session.name: session for session in unified}

    async def _list_all_panes(self) -> List[LivePane]:
        try:
            return await self.multiplexer.list_panes()
        except TmuxCommandError as e:
            kind = classify_tmux_error(e)
            if kind not in _GONE_KINDS:
                logger.error("Failed to read tmux panes while loading sessions: %s", e)
            return []

    async def _build_session(
        self,
        live: LiveSession,
        metadata: Optional[PersistedSessionMetadata],
        panes: List[LivePane],
        now: float,
    ) -> UnifiedSession:
        active_pane = pick_active_pane(panes)
        command = active_pane.current_command if active_pane else None

        inferred = infer_status(
            live.activity_epoch,
            live.attached_clients,
            command,
            now=now,
            idle_threshold_seconds=self.idle_threshold_seconds,
            shell_commands=self.shell_commands,
        )
        status = resolve_status(metadata, inferred)
        last_line = await self._preview(live.name, active_pane) if active_pane else ""

        if metadata is not None:
            agent = metadata.agent
            repo = metadata.repo
        else:
            agent = infer_agent(live.name, command)
            repo = active_pane.current_path if active_pane and active_pane.current_path else "~"

        return UnifiedSession(
            name=live.name,
            agent=agent,
            repo=repo,
            created=(metadata.created if metadata and metadata.created else epoch_to_iso(live.created_epoch)),
            last_used=epoch_to_iso(live.activity_epoch),
            status=status,
            activity_state=infer_activity_state(status, command, self.shell_commands),
            last_line=last_line,
            active_pane_id=active_pane.id if active_pane else None,
            current_command=command,
            system_prompt=metadata.system_prompt if metadata else None,
            topic=metadata.topic if metadata else None,
        )

    async def _preview(self, session_name: str, pane: LivePane) -> str:
        """Last output line of a pane; never raises for tmux failures."""
        try:
            tail = await self.multiplexer.capture_pane(pane.id, self.preview_tail_lines)
        except TmuxCommandError as e:
            if classify_tmux_error(e) is not TmuxErrorKind.TARGET_MISSING:
                logger.warning("Failed to capture preview for %s: %s", session_name, e)
            return ""
        except Exception as e:  # noqa: BLE001
            logger.error("Unexpected error capturing preview for %s: %s", session_name, e, exc_info=True)
            return ""
        return extract_last_line(tail)

    async def list_panes(self, session_name: str) -> List[LivePane]:
        """Panes of one named session (errors propagate for the caller to classify)."""
        return await self.multiplexer.list_panes(session_name)

    async def capture(self, pane_id: str, lines: Optional[int] = None) -> PaneCapture:
        """Pane content and cursor position, fetched concurrently."""
        content_task = asyncio.ensure_future(self.multiplexer.capture_pane(pane_id, lines))
        cursor_task = asyncio.ensure_future(self.multiplexer.get_cursor_position(pane_id))
        try:
            content, cursor = await asyncio.gather(content_task, cursor_task)
        except BaseException:
            content_task.cancel()
            cursor_task.cancel()
            raise
        return PaneCapture(content=content, cursor=cursor)

    async def send_keys(self, pane_id: str, keys: str) -> None:
        if not pane_id or not keys:
            raise SessionValidationError("Pane ID and keys are required")
        await self.multiplexer.send_keys(pane_id, keys)

    async def create_session(
        self,
        name: str,
        command: str,
        cwd: Optional[str] = None,
        *,
        topic: Optional[str] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """Spawn a detached session, type ``command`` into it and persist its metadata.

        Returns:
            The session name

        Raises:
            SessionValidationError: If name or command is empty or the name is not a valid tmux name
            TmuxCommandError: If tmux fails
        """
        name = (name or "").strip()
        command = (command or "").strip()
        if not name or not command:
            raise SessionValidationError("Session name and command are required")
        if any(char in name for char in RESERVED_SESSION_NAME_CHARS):
            raise SessionValidationError(f'Session name "{name}" may not contain ":" or "."')

        workdir = os.path.expanduser(cwd) if cwd else str(Path.home())
        shell = self._shell or resolve_shell()
        await self.multiplexer.new_session(name, shell, workdir)
        await self.multiplexer.send_text_and_enter(name, command)

        state = await asyncio.to_thread(self.store.load)
        state.sessions[name] = PersistedSessionMetadata(
            name=name,
            agent=infer_agent(command),
            repo=cwd or "~",
            created=utc_now_iso(),
            system_prompt=system_prompt,
            topic=topic,
            status="running",
        )
        await asyncio.to_thread(self.store.save, state)
        logger.info("Started session %s (%s) in %s", name, state.sessions[name].agent, workdir)
        return name

    async def kill_session(self, name: str) -> bool:
        """Kill a session.

        Returns:
            True if tmux killed it, False if it was already gone

        Raises:
            SessionValidationError: If no name was given
            TmuxCommandError: For failures other than "already gone"
        """
        if not name:
            raise SessionValidationError("Session name required")
        killed = True
        try:
            await self.multiplexer.kill_session(name)
        except TmuxCommandError as e:
            if classify_tmux_error(e) not in _GONE_KINDS:
                raise
            logger.info("Session %s already gone: %s", name, e)
            killed = False

        await self._clear_status_override(name)
        return killed

    async def _clear_status_override(self, name: str) -> None:
        state = await asyncio.to_thread(self.store.load)
        metadata = state.sessions.get(name)
        if metadata is None or metadata.status is None:
            return
        metadata.status = None
        await asyncio.to_thread(self.store.save, state)
