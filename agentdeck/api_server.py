"""HTTP API for the agent dashboard.

Every route lives under ``/api/tmux`` and is a thin shell over SessionTracker:
tmux failures are classified here and mapped to status codes, nothing else.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, TypeVar

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from agentdeck import __version__
from agentdeck.api_models import (
    AgentEventDTO,
    CaptureResponseDTO,
    CreateSessionRequest,
    CreateSessionResponseDTO,
    CursorDTO,
    EventsResponseDTO,
    PaneDTO,
    PanesResponseDTO,
    SendKeysRequest,
    SessionsResponseDTO,
    SuccessDTO,
    UnifiedSessionDTO,
)
from agentdeck.config import config
from agentdeck.constants import TMUX_NOT_INSTALLED_MESSAGE
from agentdeck.core.agent_events import parse_timestamp
from agentdeck.core.models import AgentEvent
from agentdeck.core.session_tracker import SessionTracker, SessionValidationError
from agentdeck.core.tmux_errors import TmuxErrorKind, classify_tmux_error, format_tmux_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

API_PREFIX = "/api/tmux"
DISCONNECT_POLL_INTERVAL_S = 0.25

EventReader = Callable[[Optional[datetime]], List[AgentEvent]]


async def run_until_disconnect(request: Request, work: Awaitable[T]) -> T:
    """Await ``work``, cancelling it if the client disconnects first.

    Cancellation reaches the tmux subprocesses, which are killed on cancel.
    """
    task = asyncio.ensure_future(work)

    async def _watch() -> None:
        while not task.done():
            if await request.is_disconnected():
                logger.info("Client disconnected from %s, cancelling request", request.url.path)
                task.cancel()
                return
            await asyncio.sleep(DISCONNECT_POLL_INTERVAL_S)

    watcher = asyncio.create_task(_watch())
    try:
        return await task
    finally:
        watcher.cancel()


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _tmux_error_response(error: Exception, *, not_found: str, operation: str) -> JSONResponse:
    """Map a classified tmux failure to an HTTP error response."""
    kind = classify_tmux_error(error)
    if kind is TmuxErrorKind.TOOL_NOT_INSTALLED:
        return _error(TMUX_NOT_INSTALLED_MESSAGE, 503)
    if kind in (TmuxErrorKind.TARGET_MISSING, TmuxErrorKind.SERVER_NOT_RUNNING):
        return _error(not_found, 404)
    logger.error("%s failed: %s", operation, error, exc_info=True)
    return _error(format_tmux_error(error), 500)


class APIServer:
    """HTTP API server over a SessionTracker."""

    def __init__(
        self,
        tracker: SessionTracker,
        read_events: EventReader,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        self.tracker = tracker
        self.read_events = read_events
        self.host = host or config.api.host
        self.port = port or config.api.port
        self.app = FastAPI(title="agentdeck API", version=__version__)
        self.server: uvicorn.Server | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up all HTTP endpoints."""

        @self.app.get("/health")
        async def health() -> dict[str, str]:  # pyright: ignore
            """Health check endpoint."""
            return {"status": "ok"}

        @self.app.get(f"{API_PREFIX}/sessions", response_model=SessionsResponseDTO, response_model_exclude_none=True)
        async def list_sessions(request: Request):  # pyright: ignore
            """Unified view of every live tmux session, keyed by name."""
            try:
                sessions = await run_until_disconnect(request, self.tracker.list_sessions())
            except Exception as e:
                kind = classify_tmux_error(e)
                if kind is TmuxErrorKind.SERVER_NOT_RUNNING:
                    return SessionsResponseDTO(sessions={})
                if kind is TmuxErrorKind.TOOL_NOT_INSTALLED:
                    return JSONResponse({"sessions": {}, "error": TMUX_NOT_INSTALLED_MESSAGE}, status_code=503)
                logger.error("list_sessions failed: %s", e, exc_info=True)
                return JSONResponse({"sessions": {}, "error": format_tmux_error(e)}, status_code=500)
            return SessionsResponseDTO(
                sessions={name: UnifiedSessionDTO.from_core(session) for name, session in sessions.items()}
            )

        @self.app.post(f"{API_PREFIX}/sessions", response_model=CreateSessionResponseDTO)
        async def create_session(body: CreateSessionRequest):  # pyright: ignore
            """Start a detached session and type the command into it."""
            try:
                name = await self.tracker.create_session(
                    body.name,
                    body.command,
                    body.cwd,
                    topic=body.topic,
                    system_prompt=body.system_prompt,
                )
            except SessionValidationError as e:
                return _error(str(e), 400)
            except Exception as e:
                return _tmux_error_response(
                    e, not_found=f"Session not found: {body.name}", operation="create_session"
                )
            return CreateSessionResponseDTO(session_name=name)

        @self.app.delete(f"{API_PREFIX}/sessions", response_model=SuccessDTO)
        async def kill_session(name: str | None = Query(None)):  # pyright: ignore
            """Kill a session by name; 404 when it is already gone."""
            if not name:
                return _error("Session name required", 400)
            try:
                killed = await self.tracker.kill_session(name)
            except Exception as e:
                return _tmux_error_response(e, not_found=f"Session not found: {name}", operation="kill_session")
            if not killed:
                return _error(f"Session not found: {name}", 404)
            return SuccessDTO()

        @self.app.get(f"{API_PREFIX}/panes", response_model=PanesResponseDTO)
        async def list_panes(request: Request, session: str | None = Query(None)):  # pyright: ignore
            """Panes of one session."""
            if not session:
                return _error("Session name required", 400)
            try:
                panes = await run_until_disconnect(request, self.tracker.list_panes(session))
            except Exception as e:
                if classify_tmux_error(e) is TmuxErrorKind.SERVER_NOT_RUNNING:
                    return PanesResponseDTO(panes=[])
                return _tmux_error_response(e, not_found=f"Session not found: {session}", operation="list_panes")
            return PanesResponseDTO(panes=[PaneDTO.from_core(p) for p in panes])

        @self.app.get(f"{API_PREFIX}/capture", response_model=CaptureResponseDTO)
        async def capture(  # pyright: ignore
            request: Request,
            pane: str | None = Query(None),
            lines: int | None = Query(None, ge=1),
        ):
            """Pane content with escape sequences, plus the cursor position."""
            if not pane:
                return _error("Pane ID required", 400)
            try:
                result = await run_until_disconnect(request, self.tracker.capture(pane, lines))
            except Exception as e:
                if classify_tmux_error(e) is TmuxErrorKind.SERVER_NOT_RUNNING:
                    return CaptureResponseDTO(content="", cursor=CursorDTO())
                return _tmux_error_response(e, not_found=f"Pane not found: {pane}", operation="capture")
            return CaptureResponseDTO.from_core(result)

        @self.app.post(f"{API_PREFIX}/send-keys", response_model=SuccessDTO)
        async def send_keys(body: SendKeysRequest):  # pyright: ignore
            """Forward raw keystrokes to a pane."""
            try:
                await self.tracker.send_keys(body.pane_id, body.keys)
            except SessionValidationError as e:
                return _error(str(e), 400)
            except Exception as e:
                return _tmux_error_response(e, not_found=f"Pane not found: {body.pane_id}", operation="send_keys")
            return SuccessDTO()

        @self.app.get(f"{API_PREFIX}/events", response_model=EventsResponseDTO, response_model_exclude_none=True)
        async def list_events(since: str | None = Query(None)):  # pyright: ignore
            """Agent-team events, optionally only those newer than ``since``."""
            since_dt = None
            if since:
                since_dt = parse_timestamp(since)
                if since_dt is None:
                    return _error(f"Invalid since timestamp: {since}", 400)
            try:
                events = await asyncio.to_thread(self.read_events, since_dt)
            except Exception as e:
                logger.error("list_events failed: %s", e, exc_info=True)
                return _error(f"Failed to read events: {e}", 500)
            return EventsResponseDTO(events=[AgentEventDTO.from_core(ev) for ev in events])

    async def start(self) -> None:
        """Serve until stop() is called or the process is interrupted."""
        server_config = uvicorn.Config(self.app, host=self.host, port=self.port, log_level="warning")
        self.server = uvicorn.Server(server_config)
        logger.info("API server listening on %s:%s", self.host, self.port)
        await self.server.serve()
        logger.info("API server stopped")

    async def stop(self) -> None:
        if self.server is not None:
            self.server.should_exit = True
