"""Unit tests for API server endpoints."""

from __future__ import annotations

import asyncio
import errno
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from agentdeck import api_server as api_server_module
from agentdeck.api_server import APIServer, run_until_disconnect
from agentdeck.config import config
from agentdeck.constants import TMUX_NOT_INSTALLED_MESSAGE
from agentdeck.core.backends import create_backend
from agentdeck.core.models import CursorPosition, PaneCapture
from agentdeck.core.session_tracker import SessionTracker
from agentdeck.core.tmux_bridge import TmuxCommandError

NOT_INSTALLED = TmuxCommandError(
    "Failed to run tmux: not found", spawn_error=FileNotFoundError(errno.ENOENT, "No such file or directory")
)
NO_SERVER = TmuxCommandError("tmux failed", returncode=1, stderr="no server running on /tmp/tmux-501/default")
PANE_MISSING = TmuxCommandError("tmux failed", returncode=1, stderr="can't find pane: %9")
WEIRD = TmuxCommandError("tmux list-sessions failed (exit 1): protocol version mismatch", returncode=1)


@pytest.fixture
def demo_client():  # type: ignore[explicit-any, unused-ignore]
    """TestClient over the demo backend (no tmux calls)."""
    backend = create_backend(replace(config, backend="demo"))
    tracker = SessionTracker(backend.multiplexer, backend.store, tracker_config=config.tracker, shell="/bin/zsh")
    server = APIServer(tracker, backend.read_events)
    return TestClient(server.app)


@pytest.fixture
def mock_tracker():  # type: ignore[explicit-any, unused-ignore]
    tracker = MagicMock()
    tracker.list_sessions = AsyncMock(return_value={})
    tracker.list_panes = AsyncMock(return_value=[])
    tracker.capture = AsyncMock(return_value=PaneCapture(content="", cursor=CursorPosition()))
    tracker.send_keys = AsyncMock()
    tracker.create_session = AsyncMock(return_value="x")
    tracker.kill_session = AsyncMock(return_value=True)
    return tracker


@pytest.fixture
def mock_client(mock_tracker):  # type: ignore[explicit-any, unused-ignore]
    server = APIServer(mock_tracker, lambda since: [])
    return TestClient(server.app)


def test_health(demo_client):
    response = demo_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestSessions:
    def test_lists_demo_sessions_in_camel_case(self, demo_client):
        response = demo_client.get("/api/tmux/sessions")

        assert response.status_code == 200
        sessions = response.json()["sessions"]
        assert set(sessions) == {"exfoliate-shop", "knowhere-backend", "clarity-ui"}
        shop = sessions["exfoliate-shop"]
        assert shop["status"] == "running"
        assert shop["activityState"] == "running"
        assert shop["lastLine"] == "✓ Task completed successfully"
        assert shop["activePaneId"] == "%0"
        assert shop["systemPrompt"] == "You are a coding agent for an e-commerce store"
        assert sessions["knowhere-backend"]["status"] == "idle"
        assert sessions["knowhere-backend"]["agent"] == "codex"
        assert "error" not in response.json()

    def test_tool_not_installed_is_503(self, mock_client, mock_tracker):
        mock_tracker.list_sessions.side_effect = NOT_INSTALLED

        response = mock_client.get("/api/tmux/sessions")

        assert response.status_code == 503
        assert response.json() == {"sessions": {}, "error": TMUX_NOT_INSTALLED_MESSAGE}

    def test_server_not_running_is_empty_success(self, mock_client, mock_tracker):
        mock_tracker.list_sessions.side_effect = NO_SERVER

        response = mock_client.get("/api/tmux/sessions")

        assert response.status_code == 200
        assert response.json() == {"sessions": {}}

    def test_unknown_failure_is_500_with_raw_message(self, mock_client, mock_tracker):
        mock_tracker.list_sessions.side_effect = WEIRD

        response = mock_client.get("/api/tmux/sessions")

        assert response.status_code == 500
        assert response.json()["sessions"] == {}
        assert "protocol version mismatch" in response.json()["error"]

    def test_create_then_list(self, demo_client):
        response = demo_client.post(
            "/api/tmux/sessions",
            json={"name": "review", "command": "codex --full-auto", "topic": "pr", "systemPrompt": "be strict"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "sessionName": "review"}
        review = demo_client.get("/api/tmux/sessions").json()["sessions"]["review"]
        assert review["agent"] == "codex"
        assert review["status"] == "running"
        assert review["topic"] == "pr"
        assert review["systemPrompt"] == "be strict"

    @pytest.mark.parametrize("body", [{}, {"name": "x"}, {"name": "a:b", "command": "claude"}])
    def test_create_validation_is_400(self, demo_client, body):
        response = demo_client.post("/api/tmux/sessions", json=body)

        assert response.status_code == 400
        assert "error" in response.json()

    def test_create_duplicate_is_500(self, demo_client):
        response = demo_client.post("/api/tmux/sessions", json={"name": "clarity-ui", "command": "claude"})

        assert response.status_code == 500
        assert "duplicate session" in response.json()["error"]

    def test_kill_then_kill_again(self, demo_client):
        first = demo_client.delete("/api/tmux/sessions", params={"name": "clarity-ui"})
        second = demo_client.delete("/api/tmux/sessions", params={"name": "clarity-ui"})

        assert first.status_code == 200
        assert first.json() == {"success": True}
        assert second.status_code == 404
        assert "clarity-ui" not in demo_client.get("/api/tmux/sessions").json()["sessions"]

    def test_kill_requires_name(self, demo_client):
        assert demo_client.delete("/api/tmux/sessions").status_code == 400

    def test_kill_tool_not_installed_is_503(self, mock_client, mock_tracker):
        mock_tracker.kill_session.side_effect = NOT_INSTALLED

        response = mock_client.delete("/api/tmux/sessions", params={"name": "x"})

        assert response.status_code == 503


class TestPanes:
    def test_lists_panes_of_session(self, demo_client):
        response = demo_client.get("/api/tmux/panes", params={"session": "exfoliate-shop"})

        assert response.status_code == 200
        panes = response.json()["panes"]
        assert len(panes) == 1
        assert panes[0]["id"] == "%0"
        assert panes[0]["sessionName"] == "exfoliate-shop"
        assert panes[0]["isActive"] is True
        assert panes[0]["currentCommand"] == "node"

    def test_missing_session_is_404(self, demo_client):
        assert demo_client.get("/api/tmux/panes", params={"session": "ghost"}).status_code == 404

    def test_requires_session(self, demo_client):
        assert demo_client.get("/api/tmux/panes").status_code == 400

    def test_server_not_running_is_empty(self, mock_client, mock_tracker):
        mock_tracker.list_panes.side_effect = NO_SERVER

        response = mock_client.get("/api/tmux/panes", params={"session": "x"})

        assert response.status_code == 200
        assert response.json() == {"panes": []}


class TestCapture:
    def test_captures_content_and_cursor(self, demo_client):
        response = demo_client.get("/api/tmux/capture", params={"pane": "%0", "lines": 5})

        assert response.status_code == 200
        data = response.json()
        assert "Task completed successfully" in data["content"]
        assert set(data["cursor"]) == {"x", "y"}

    def test_missing_pane_is_404(self, demo_client):
        assert demo_client.get("/api/tmux/capture", params={"pane": "%99"}).status_code == 404

    def test_requires_pane(self, demo_client):
        assert demo_client.get("/api/tmux/capture").status_code == 400

    def test_no_server_is_empty_capture(self, mock_client, mock_tracker):
        mock_tracker.capture.side_effect = NO_SERVER

        response = mock_client.get("/api/tmux/capture", params={"pane": "%1"})

        assert response.status_code == 200
        assert response.json() == {"content": "", "cursor": {"x": 0, "y": 0}}

    @pytest.mark.parametrize(("error", "status"), [(PANE_MISSING, 404), (NOT_INSTALLED, 503), (WEIRD, 500)])
    def test_error_mapping(self, mock_client, mock_tracker, error, status):
        mock_tracker.capture.side_effect = error

        response = mock_client.get("/api/tmux/capture", params={"pane": "%9"})

        assert response.status_code == status
        assert "error" in response.json()


class TestSendKeys:
    def test_sends_keys(self, demo_client):
        response = demo_client.post("/api/tmux/send-keys", json={"paneId": "%0", "keys": "ls"})

        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_requires_pane_and_keys(self, demo_client):
        assert demo_client.post("/api/tmux/send-keys", json={"paneId": "%0"}).status_code == 400

    def test_missing_pane_is_404(self, demo_client):
        response = demo_client.post("/api/tmux/send-keys", json={"paneId": "%42", "keys": "\r"})

        assert response.status_code == 404


class TestEvents:
    def test_lists_demo_events(self, demo_client):
        events = demo_client.get("/api/tmux/events").json()["events"]

        assert len(events) == 3
        assert events[0]["type"] == "teammate-idle"
        assert events[0]["agent"] == "researcher"
        assert "agent" not in events[1]

    def test_since_filters_older_events(self, demo_client):
        response = demo_client.get("/api/tmux/events", params={"since": "2026-02-12T05:27:00Z"})

        assert [e["timestamp"] for e in response.json()["events"]] == ["2026-02-12T05:30:00Z", "2026-02-12T05:28:00Z"]

    def test_invalid_since_is_400(self, demo_client):
        assert demo_client.get("/api/tmux/events", params={"since": "yesterday"}).status_code == 400


class TestRunUntilDisconnect:
    @pytest.mark.asyncio
    async def test_returns_result_when_client_stays(self):
        request = MagicMock()
        request.is_disconnected = AsyncMock(return_value=False)

        async def work():
            return 42

        assert await run_until_disconnect(request, work()) == 42

    @pytest.mark.asyncio
    async def test_cancels_work_when_client_leaves(self):
        request = MagicMock()
        request.url.path = "/api/tmux/capture"
        request.is_disconnected = AsyncMock(side_effect=[False, True])
        cancelled = asyncio.Event()

        async def work():
            try:
                await asyncio.Future()
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with patch.object(api_server_module, "DISCONNECT_POLL_INTERVAL_S", 0.01):
            with pytest.raises(asyncio.CancelledError):
                await run_until_disconnect(request, work())

        assert cancelled.is_set()
