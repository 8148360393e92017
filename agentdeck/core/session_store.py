"""Persisted per-session metadata (agent kind, repo, topic, status override).

The JSON document lives at ``config.state.sessions_path``::

    {"sessions": {"<name>": {"name": ..., "agent": ..., "repo": ..., ...}}}

Reads always go to disk. Writes are read-modify-write without locking; they
only happen on explicit create/kill, so last writer wins.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from agentdeck.core.models import PersistedSessionMetadata, SessionsState

logger = logging.getLogger(__name__)


class SessionMetadataStore:
    """JSON-file backed metadata store."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> SessionsState:
        """Load state from disk; a missing or unreadable file yields empty state."""
        state = SessionsState()
        if not self.path.exists():
            return state
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load session metadata from %s: %s", self.path, e)
            return state

        sessions = data.get("sessions") if isinstance(data, dict) else None
        if not isinstance(sessions, dict):
            return state
        for name, raw in sessions.items():
            if isinstance(raw, dict):
                state.sessions[str(name)] = PersistedSessionMetadata.from_dict(str(name), raw)  # type: ignore[arg-type]
        return state

    def save(self, state: SessionsState) -> None:
        """Persist state, creating the state directory on demand."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except Exception:
            if tmp_path.exists():
                tmp_path.unlink()
            raise
        logger.debug("Saved %d session metadata entries to %s", len(state.sessions), self.path)


class InMemorySessionStore:
    """Process-local store used by the demo backend."""

    def __init__(self, state: SessionsState | None = None) -> None:
        self._state = state or SessionsState()

    def load(self) -> SessionsState:
        # Callers mutate the loaded state before saving it back
        return SessionsState(
            sessions={
                name: PersistedSessionMetadata(**vars(meta)) for name, meta in self._state.sessions.items()
            }
        )

    def save(self, state: SessionsState) -> None:
        self._state = state
