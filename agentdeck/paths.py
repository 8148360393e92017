from __future__ import annotations

from pathlib import Path

STATE_DIR = (Path("~/.openclaw") / "workspace" / "state").expanduser()
SESSIONS_STATE_PATH = STATE_DIR / "tmux-sessions.json"
AGENT_EVENT_LOG_PATH = Path("/tmp/openclaw-tmux/agent-team-events.log")
