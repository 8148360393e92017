"""Constants used across agentdeck.

Defaults for policy values live here; config.yml may override the ones marked
user-configurable.
"""

# tmux invocation (user-configurable via tracker.*)
SUBPROCESS_TIMEOUT_DEFAULT = 5.0  # Seconds before a tmux call is killed
MAX_OUTPUT_BYTES = 10 * 1024 * 1024  # Captured stdout cap per call

# Status inference policy (user-configurable via tracker.*)
IDLE_THRESHOLD_SECONDS = 10 * 60
PREVIEW_TAIL_LINES = 40
BARE_SHELL_COMMANDS: frozenset[str] = frozenset({"zsh", "bash", "sh", "fish", "nu", "tmux"})

# Agent kinds
AGENT_PRIMARY = "claude"
AGENT_ALTERNATE = "codex"

# Persisted status values that override inference
STATUS_OVERRIDES: frozenset[str] = frozenset({"running", "idle"})

# Names tmux reserves for target syntax (session:window.pane)
RESERVED_SESSION_NAME_CHARS = frozenset({":", "."})

# API defaults (user-configurable via api.*)
API_DEFAULT_HOST = "127.0.0.1"
API_DEFAULT_PORT = 8420

TMUX_NOT_INSTALLED_MESSAGE = "tmux is not installed on this machine."
