"""Runtime-only policy modules (not user-configurable)."""

from agentdeck.runtime.binaries import resolve_shell, resolve_tmux_binary

__all__ = ["resolve_tmux_binary", "resolve_shell"]
