"""Runtime binary resolution policy.

These paths are internal platform policy, not user-configurable settings.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

_MACOS_TMUX_CANDIDATES = (
    Path("/opt/homebrew/bin/tmux"),
    Path("/usr/local/bin/tmux"),
)
_UNIX_TMUX_BINARY = "tmux"
_DEFAULT_SHELL = "/bin/zsh"


def _is_macos() -> bool:
    return sys.platform == "darwin"


def resolve_tmux_binary() -> str:
    """Resolve tmux binary by platform.

    ``AGENTDECK_TMUX_BINARY`` wins when set. On macOS, GUI-launched processes
    often miss Homebrew in PATH, so the usual install locations are tried first.
    """
    override = os.getenv("AGENTDECK_TMUX_BINARY")
    if override:
        return override
    if _is_macos():
        for candidate in _MACOS_TMUX_CANDIDATES:
            if candidate.exists():
                return str(candidate)
    return _UNIX_TMUX_BINARY


def resolve_shell() -> str:
    """Resolve the login shell used as session leader for new sessions."""
    return os.getenv("SHELL") or _DEFAULT_SHELL
