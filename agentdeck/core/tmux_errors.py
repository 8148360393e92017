"""Classification of tmux failures into stable error kinds.

tmux reports most failures as free-form text on stderr. The API layer needs a
small fixed vocabulary instead, so every TmuxCommandError is mapped here:

- TOOL_NOT_INSTALLED: the tmux binary could not be spawned at all
- SERVER_NOT_RUNNING: no tmux server is listening (no sessions exist)
- TARGET_MISSING: the named session or pane does not exist
- UNKNOWN: anything else; the raw message is kept for display

Kinds are checked in that order.
"""

from __future__ import annotations

import errno
from enum import Enum
from typing import Optional

from agentdeck.core.tmux_bridge import TmuxCommandError

_SERVER_NOT_RUNNING_MARKERS = ("no server running", "failed to connect to server")
_TARGET_MISSING_MARKERS = ("can't find pane", "can't find session")


class TmuxErrorKind(str, Enum):
    """Failure kinds surfaced to API callers."""

    TOOL_NOT_INSTALLED = "tool_not_installed"
    SERVER_NOT_RUNNING = "server_not_running"
    TARGET_MISSING = "target_missing"
    UNKNOWN = "unknown"


def classify_failure(
    diagnostic: str,
    *,
    message: str = "",
    spawn_error: Optional[BaseException] = None,
) -> TmuxErrorKind:
    """Map a failed invocation's diagnostics to a TmuxErrorKind.

    Args:
        diagnostic: Captured stderr of the tmux process
        message: Exception message (may embed stderr)
        spawn_error: OSError raised while starting the process, if any
    """
    if spawn_error is not None and _is_not_found(spawn_error):
        return TmuxErrorKind.TOOL_NOT_INSTALLED

    haystack = f"{diagnostic}\n{message}".lower()
    if any(marker in haystack for marker in _SERVER_NOT_RUNNING_MARKERS):
        return TmuxErrorKind.SERVER_NOT_RUNNING
    if any(marker in haystack for marker in _TARGET_MISSING_MARKERS):
        return TmuxErrorKind.TARGET_MISSING
    return TmuxErrorKind.UNKNOWN


def _is_not_found(error: BaseException) -> bool:
    if isinstance(error, FileNotFoundError):
        return True
    return isinstance(error, OSError) and error.errno == errno.ENOENT


def classify_tmux_error(error: BaseException) -> TmuxErrorKind:
    """Classify any exception raised while talking to tmux."""
    if isinstance(error, TmuxCommandError):
        return classify_failure(error.stderr, message=str(error), spawn_error=error.spawn_error)
    if isinstance(error, OSError) and _is_not_found(error):
        return TmuxErrorKind.TOOL_NOT_INSTALLED
    return TmuxErrorKind.UNKNOWN


def format_tmux_error(error: BaseException) -> str:
    """Human-readable message for an UNKNOWN failure."""
    message = str(error)
    return message or "Unknown tmux error"
