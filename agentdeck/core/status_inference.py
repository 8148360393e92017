"""Heuristic run-status inference for live tmux sessions.

tmux cannot tell whether an agent is working, so status is guessed from what
it does report: attached clients, the foreground command of the active pane,
and the time since last activity. The policy values (bare-shell names, idle
threshold) come from config and default to agentdeck.constants.
"""

from __future__ import annotations

import time
from typing import AbstractSet, Optional

from agentdeck.constants import (
    AGENT_ALTERNATE,
    AGENT_PRIMARY,
    BARE_SHELL_COMMANDS,
    IDLE_THRESHOLD_SECONDS,
    STATUS_OVERRIDES,
)
from agentdeck.core.models import ActivityState, PersistedSessionMetadata, SessionStatus


def is_bare_shell(command: Optional[str], shell_commands: AbstractSet[str] = BARE_SHELL_COMMANDS) -> bool:
    """True when the pane shows an idle shell (or nothing at all)."""
    return not command or command in shell_commands


def infer_status(
    activity_epoch: Optional[int],
    attached_clients: int,
    command: Optional[str],
    *,
    now: Optional[float] = None,
    idle_threshold_seconds: int = IDLE_THRESHOLD_SECONDS,
    shell_commands: AbstractSet[str] = BARE_SHELL_COMMANDS,
) -> SessionStatus:
    """Guess whether a session is running or idle.

    Order: an attached client means running; a foreground program other than a
    bare shell means running; unknown activity means idle; otherwise idle only
    once the last activity is older than the threshold.
    """
    if attached_clients > 0:
        return "running"
    if not is_bare_shell(command, shell_commands):
        return "running"
    if activity_epoch is None:
        return "idle"
    current = time.time() if now is None else now
    if current - activity_epoch > idle_threshold_seconds:
        return "idle"
    return "running"


def infer_activity_state(
    status: SessionStatus,
    command: Optional[str],
    shell_commands: AbstractSet[str] = BARE_SHELL_COMMANDS,
) -> ActivityState:
    """Running sessions show "running" only while a non-shell program is in the foreground."""
    if status != "running":
        return "waiting"
    return "waiting" if is_bare_shell(command, shell_commands) else "running"


def resolve_status(metadata: Optional[PersistedSessionMetadata], inferred: SessionStatus) -> SessionStatus:
    """Apply the operator's persisted override when it is a recognised status."""
    if metadata is not None and metadata.status in STATUS_OVERRIDES:
        return metadata.status  # type: ignore[return-value]
    return inferred


def infer_agent(*sources: Optional[str]) -> str:
    """Alternate agent when any source text mentions it, primary agent otherwise."""
    text = " ".join(s for s in sources if s).lower()
    return AGENT_ALTERNATE if AGENT_ALTERNATE in text else AGENT_PRIMARY
