"""Agent-team event feed parsed from the hook event log.

Line format::

    [2026-02-12T05:30:00Z] [agent-team:teammate-idle] Teammate "researcher" went idle in ~/repos/project.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from agentdeck.core.models import AgentEvent

logger = logging.getLogger(__name__)

_EVENT_RE = re.compile(r"\[([^\]]+)\] \[agent-team:(teammate-idle|task-completed)\] (.+)")
_AGENT_RE = re.compile(r'Teammate "([^"]+)"')
_REPO_RE = re.compile(r"in (.+)\.$")

DEMO_EVENTS: tuple[AgentEvent, ...] = (
    AgentEvent(
        timestamp="2026-02-12T05:30:00Z",
        type="teammate-idle",
        message='Teammate "researcher" went idle in ~/repos/exfoliate-shop.',
        agent="researcher",
        repo="~/repos/exfoliate-shop",
    ),
    AgentEvent(
        timestamp="2026-02-12T05:28:00Z",
        type="task-completed",
        message='Task "implement auth" completed in ~/repos/knowhere.',
        repo="~/repos/knowhere",
    ),
    AgentEvent(
        timestamp="2026-02-12T05:25:00Z",
        type="teammate-idle",
        message='Teammate "tester" went idle in ~/repos/clarity.',
        agent="tester",
        repo="~/repos/clarity",
    ),
)


def parse_event_line(line: str) -> Optional[AgentEvent]:
    """Parse one log line; returns None for lines that are not agent-team events."""
    match = _EVENT_RE.search(line)
    if not match:
        return None
    timestamp, event_type, message = match.groups()
    agent_match = _AGENT_RE.search(message)
    repo_match = _REPO_RE.search(message)
    return AgentEvent(
        timestamp=timestamp,
        type=event_type,  # type: ignore[arg-type]
        message=message,
        agent=agent_match.group(1) if agent_match else None,
        repo=repo_match.group(1) if repo_match else None,
    )


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO8601 timestamp (``Z`` suffix allowed); naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def filter_since(events: Iterable[AgentEvent], since: Optional[datetime]) -> List[AgentEvent]:
    """Keep events strictly newer than ``since`` (all events when None)."""
    if since is None:
        return list(events)
    result: List[AgentEvent] = []
    for event in events:
        event_time = parse_timestamp(event.timestamp)
        if event_time is not None and event_time > since:
            result.append(event)
    return result


def read_events(path: Path, since: Optional[datetime] = None) -> List[AgentEvent]:
    """Read and parse the event log; a missing or unreadable file yields no events."""
    if not path.exists():
        return []
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Failed to read event log %s: %s", path, e)
        return []
    events = [event for event in (parse_event_line(line) for line in content.splitlines()) if event]
    return filter_since(events, since)
