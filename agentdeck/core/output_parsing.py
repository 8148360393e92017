"""Helpers for turning raw pane captures into display text."""

from __future__ import annotations

import re

# CSI sequences: ESC [ <parameter bytes> <intermediate bytes> <final byte>
_ANSI_CSI_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")


def strip_ansi(text: str) -> str:
    """Remove CSI escape sequences; unmatched or partial escapes pass through."""
    return _ANSI_CSI_RE.sub("", text)


def extract_last_line(content: str) -> str:
    """Return the last non-blank line of a capture with escape sequences removed."""
    last = ""
    for line in content.splitlines():
        cleaned = strip_ansi(line).strip()
        if cleaned:
            last = cleaned
    return last
