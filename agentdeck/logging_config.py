"""agentdeck logging configuration.

Modules log through ``logging.getLogger(__name__)``; this module only wires
handlers for the process entrypoints.

Environment:
    AGENTDECK_LOG_LEVEL: root level (default INFO)
    AGENTDECK_LOG_FILE: optional path for a size-rotated log file
    AGENTDECK_LOG_MAX_SIZE_MB / AGENTDECK_LOG_BACKUP_COUNT: rotation policy
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _get_int_env(name: str, *, default: int, min_value: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    if parsed < min_value:
        return default
    return parsed


def setup_logging(level: Optional[str] = None) -> Optional[Path]:
    """Configure agentdeck logging.

    Args:
        level: Optional override for `AGENTDECK_LOG_LEVEL`.

    Returns:
        Path of the rotating log file, or None when logging to stderr only.
    """
    if level:
        os.environ["AGENTDECK_LOG_LEVEL"] = level

    level_name = os.getenv("AGENTDECK_LOG_LEVEL", "INFO").upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # Replace existing handlers so we don't duplicate output.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    fmt = logging.Formatter(_LOG_FORMAT)
    stderr_handler = logging.StreamHandler()
    stderr_handler.setFormatter(fmt)
    root.addHandler(stderr_handler)

    log_file = os.getenv("AGENTDECK_LOG_FILE")
    if not log_file:
        return None

    log_path = Path(log_file).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    max_mb = _get_int_env("AGENTDECK_LOG_MAX_SIZE_MB", default=10, min_value=1)
    backups = _get_int_env("AGENTDECK_LOG_BACKUP_COUNT", default=5, min_value=1)
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
    )
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)
    return log_path
