"""Global configuration management.

Config is loaded at module import time and available globally via:
    from agentdeck.config import config

``config.yml`` is optional; every key has a default in ``DEFAULT_CONFIG``.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv

from agentdeck.constants import (
    API_DEFAULT_HOST,
    API_DEFAULT_PORT,
    BARE_SHELL_COMMANDS,
    IDLE_THRESHOLD_SECONDS,
    MAX_OUTPUT_BYTES,
    PREVIEW_TAIL_LINES,
    SUBPROCESS_TIMEOUT_DEFAULT,
)
from agentdeck.paths import AGENT_EVENT_LOG_PATH, SESSIONS_STATE_PATH
from agentdeck.runtime.binaries import resolve_tmux_binary
from agentdeck.utils import expand_env_vars

logger = logging.getLogger(__name__)

# Project root (relative to this file)
_project_root = Path(__file__).parent.parent.parent

# Load .env (allow override for tests)
_env_path = os.getenv("AGENTDECK_ENV_PATH")
_dotenv_path = Path(_env_path).expanduser() if _env_path else _project_root / ".env"
if not _dotenv_path.is_absolute():
    _dotenv_path = (_project_root / _dotenv_path).resolve()

load_dotenv(_dotenv_path)

BackendName = Literal["tmux", "demo"]


@dataclass
class TrackerConfig:
    """tmux invocation limits and status-inference policy."""

    subprocess_timeout: float
    max_output_bytes: int
    idle_threshold_seconds: int
    preview_tail_lines: int
    bare_shell_commands: frozenset[str]
    tmux_binary: str = "tmux"  # Resolved by runtime policy (not user-configurable)


@dataclass
class StateConfig:
    sessions_path: Path
    events_log_path: Path


@dataclass
class ApiConfig:
    host: str
    port: int


@dataclass
class Config:
    backend: BackendName
    tracker: TrackerConfig
    state: StateConfig
    api: ApiConfig = field(default_factory=lambda: ApiConfig(host=API_DEFAULT_HOST, port=API_DEFAULT_PORT))


# Default configuration values (single source of truth for user-configurable keys)
DEFAULT_CONFIG: dict[str, object] = {
    "backend": "tmux",
    "tracker": {
        "subprocess_timeout": SUBPROCESS_TIMEOUT_DEFAULT,
        "max_output_bytes": MAX_OUTPUT_BYTES,
        "idle_threshold_seconds": IDLE_THRESHOLD_SECONDS,
        "preview_tail_lines": PREVIEW_TAIL_LINES,
        "bare_shell_commands": sorted(BARE_SHELL_COMMANDS),
    },
    "state": {
        "sessions_path": str(SESSIONS_STATE_PATH),
        "events_log_path": str(AGENT_EVENT_LOG_PATH),
    },
    "api": {
        "host": API_DEFAULT_HOST,
        "port": API_DEFAULT_PORT,
    },
}


def _deep_merge(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    """Deep merge override dict into base dict.

    Args:
        base: Base dictionary with defaults
        override: Dictionary with overrides from user config

    Returns:
        Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)  # type: ignore[arg-type]
        else:
            result[key] = value
    return result


def _validate_disallowed_runtime_keys(user_config: dict[str, object]) -> None:
    """Reject config keys that must be runtime policy, not user configuration."""
    tracker = user_config.get("tracker")
    if isinstance(tracker, dict) and "tmux_binary" in tracker:
        raise ValueError(
            "config.yml contains disallowed runtime key: tracker.tmux_binary. "
            "Set AGENTDECK_TMUX_BINARY in the environment instead."
        )


def _build_config(raw: dict[str, object]) -> Config:
    """Build typed Config from raw dict with proper type conversion."""
    tracker_raw: Any = raw["tracker"]
    state_raw: Any = raw["state"]
    api_raw: Any = raw["api"]

    backend = str(raw["backend"])
    if backend not in ("tmux", "demo"):
        raise ValueError(f"Invalid backend '{backend}' (expected 'tmux' or 'demo')")

    shells_raw = tracker_raw["bare_shell_commands"]
    if not isinstance(shells_raw, list):
        raise ValueError("tracker.bare_shell_commands must be a list")

    return Config(
        backend=backend,  # type: ignore[arg-type]
        tracker=TrackerConfig(
            subprocess_timeout=float(tracker_raw["subprocess_timeout"]),
            max_output_bytes=int(tracker_raw["max_output_bytes"]),
            idle_threshold_seconds=int(tracker_raw["idle_threshold_seconds"]),
            preview_tail_lines=int(tracker_raw["preview_tail_lines"]),
            bare_shell_commands=frozenset(str(s) for s in shells_raw),
            tmux_binary=resolve_tmux_binary(),
        ),
        state=StateConfig(
            sessions_path=Path(str(state_raw["sessions_path"])).expanduser(),
            events_log_path=Path(str(state_raw["events_log_path"])).expanduser(),
        ),
        api=ApiConfig(
            host=str(api_raw["host"]),
            port=int(api_raw["port"]),
        ),
    )


def _resolve_config_path() -> Path:
    config_env_path = os.getenv("AGENTDECK_CONFIG_PATH")
    config_path = Path(config_env_path).expanduser() if config_env_path else _project_root / "config.yml"
    if not config_path.is_absolute():
        config_path = (_project_root / config_path).resolve()
    return config_path


def load_config(path: Path | None = None) -> Config:
    """Load config.yml (if present), expand ${VAR}s and merge over defaults."""
    config_path = path or _resolve_config_path()
    user_config: Any = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            raw_user_config = yaml.safe_load(f)
        if isinstance(raw_user_config, dict):
            user_config = expand_env_vars(raw_user_config)
            _validate_disallowed_runtime_keys(user_config)
    else:
        logger.debug("No config file at %s, using defaults", config_path)

    merged = _deep_merge(DEFAULT_CONFIG, user_config)
    return _build_config(merged)


config = load_config()
