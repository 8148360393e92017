"""Unit tests for config loading - defaults, overrides and guardrails."""

from pathlib import Path

import pytest

from agentdeck.config import DEFAULT_CONFIG, _deep_merge, load_config
from agentdeck.constants import BARE_SHELL_COMMANDS, IDLE_THRESHOLD_SECONDS, PREVIEW_TAIL_LINES


def test_missing_file_uses_defaults(tmp_path):
    cfg = load_config(tmp_path / "config.yml")

    assert cfg.backend == "tmux"
    assert cfg.tracker.idle_threshold_seconds == IDLE_THRESHOLD_SECONDS
    assert cfg.tracker.preview_tail_lines == PREVIEW_TAIL_LINES
    assert cfg.tracker.bare_shell_commands == BARE_SHELL_COMMANDS
    assert cfg.state.sessions_path.name == "tmux-sessions.json"
    assert cfg.api.port == 8420


def test_user_values_are_merged_over_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("AGENTDECK_TEST_STATE", str(tmp_path / "state"))
    config_file = tmp_path / "config.yml"
    config_file.write_text(
        "backend: demo\n"
        "tracker:\n"
        "  idle_threshold_seconds: 120\n"
        "  bare_shell_commands: [zsh, xonsh]\n"
        "state:\n"
        "  sessions_path: ${AGENTDECK_TEST_STATE}/sessions.json\n"
        "api:\n"
        "  port: 9000\n",
        encoding="utf-8",
    )

    cfg = load_config(config_file)

    assert cfg.backend == "demo"
    assert cfg.tracker.idle_threshold_seconds == 120
    assert cfg.tracker.preview_tail_lines == PREVIEW_TAIL_LINES
    assert cfg.tracker.bare_shell_commands == frozenset({"zsh", "xonsh"})
    assert cfg.state.sessions_path == tmp_path / "state" / "sessions.json"
    assert cfg.api.port == 9000
    assert cfg.api.host == DEFAULT_CONFIG["api"]["host"]  # type: ignore[index]


def test_tilde_paths_are_expanded(tmp_path):
    config_file = tmp_path / "config.yml"
    config_file.write_text("state:\n  events_log_path: ~/events.log\n", encoding="utf-8")

    cfg = load_config(config_file)

    assert cfg.state.events_log_path == Path.home() / "events.log"


def test_tmux_binary_is_not_user_configurable(tmp_path):
    config_file = tmp_path / "config.yml"
    config_file.write_text("tracker:\n  tmux_binary: /tmp/tmux\n", encoding="utf-8")

    with pytest.raises(ValueError, match="disallowed runtime key: tracker.tmux_binary"):
        load_config(config_file)


def test_tmux_binary_comes_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("AGENTDECK_TMUX_BINARY", "/opt/tmux/bin/tmux")

    assert load_config(tmp_path / "config.yml").tracker.tmux_binary == "/opt/tmux/bin/tmux"


def test_invalid_backend_is_rejected(tmp_path):
    config_file = tmp_path / "config.yml"
    config_file.write_text("backend: screen\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid backend 'screen'"):
        load_config(config_file)


def test_shell_list_must_be_a_list(tmp_path):
    config_file = tmp_path / "config.yml"
    config_file.write_text("tracker:\n  bare_shell_commands: zsh\n", encoding="utf-8")

    with pytest.raises(ValueError, match="must be a list"):
        load_config(config_file)


def test_deep_merge_does_not_mutate_base():
    base = {"a": {"b": 1, "c": 2}}

    merged = _deep_merge(base, {"a": {"c": 3}})

    assert merged == {"a": {"b": 1, "c": 3}}
    assert base == {"a": {"b": 1, "c": 2}}
