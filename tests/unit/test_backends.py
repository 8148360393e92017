"""Unit tests for backend selection and the demo multiplexer."""

from dataclasses import replace

import pytest

from agentdeck.config import config
from agentdeck.core.backends import DemoMultiplexer, TmuxMultiplexer, create_backend
from agentdeck.core.protocols import MetadataStore, MultiplexerClient
from agentdeck.core.session_store import InMemorySessionStore, SessionMetadataStore
from agentdeck.core.tmux_bridge import TmuxCommandError
from agentdeck.core.tmux_errors import TmuxErrorKind, classify_tmux_error


def test_tmux_backend_uses_file_store(tmp_path):
    cfg = replace(config, backend="tmux", state=replace(config.state, sessions_path=tmp_path / "s.json"))

    backend = create_backend(cfg)

    assert isinstance(backend.multiplexer, TmuxMultiplexer)
    assert isinstance(backend.store, SessionMetadataStore)
    assert backend.store.path == tmp_path / "s.json"
    assert isinstance(backend.multiplexer, MultiplexerClient)
    assert isinstance(backend.store, MetadataStore)


def test_demo_backend_is_seeded():
    backend = create_backend(replace(config, backend="demo"))

    assert isinstance(backend.multiplexer, DemoMultiplexer)
    assert isinstance(backend.store, InMemorySessionStore)
    assert backend.store.load().sessions["knowhere-backend"].status == "idle"
    assert len(backend.read_events(None)) == 3


def test_demo_backends_do_not_share_metadata():
    first = create_backend(replace(config, backend="demo"))
    second = create_backend(replace(config, backend="demo"))

    state = first.store.load()
    state.sessions.clear()
    first.store.save(state)

    assert second.store.load().sessions


@pytest.mark.asyncio
async def test_demo_unknown_targets_classify_like_tmux():
    mux = DemoMultiplexer(now=1_700_000_000)

    with pytest.raises(TmuxCommandError) as pane_error:
        await mux.capture_pane("%99")
    with pytest.raises(TmuxCommandError) as session_error:
        await mux.kill_session("ghost")

    assert classify_tmux_error(pane_error.value) is TmuxErrorKind.TARGET_MISSING
    assert classify_tmux_error(session_error.value) is TmuxErrorKind.TARGET_MISSING


@pytest.mark.asyncio
async def test_demo_new_session_runs_typed_command():
    mux = DemoMultiplexer(now=1_700_000_000)

    await mux.new_session("scratch", "/bin/zsh", "/tmp")
    await mux.send_text_and_enter("scratch", "claude --continue")

    panes = await mux.list_panes("scratch")
    assert panes[0].current_command == "claude"
    assert panes[0].current_path == "/tmp"
    assert "claude --continue" in await mux.capture_pane(panes[0].id)
