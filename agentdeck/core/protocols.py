"""Protocol definitions for the pluggable tracker backends."""

from typing import List, Optional, Protocol, runtime_checkable

from agentdeck.core.models import CursorPosition, LivePane, LiveSession, SessionsState


@runtime_checkable
class MultiplexerClient(Protocol):
    """Command surface of the terminal multiplexer.

    Implementations raise TmuxCommandError on failure and never classify it.
    """

    async def list_sessions(self) -> List[LiveSession]: ...

    async def list_panes(self, session_name: Optional[str] = None) -> List[LivePane]: ...

    async def capture_pane(self, pane_id: str, lines: Optional[int] = None) -> str:
        """Capture scrollback; ``lines=None`` means the full history."""
        ...

    async def get_cursor_position(self, pane_id: str) -> CursorPosition: ...

    async def send_keys(self, pane_id: str, keys: str) -> None: ...

    async def send_text_and_enter(self, session_name: str, text: str) -> None: ...

    async def kill_session(self, session_name: str) -> None: ...

    async def new_session(self, name: str, shell_command: str, cwd: str) -> None: ...


@runtime_checkable
class MetadataStore(Protocol):
    """Load/save of operator-supplied session metadata."""

    def load(self) -> SessionsState: ...

    def save(self, state: SessionsState) -> None: ...
