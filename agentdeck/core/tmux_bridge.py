"""tmux bridge for agentdeck - runs tmux commands and parses their output.

All functions are stateless and use config imported from agentdeck.config.
Failures are raised as TmuxCommandError with the raw exit status, stderr and
spawn error attached; classifying them is left to the caller (see
agentdeck.core.tmux_errors).
"""

import asyncio
import logging
from typing import List, Optional

from agentdeck.config import config
from agentdeck.core.models import CursorPosition, LivePane, LiveSession

logger = logging.getLogger(__name__)

SESSION_FORMAT = "#{session_name}\t#{session_created}\t#{session_activity}\t#{session_attached}"
PANE_FORMAT = (
    "#{session_name}\t#{pane_id}\t#{pane_width}\t#{pane_height}"
    "\t#{pane_current_command}\t#{pane_current_path}\t#{pane_active}"
)
CURSOR_FORMAT = "#{cursor_x},#{cursor_y}"

# Delay between typing a command and pressing Enter, for TUI compatibility
ENTER_DELAY_S = 0.1

# stdout is read in chunks of this size so the output cap applies while reading
READ_CHUNK_BYTES = 64 * 1024

# Raw control sequences a terminal emulator sends, mapped to tmux key names.
# Anything not listed here is typed literally (send-keys -l).
TMUX_KEY_NAMES: dict[str, str] = {
    "\r": "Enter",
    "\n": "Enter",
    "\t": "Tab",
    "\x7f": "BSpace",
    "\x08": "BSpace",
    "\x1b": "Escape",
    "\x1b[A": "Up",
    "\x1b[B": "Down",
    "\x1b[C": "Right",
    "\x1b[D": "Left",
    "\x1b[H": "Home",
    "\x1b[F": "End",
    "\x1b[3~": "Delete",
    "\x1b[5~": "PageUp",
    "\x1b[6~": "PageDown",
}


class TmuxCommandError(Exception):
    """A tmux invocation failed (spawn error, non-zero exit, or timeout)."""

    def __init__(
        self,
        message: str,
        *,
        argv: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
        spawn_error: Optional[OSError] = None,
    ) -> None:
        super().__init__(message)
        self.argv = argv or []
        self.returncode = returncode
        self.stderr = stderr
        self.spawn_error = spawn_error


class SubprocessTimeoutError(TmuxCommandError):
    """A tmux subprocess exceeded its timeout and was killed."""

    def __init__(self, operation: str, timeout: float, pid: Optional[int]) -> None:
        super().__init__(f"{operation} timed out after {timeout}s (pid={pid})")
        self.operation = operation
        self.timeout = timeout
        self.pid = pid


class OutputLimitError(TmuxCommandError):
    """A tmux subprocess wrote more stdout than allowed and was killed."""

    def __init__(self, operation: str, limit: int, pid: Optional[int]) -> None:
        super().__init__(f"{operation} output exceeded {limit} bytes (pid={pid})")
        self.operation = operation
        self.limit = limit
        self.pid = pid


async def _kill_and_reap(process: asyncio.subprocess.Process) -> None:
    """Kill a process and wait for it; a process that already exited is left alone."""
    try:
        process.kill()
    except ProcessLookupError:
        return
    await process.wait()


async def _read_output(
    process: asyncio.subprocess.Process, max_output_bytes: Optional[int], operation: str
) -> tuple[bytes, bytes]:
    """Drain stdout in chunks and stderr alongside, then wait for exit."""
    stderr_task = asyncio.ensure_future(process.stderr.read())
    try:
        chunks: List[bytes] = []
        total = 0
        while True:
            chunk = await process.stdout.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            total += len(chunk)
            if max_output_bytes is not None and total > max_output_bytes:
                raise OutputLimitError(operation, max_output_bytes, process.pid)
            chunks.append(chunk)
        stderr = await stderr_task
        await process.wait()
    finally:
        stderr_task.cancel()
    return b"".join(chunks), stderr


async def communicate_with_timeout(
    process: asyncio.subprocess.Process,
    timeout: float,
    operation: str,
    max_output_bytes: Optional[int] = None,
) -> tuple[bytes, bytes]:
    """Collect stdout/stderr with a timeout and an optional stdout cap.

    The process is killed on timeout, on cancellation, and as soon as stdout
    passes ``max_output_bytes``.

    Raises:
        SubprocessTimeoutError: If the process did not finish within ``timeout``.
        OutputLimitError: If stdout grew past ``max_output_bytes``.
    """
    try:
        return await asyncio.wait_for(_read_output(process, max_output_bytes, operation), timeout)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs, killing pid %s", operation, timeout, process.pid)
        await _kill_and_reap(process)
        raise SubprocessTimeoutError(operation, timeout, process.pid) from None
    except OutputLimitError:
        logger.warning("%s output exceeded %s bytes, killing pid %s", operation, max_output_bytes, process.pid)
        await _kill_and_reap(process)
        raise
    except asyncio.CancelledError:
        logger.debug("%s cancelled, killing pid %s", operation, process.pid)
        await _kill_and_reap(process)
        raise


async def run_tmux(args: List[str], timeout: Optional[float] = None) -> str:
    """Run a tmux subcommand and return its stdout.

    Args:
        args: tmux arguments (without the binary)
        timeout: Seconds before the process is killed (default: tracker config)

    Returns:
        Decoded stdout

    Raises:
        TmuxCommandError: On spawn failure, non-zero exit, oversized output or timeout
    """
    argv = [config.tracker.tmux_binary, *args]
    operation = f"tmux {args[0]}" if args else "tmux"
    try:
        process = await asyncio.create_subprocess_exec(
            *argv, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise TmuxCommandError(f"Failed to run {argv[0]}: {e}", argv=argv, spawn_error=e) from e

    try:
        stdout, stderr = await communicate_with_timeout(
            process,
            timeout if timeout is not None else config.tracker.subprocess_timeout,
            operation,
            config.tracker.max_output_bytes,
        )
    except TmuxCommandError as e:
        e.argv = argv
        raise
    stderr_text = stderr.decode("utf-8", errors="replace").strip()

    if process.returncode != 0:
        raise TmuxCommandError(
            f"{operation} failed (exit {process.returncode}): {stderr_text}",
            argv=argv,
            returncode=process.returncode,
            stderr=stderr_text,
        )

    return stdout.decode("utf-8", errors="replace")


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _split_rows(output: str, field_count: int) -> List[List[str]]:
    """Split tab-delimited output into rows padded to ``field_count`` fields."""
    rows: List[List[str]] = []
    for line in output.split("\n"):
        line = line.rstrip("\r")
        if not line.strip():
            continue
        fields = line.split("\t")
        fields.extend([""] * (field_count - len(fields)))
        rows.append(fields)
    return rows


def parse_sessions(output: str) -> List[LiveSession]:
    """Parse list-sessions output produced with SESSION_FORMAT."""
    sessions: List[LiveSession] = []
    for name, created_raw, activity_raw, attached_raw, *_ in _split_rows(output, 4):
        name = name.strip()
        if not name:
            continue
        sessions.append(
            LiveSession(
                name=name,
                created_epoch=_to_int(created_raw),
                activity_epoch=_to_int(activity_raw),
                attached_clients=max(0, _to_int(attached_raw) or 0),
            )
        )
    return sessions


def parse_panes(output: str) -> List[LivePane]:
    """Parse list-panes output produced with PANE_FORMAT."""
    panes: List[LivePane] = []
    for name, pane_id, width_raw, height_raw, command, path, active_raw, *_ in _split_rows(output, 7):
        name = name.strip()
        pane_id = pane_id.strip()
        if not name or not pane_id:
            continue
        panes.append(
            LivePane(
                session_name=name,
                id=pane_id,
                width=_to_int(width_raw) or 0,
                height=_to_int(height_raw) or 0,
                current_command=command.strip(),
                current_path=path.strip(),
                is_active=active_raw.strip() == "1",
            )
        )
    return panes


async def list_sessions() -> List[LiveSession]:
    """List all tmux sessions with creation/activity epochs and attached client count."""
    output = await run_tmux(["list-sessions", "-F", SESSION_FORMAT])
    return parse_sessions(output)


def exact_session(session_name: str) -> str:
    """Session target that only matches ``session_name`` exactly.

    A bare ``-t name`` falls back to prefix and pattern matching, so ``chat``
    would hit ``chat-2`` once ``chat`` is gone.
    """
    return f"={session_name}"


async def list_panes(session_name: Optional[str] = None) -> List[LivePane]:
    """List panes of one session (all its windows), or of every session when no name is given."""
    args = ["list-panes", "-F", PANE_FORMAT]
    if session_name:
        args.extend(["-s", "-t", exact_session(session_name)])
    else:
        args.append("-a")
    output = await run_tmux(args)
    return parse_panes(output)


async def capture_pane(pane_id: str, lines: Optional[int] = None) -> str:
    """Capture pane content, escape sequences included.

    Args:
        pane_id: tmux pane id (e.g. "%3")
        lines: Number of lines to capture from scrollback (None = entire scrollback buffer)

    Returns:
        Captured output as string
    """
    # -p = print to stdout, -e = keep colour/attribute escapes
    # -S = start line (- = beginning of history), -E - = end of visible pane
    start = "-" if lines is None else f"-{max(1, lines)}"
    return await run_tmux(["capture-pane", "-p", "-e", "-S", start, "-E", "-", "-t", pane_id])


async def get_cursor_position(pane_id: str) -> CursorPosition:
    """Get the cursor position inside a pane."""
    output = await run_tmux(["display-message", "-p", "-t", pane_id, CURSOR_FORMAT])
    x_raw, _, y_raw = output.strip().partition(",")
    return CursorPosition(x=_to_int(x_raw) or 0, y=_to_int(y_raw) or 0)


async def send_keys(pane_id: str, keys: str) -> None:
    """Send keystrokes to a pane.

    Known control sequences (Enter, arrows, ...) are sent as tmux key names;
    all other input is sent literally and never interpreted as a key name.
    """
    key_name = TMUX_KEY_NAMES.get(keys)
    if key_name:
        await run_tmux(["send-keys", "-t", pane_id, key_name])
        return
    # "--" keeps text starting with "-" from being parsed as a flag
    await run_tmux(["send-keys", "-t", pane_id, "-l", "--", keys])


async def send_text_and_enter(session_name: str, text: str) -> None:
    """Type ``text`` literally into the active pane of a session, then press Enter."""
    target = f"{exact_session(session_name)}:"
    await run_tmux(["send-keys", "-t", target, "-l", "--", text])
    # Enter is sent separately for TUI compatibility (Claude Code, etc)
    await asyncio.sleep(ENTER_DELAY_S)
    await run_tmux(["send-keys", "-t", target, "Enter"])


async def kill_session(session_name: str) -> None:
    """Kill a tmux session."""
    await run_tmux(["kill-session", "-t", exact_session(session_name)])


async def new_session(name: str, shell_command: str, cwd: str) -> None:
    """Create a detached session whose leader is ``shell_command``.

    The shell stays alive after any command typed into it finishes, so the
    pane remains inspectable.
    """
    await run_tmux(["new-session", "-d", "-s", name, "-c", cwd, shell_command])
    logger.info("Created tmux session %s in %s", name, cwd)
