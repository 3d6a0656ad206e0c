# src/taskflow/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import os
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..logging_setup import set_console_sink
from ..tasks.task_board import TaskBoard

logger = logging.getLogger(__name__)

PROMPT = ">>> "


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class _SyncNotifier:
    """Print a short line whenever a new snapshot changes the task count or the error."""

    def __init__(self) -> None:
        self._last: tuple[int, str | None, bool] | None = None

    def __call__(self, board: TaskBoard) -> None:
        if board.loading:
            return
        current = (len(board.tasks), board.error, board.user_id is not None)
        if current == self._last:
            return
        self._last = current
        if board.user_id is None:
            return
        if board.error:
            _print_ts(f"[SYNC] {board.error}")
        else:
            _print_ts(f"[SYNC] {len(board.tasks)} task(s) for {board.user_id}")


class _StdinReader:
    """
    Line reader for stdin driven by loop.add_reader.

    No thread is involved, so nothing keeps the process alive when Ctrl-C cancels
    the REPL while it waits for input. Where the fd cannot be watched (regular
    files, Windows proactor loops) it falls back to a worker-thread readline.
    """

    def __init__(self, prompt: str = PROMPT, fd: int | None = None) -> None:
        self._prompt = prompt
        self._fd = sys.stdin.fileno() if fd is None else fd
        self._lines: asyncio.Queue[str | None] = asyncio.Queue()
        self._buf = b""
        self._loop: asyncio.AbstractEventLoop | None = None
        self._fallback = False

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            loop.add_reader(self._fd, self._on_readable)
        except (NotImplementedError, OSError) as exc:
            logger.debug("stdin cannot be watched (%s); using a reader thread.", exc)
            self._fallback = True
            return
        self._loop = loop

    def close(self) -> None:
        loop, self._loop = self._loop, None
        if loop is not None:
            loop.remove_reader(self._fd)

    def _on_readable(self) -> None:
        try:
            data = os.read(self._fd, 4096)
        except BlockingIOError:
            return
        except OSError as exc:
            logger.warning("stdin read failed: %s", exc)
            data = b""

        if not data:
            if self._buf:
                self._put(self._buf)
                self._buf = b""
            self._lines.put_nowait(None)
            self.close()
            return

        *complete, self._buf = (self._buf + data).split(b"\n")
        for raw in complete:
            self._put(raw)

    def _put(self, raw: bytes) -> None:
        self._lines.put_nowait(raw.decode("utf-8", errors="replace").rstrip("\r"))

    async def readline(self) -> str | None:
        """Next input line without the newline, or None at EOF."""
        print(self._prompt, end="", flush=True)
        if self._fallback:
            line = await asyncio.to_thread(sys.stdin.readline)
            return line.rstrip("\r\n") if line else None
        return await self._lines.get()


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /login <user> to start, /help for commands, /exit to quit.\n")

    unsubscribe = state.board.subscribe(_SyncNotifier())
    restore_logging = set_console_sink(_print_ts)
    reader = _StdinReader()
    reader.start()

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations.
        _print_ts(text)

    try:
        while True:
            line = await reader.readline()
            if line is None:
                logger.info("Console EOF received, exiting.")
                break

            user_input = line.strip()
            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            if not user_input.startswith("/"):
                _print_ts("Commands start with '/'. Use /help to list them.")
                continue

            try:
                cmd_response = await command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                cmd_response = "Internal error while handling a command."

            if cmd_response is not None:
                _print_ts(cmd_response)
    finally:
        reader.close()
        restore_logging()
        unsubscribe()

    logger.info("Console connector finished.")
