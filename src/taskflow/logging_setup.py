# src/taskflow/logging_setup.py

"""
Logging for the console app.

Console lines go through a swappable sink: stderr by default, the REPL's
timestamped printer while the REPL runs (so log lines and replies share one
stream and one prefix). The file gets full records with timestamps.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from pathlib import Path

LOG_FILE_NAME = "taskflow.log"

LineSink = Callable[[str], None]


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable:
    - taskflow logs pass
    - the SQLite change watcher only at WARNING+ (it polls in the background)
    - Python warnings and third parties only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith("taskflow.storage.sqlite"):
            return record.levelno >= logging.WARNING
        if name.startswith("taskflow."):
            return True
        return record.levelno >= logging.ERROR


def _write_stderr(line: str) -> None:
    print(line, file=sys.stderr, flush=True)


class ConsoleLogHandler(logging.Handler):
    """Hands each formatted record to `sink` (one line per call)."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.sink: LineSink = _write_stderr
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        self.addFilter(_ConsoleNoiseFilter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.sink(self.format(record))
        except Exception:
            self.handleError(record)


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


def _is_ours(handler: logging.Handler) -> bool:
    return getattr(handler, "_taskflow", False)


def setup_logging(settings) -> Path:
    """
    Install the console and file handlers on the root logger. Returns the log file path.

    Both handlers use settings.log_level. Calling it again replaces the handlers
    installed by a previous call and leaves foreign handlers alone.
    """
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    level = level_from_name(getattr(settings, "log_level", None))

    root = logging.getLogger()
    for h in [h for h in root.handlers if _is_ours(h)]:
        root.removeHandler(h)
        h.close()
    root.setLevel(min(root.level or logging.WARNING, level))

    console = ConsoleLogHandler(level)
    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s [%(threadName)s]: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    for h in (console, fh):
        h._taskflow = True  # type: ignore[attr-defined]
        root.addHandler(h)

    logging.captureWarnings(True)
    logging.getLogger("asyncio").setLevel(max(level, logging.WARNING))
    return log_file


def set_console_sink(sink: LineSink) -> Callable[[], None]:
    """Send console log lines to `sink`. Returns a callable that restores the previous sinks."""
    handlers = [h for h in logging.getLogger().handlers if isinstance(h, ConsoleLogHandler)]
    previous = [(h, h.sink) for h in handlers]
    for h in handlers:
        h.sink = sink

    def restore() -> None:
        for h, old in previous:
            h.sink = old

    return restore
