# src/todo_sync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "todo_sync.log"

# Console rules: (logger name prefix, minimum level shown). First match wins,
# so narrower prefixes go above the package-wide one.
_CONSOLE_RULES: tuple[tuple[str, int], ...] = (
    # One line per intercepted request and per probe; the file keeps them.
    ("todo_sync.cache.transport", logging.WARNING),
    ("todo_sync.sync.connectivity", logging.WARNING),
    ("todo_sync", logging.NOTSET),
    ("py.warnings", logging.ERROR),
)
_CONSOLE_DEFAULT = logging.ERROR

# Library loggers capped at the root, so the file stays readable too.
_LIBRARY_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}


def _matches(name: str, prefix: str) -> bool:
    return name == prefix or name.startswith(prefix + ".")


def console_threshold(name: str) -> int:
    """Lowest level a record from logger `name` needs to reach the console."""
    for prefix, level in _CONSOLE_RULES:
        if _matches(name, prefix):
            return level
    return _CONSOLE_DEFAULT


class _ConsoleNoiseFilter(logging.Filter):
    """Keeps the console readable while the REPL is waiting for input."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= console_threshold(record.name)


def setup_logging(
    *,
    log_dir: str | Path = ".local/todo_sync",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler (stderr, filtered by _CONSOLE_RULES) plus a file handler
    that keeps everything down to file_level. Returns the log file path.

    Call once, before the first log line; existing root handlers are replaced.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)

    file_fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Short lines on the console; they share the terminal with the prompt.
    console_fmt = logging.Formatter(fmt="%(levelname).1s %(name)s: %(message)s")

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(console_fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(file_fmt)
    root.addHandler(fh)

    logging.captureWarnings(True)

    for name, level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    return log_file
