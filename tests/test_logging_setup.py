# tests/test_logging_setup.py

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from todo_sync.logging_setup import _ConsoleNoiseFilter, console_threshold, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.fixture()
def restore_root_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


def test_console_threshold_first_matching_prefix_wins() -> None:
    assert console_threshold("todo_sync.sync.reconciler") == logging.NOTSET
    assert console_threshold("todo_sync.cache.transport") == logging.WARNING
    assert console_threshold("todo_sync.sync.connectivity") == logging.WARNING
    assert console_threshold("py.warnings") == logging.ERROR
    assert console_threshold("httpx") == logging.ERROR
    # Prefixes match whole dotted segments only.
    assert console_threshold("todo_sync_extra") == logging.ERROR


def test_console_filter_decisions() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("todo_sync.tasks.view_state", logging.DEBUG))
    assert not f.filter(_record("todo_sync.cache.transport", logging.INFO))
    assert f.filter(_record("todo_sync.cache.transport", logging.WARNING))
    assert not f.filter(_record("httpcore.connection", logging.WARNING))
    assert f.filter(_record("httpcore.connection", logging.ERROR))


def test_setup_logging_writes_the_file(tmp_path: Path, restore_root_logging: None) -> None:
    log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.INFO)

    logging.getLogger("todo_sync.cache.transport").debug("served from cache")
    for h in logging.getLogger().handlers:
        h.flush()

    assert log_file == tmp_path / "logs" / "todo_sync.log"
    assert "served from cache" in log_file.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING
