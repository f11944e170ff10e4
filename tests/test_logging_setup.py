# tests/test_logging_setup.py

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from auto_analysis.logging_setup import _ConsoleNoiseFilter, setup_logging


@pytest.fixture()
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_keeps_own_logs_and_mutes_libraries() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("auto_analysis.jobs.job_scheduler", logging.DEBUG))
    assert not f.filter(_record("httpx", logging.INFO))
    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert f.filter(_record("openai", logging.ERROR))


def test_setup_logging_writes_file(tmp_path: Path, restore_root_logger: None) -> None:
    log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.WARNING)

    logging.getLogger("auto_analysis.test").debug("hello from the queue")
    for h in logging.getLogger().handlers:
        h.flush()

    assert log_file == tmp_path / "logs" / "auto_analysis.log"
    assert "hello from the queue" in log_file.read_text("utf-8")
