# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from auto_analysis.jobs.job_api import AnalysisQueue

from .fakes import EventLog, FakeProvider, RecordingSink


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and AnalysisQueue.from_settings.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="auto-analysis-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        results_path=tmp_path / "data" / "results.json",
        poll_interval_ms=10,
        retry_delay_ms=0,
        max_retries=3,
        wake_on_enqueue=False,
        llm_api_key=None,
        llm_base_url="https://llm.invalid/v1",
        llm_models=["m1", "m2"],
        llm_timeout_seconds=5.0,
        backend_base_url="",
        backend_token=None,
    )


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def events() -> EventLog:
    return EventLog()


@pytest.fixture()
def queue(provider: FakeProvider, sink: RecordingSink, events: EventLog) -> AnalysisQueue:
    """
    Queue driven by hand through scheduler.run_once(); retries fire almost at once.

    The tick loop is not started here; tests that need it call start()/stop().
    """
    q = AnalysisQueue(
        provider,
        sink,
        poll_interval_seconds=0.01,
        retry_delay_seconds=0.0,
        max_retries=3,
    )
    q.on_complete(events.on_complete)
    q.on_failed(events.on_failed)
    return q
