# tests/test_job_retry.py

from __future__ import annotations

import asyncio

import pytest

from auto_analysis.jobs.job_models import AnalysisTask, Priority
from auto_analysis.jobs.job_retry import RetryManager, RetryOutcome, RetryPolicy
from auto_analysis.jobs.job_store import TaskStore


def test_policy_allows_exactly_max_retries() -> None:
    policy = RetryPolicy(max_retries=3)
    task = AnalysisTask(key="q", payload=None)

    allowed = 0
    while policy.should_retry(task):
        task.retry_count += 1
        allowed += 1

    assert allowed == 3
    assert policy.max_attempts == 4


def test_zero_retries_means_single_attempt() -> None:
    policy = RetryPolicy(max_retries=0)
    assert not policy.should_retry(AnalysisTask(key="q", payload=None))
    assert policy.max_attempts == 1


@pytest.mark.asyncio
async def test_failure_schedules_requeue_after_delay() -> None:
    store = TaskStore()
    woken: list[bool] = []
    manager = RetryManager(store, RetryPolicy(max_retries=3, retry_delay_seconds=0.05), on_requeue=lambda: woken.append(True))
    task = AnalysisTask(key="q", payload="p", priority=Priority.LOW)

    assert manager.handle_failure(task, RuntimeError("boom")) is RetryOutcome.SCHEDULED
    assert task.retry_count == 1
    assert manager.pending == 1
    assert "q" not in store

    await asyncio.sleep(0.15)

    assert manager.pending == 0
    assert store.get("q") is task
    assert woken == [True]


@pytest.mark.asyncio
async def test_exhausted_task_is_not_requeued() -> None:
    store = TaskStore()
    manager = RetryManager(store, RetryPolicy(max_retries=3, retry_delay_seconds=0.0))
    task = AnalysisTask(key="q", payload=None, retry_count=3)

    assert manager.handle_failure(task, RuntimeError("boom")) is RetryOutcome.EXHAUSTED
    assert task.retry_count == 3
    assert manager.pending == 0

    await asyncio.sleep(0.01)
    assert len(store) == 0


@pytest.mark.asyncio
async def test_failure_is_superseded_by_pending_fresh_request() -> None:
    store = TaskStore()
    manager = RetryManager(store, RetryPolicy(retry_delay_seconds=0.0))
    store.enqueue("q", "fresh", Priority.NORMAL)

    stale = AnalysisTask(key="q", payload="stale")
    assert manager.handle_failure(stale, RuntimeError("boom")) is RetryOutcome.SUPERSEDED
    assert manager.pending == 0
    assert stale.retry_count == 0


@pytest.mark.asyncio
async def test_cancel_and_flush() -> None:
    store = TaskStore()
    manager = RetryManager(store, RetryPolicy(retry_delay_seconds=60.0))
    a = AnalysisTask(key="a", payload=None)
    b = AnalysisTask(key="b", payload=None)
    manager.handle_failure(a, RuntimeError("x"))
    manager.handle_failure(b, RuntimeError("x"))

    assert manager.cancel("a") is a
    assert manager.cancel("a") is None
    assert manager.is_pending("b")

    assert manager.flush() == 1
    assert manager.pending == 0
    assert store.get("b") is b
    assert b.retry_count == 1


@pytest.mark.asyncio
async def test_cancel_from_another_thread_stops_the_timer_on_the_loop() -> None:
    store = TaskStore()
    manager = RetryManager(store, RetryPolicy(retry_delay_seconds=0.05))
    task = AnalysisTask(key="q", payload=None)
    manager.handle_failure(task, RuntimeError("x"))
    handle, _ = manager._timers["q"]

    assert await asyncio.to_thread(manager.cancel, "q") is task
    assert manager.pending == 0

    await asyncio.sleep(0.15)
    assert handle.cancelled()
    assert "q" not in store
