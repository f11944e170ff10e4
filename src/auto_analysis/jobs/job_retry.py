# src/auto_analysis/jobs/job_retry.py

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .job_models import AnalysisTask
from .job_store import TaskStore

logger = logging.getLogger(__name__)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class RetryOutcome(str, Enum):
    SCHEDULED = "scheduled"
    EXHAUSTED = "exhausted"
    SUPERSEDED = "superseded"


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """
    Fixed-delay retry budget.

    A task is retried while retry_count < max_retries, so a task that always
    fails is attempted max_retries + 1 times in total.
    """

    max_retries: int = 3
    retry_delay_seconds: float = 5.0

    def should_retry(self, task: AnalysisTask) -> bool:
        return task.retry_count < self.max_retries

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


class RetryManager:
    """
    Decides what happens to a task whose attempt failed.

    Scheduled retries live outside the store (as loop timers) until the delay
    expires; then they go back in at the front of their priority class.

    cancel() may be called from another thread (enqueue from a connector
    thread); the timer itself is then cancelled on the loop thread.
    """

    def __init__(
        self,
        store: TaskStore,
        policy: RetryPolicy | None = None,
        *,
        on_requeue: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self.policy = policy or RetryPolicy()
        self._on_requeue = on_requeue
        self._timers: dict[str, tuple[asyncio.TimerHandle, AnalysisTask]] = {}
        self._timers_lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def pending(self) -> int:
        return len(self._timers)

    def is_pending(self, key: str) -> bool:
        return key in self._timers

    def handle_failure(self, task: AnalysisTask, error: BaseException) -> RetryOutcome:
        if task.key in self._store:
            # A fresh request for this subject arrived while the attempt ran.
            logger.info("Dropping retry for key=%s: newer request pending", task.key)
            return RetryOutcome.SUPERSEDED

        if not self.policy.should_retry(task):
            return RetryOutcome.EXHAUSTED

        task.retry_count += 1
        loop = asyncio.get_running_loop()
        self._loop = loop
        delay = max(0.0, float(self.policy.retry_delay_seconds))
        handle = loop.call_later(delay, self._fire, task.key)
        with self._timers_lock:
            self._timers[task.key] = (handle, task)
        logger.info(
            "Retry %d/%d for key=%s in %.1fs (%s)",
            task.retry_count,
            self.policy.max_retries,
            task.key,
            delay,
            error.__class__.__name__,
        )
        return RetryOutcome.SCHEDULED

    def _fire(self, key: str) -> None:
        with self._timers_lock:
            item = self._timers.pop(key, None)
        if item is None:
            return
        _, task = item
        if self._store.requeue(task) and self._on_requeue is not None:
            self._on_requeue()

    def cancel(self, key: str) -> AnalysisTask | None:
        """Forget a scheduled retry (a fresh enqueue for the key replaces it)."""
        with self._timers_lock:
            item = self._timers.pop(key, None)
        if item is None:
            return None
        handle, task = item
        self._cancel_handle(handle)
        logger.debug("Cancelled scheduled retry key=%s", key)
        return task

    def _cancel_handle(self, handle: asyncio.TimerHandle) -> None:
        loop = self._loop
        if loop is None or _running_loop() is loop:
            handle.cancel()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(handle.cancel)

    def cancel_all(self) -> int:
        n = 0
        for key in list(self._timers):
            if self.cancel(key) is not None:
                n += 1
        return n

    def flush(self) -> int:
        """Requeue every waiting retry right away (used on shutdown)."""
        n = 0
        for key in list(self._timers):
            task = self.cancel(key)
            if task is not None and self._store.requeue(task):
                n += 1
        return n
