# src/auto_analysis/jobs/job_scheduler.py

"""
Analysis scheduler.

A single cooperative worker that, on every tick:
- does nothing while a task is in flight,
- does nothing when the store is empty,
- otherwise dequeues the head task, runs analyze -> persist,
  emits `complete`, or hands the failure to the retry manager.

Ticks come from a fixed poll interval. With wake_on_enqueue the worker is also
woken as soon as work arrives; either way only one task is ever in flight.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from ..core.ports import AnalysisProvider, PersistenceSink
from .job_events import EventNotifier
from .job_models import AnalysisTask
from .job_retry import RetryManager, RetryOutcome
from .job_store import TaskStore

logger = logging.getLogger(__name__)

class SchedulerState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"

class AnalysisScheduler:
    def __init__(
        self,
        store: TaskStore,
        provider: AnalysisProvider,
        sink: PersistenceSink,
        notifier: EventNotifier,
        retries: RetryManager,
        *,
        poll_interval_seconds: float = 2.0,
        wake_on_enqueue: bool = False,
    ) -> None:
        self._store = store
        self._provider = provider
        self._sink = sink
        self._notifier = notifier
        self._retries = retries
        self.poll_interval_seconds = max(0.001, float(poll_interval_seconds))
        self.wake_on_enqueue = wake_on_enqueue

        self.state = SchedulerState.IDLE
        self.current_key: str | None = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._wakeup: asyncio.Event | None = None
        self._runner: asyncio.Task[None] | None = None
        self._stopping = False

    @property
    def processing(self) -> bool:
        return self.state is SchedulerState.PROCESSING

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    # ---- lifecycle ----

    def start(self) -> None:
        """Start the tick loop on the running event loop (idempotent)."""
        if self.running:
            return
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError("AnalysisScheduler.start() needs a running asyncio event loop") from None
        self._wakeup = asyncio.Event()
        self._stopping = False
        self._runner = self._loop.create_task(self._run(), name="analysis-scheduler")
        logger.info(
            "Scheduler started poll_interval=%.3fs wake_on_enqueue=%s",
            self.poll_interval_seconds,
            self.wake_on_enqueue,
        )

    async def stop(self, *, timeout: float | None = None) -> None:
        """
        Stop ticking. An in-flight task is allowed to finish first;
        after `timeout` seconds it is cancelled and put back into the store.
        """
        runner = self._runner
        if runner is None:
            return
        self._stopping = True
        if self._wakeup is not None:
            self._wakeup.set()
        try:
            await asyncio.wait_for(asyncio.shield(runner), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Scheduler did not stop within %.1fs; cancelling in-flight task", timeout)
            runner.cancel()
            try:
                await runner
            except asyncio.CancelledError:
                pass
        finally:
            self._runner = None
            logger.info("Scheduler stopped")

    def notify(self) -> None:
        """Wake the loop early (no-op unless wake_on_enqueue is set). Thread-safe."""
        if not self.wake_on_enqueue:
            return
        loop, wakeup = self._loop, self._wakeup
        if loop is None or wakeup is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(wakeup.set)

    # ---- ticking ----

    async def _run(self) -> None:
        assert self._wakeup is not None
        while not self._stopping:
            self._wakeup.clear()
            try:
                processed = await self.run_once()
            except Exception:
                logger.exception("Scheduler tick failed")
                processed = False

            if self._stopping:
                break
            if processed and self.wake_on_enqueue and len(self._store):
                continue

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.poll_interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def run_once(self) -> bool:
        """
        One tick. Returns True if a task was taken and executed.

        The state flag is the single-flight guard: a tick that finds the
        scheduler PROCESSING returns immediately.
        """
        if self.processing:
            return False

        task = self._store.dequeue()
        if task is None:
            return False

        self.state = SchedulerState.PROCESSING
        self.current_key = task.key
        try:
            await self._execute(task)
        finally:
            self.current_key = None
            self.state = SchedulerState.IDLE
        return True

    async def _execute(self, task: AnalysisTask) -> None:
        attempt = task.retry_count + 1
        logger.info(
            "Analysis start key=%s priority=%s attempt=%d",
            task.key,
            task.priority.value,
            attempt,
        )
        try:
            result = await self._provider.analyze(task.key, task.payload)
            await self._sink.persist(task.key, result)
        except asyncio.CancelledError:
            # Interrupted by stop(timeout=...): the attempt did not count.
            if self._store.requeue(task):
                logger.warning("Analysis cancelled key=%s; task returned to the queue", task.key)
            raise
        except Exception as e:
            logger.warning(
                "Analysis failed key=%s attempt=%d: %s: %s",
                task.key,
                attempt,
                e.__class__.__name__,
                e,
            )
            outcome = self._retries.handle_failure(task, e)
            if outcome is RetryOutcome.EXHAUSTED:
                logger.error(
                    "Analysis for key=%s failed permanently after %d attempt(s)",
                    task.key,
                    attempt,
                )
                await self._notifier.emit_failed(task.key, e)
            return

        logger.info("Analysis done key=%s attempt=%d", task.key, attempt)
        await self._notifier.emit_complete(task.key, result)
