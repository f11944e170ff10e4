# src/auto_analysis/jobs/job_api.py

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from ..core.ports import AnalysisProvider, PersistenceSink
from .job_events import CompleteListener, EventNotifier, FailedListener, QueueEvent
from .job_models import Priority, QueueStatus
from .job_retry import RetryManager, RetryPolicy
from .job_scheduler import AnalysisScheduler
from .job_store import TaskStore

logger = logging.getLogger(__name__)

KeyFunc = Callable[[Any], str]

_KEY_FIELDS = ("qid", "_id", "id", "key")


def subject_key(payload: Any) -> str:
    """
    Default dedup key: the first non-empty of qid / _id / id / key,
    looked up as a mapping item or as an attribute.
    """
    for name in _KEY_FIELDS:
        if isinstance(payload, Mapping):
            value = payload.get(name)
        else:
            value = getattr(payload, name, None)
        if value is not None and str(value).strip():
            return str(value).strip()
    raise ValueError(f"Cannot derive a subject key from payload (looked for {', '.join(_KEY_FIELDS)})")


class AnalysisQueue:
    """
    Background analysis queue: the surface callers (UI handlers, CLI) use.

    Owns its store, scheduler, retry manager and notifier; nothing is global,
    so several independent queues can live in one process.

    enqueue()/status()/clear() are synchronous and never wait for the worker.
    """

    def __init__(
        self,
        provider: AnalysisProvider,
        sink: PersistenceSink,
        *,
        poll_interval_seconds: float = 2.0,
        retry_delay_seconds: float = 5.0,
        max_retries: int = 3,
        wake_on_enqueue: bool = False,
        key_func: KeyFunc = subject_key,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._key_func = key_func
        self.store = TaskStore()
        self.events = EventNotifier()
        self.retries = RetryManager(
            self.store,
            RetryPolicy(max_retries=int(max_retries), retry_delay_seconds=float(retry_delay_seconds)),
            on_requeue=self._notify,
        )
        self.scheduler = AnalysisScheduler(
            self.store,
            provider,
            sink,
            self.events,
            self.retries,
            poll_interval_seconds=poll_interval_seconds,
            wake_on_enqueue=wake_on_enqueue,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        *,
        provider: AnalysisProvider,
        sink: PersistenceSink,
        **overrides: Any,
    ) -> AnalysisQueue:
        kwargs: dict[str, Any] = {
            "poll_interval_seconds": int(getattr(settings, "poll_interval_ms", 2000)) / 1000.0,
            "retry_delay_seconds": int(getattr(settings, "retry_delay_ms", 5000)) / 1000.0,
            "max_retries": int(getattr(settings, "max_retries", 3)),
            "wake_on_enqueue": bool(getattr(settings, "wake_on_enqueue", False)),
        }
        kwargs.update(overrides)
        return cls(provider, sink, **kwargs)

    def _notify(self) -> None:
        self.scheduler.notify()

    # ---- lifecycle ----

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self, *, timeout: float | None = None) -> None:
        """
        Stop the worker. A task cancelled by `timeout` and retries still
        waiting for their delay are put back into the store so a later
        start() picks them up.
        """
        await self.scheduler.stop(timeout=timeout)
        flushed = self.retries.flush()
        if flushed:
            logger.info("Moved %d waiting retr%s back into the queue", flushed, "y" if flushed == 1 else "ies")

    async def wait_until_idle(self, *, poll_seconds: float = 0.05, timeout: float | None = None) -> None:
        """Block until nothing is pending, in flight or waiting for a retry."""

        async def _wait() -> None:
            while len(self.store) or self.scheduler.processing or self.retries.pending:
                await asyncio.sleep(poll_seconds)

        await asyncio.wait_for(_wait(), timeout=timeout)

    # ---- enqueue ----

    def enqueue(self, payload: Any, priority: Priority | str = Priority.NORMAL) -> str:
        """
        Add or refresh the analysis job for this payload's subject.

        The payload is deep-copied: the job analyses the data as it was now.
        Returns the subject key.
        """
        prio = Priority.parse(priority)
        key = self._key_func(payload)
        snapshot = copy.deepcopy(payload)
        # A waiting retry for the same subject carries stale data.
        self.retries.cancel(key)
        self.store.enqueue(key, snapshot, prio)
        self._notify()
        return key

    def enqueue_immediate(self, payload: Any) -> str:
        return self.enqueue(payload, Priority.HIGH)

    def enqueue_batch(self, payloads: Iterable[Any], priority: Priority | str = Priority.NORMAL) -> list[str]:
        prio = Priority.parse(priority)
        return [self.enqueue(p, prio) for p in payloads]

    # ---- inspection ----

    def status(self) -> QueueStatus:
        counts = self.store.status()
        return QueueStatus(
            total=counts.total,
            processing=self.scheduler.processing,
            high_count=counts.high_count,
            normal_count=counts.normal_count,
            low_count=counts.low_count,
            retry_pending=self.retries.pending,
        )

    def clear(self) -> None:
        """Drop pending work and waiting retries. The in-flight task still finishes."""
        dropped = self.store.clear()
        cancelled = self.retries.cancel_all()
        logger.info("Queue cleared pending=%d retries=%d", dropped, cancelled)

    # ---- listeners ----

    def on_complete(self, callback: CompleteListener) -> None:
        self.events.on_complete(callback)

    def on_failed(self, callback: FailedListener) -> None:
        self.events.on_failed(callback)

    def remove_listener(self, event: QueueEvent | str, callback: Callable[..., Any]) -> bool:
        return self.events.remove_listener(event, callback)
