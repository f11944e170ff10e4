# src/auto_analysis/jobs/job_store.py

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from collections import Counter
from collections.abc import Iterator
from typing import Any

from .job_models import AnalysisTask, Priority, StoreCounts, sort_key

logger = logging.getLogger(__name__)


class TaskStore:
    """
    In-memory pending-task store.

    - one task per key (enqueue replaces payload/priority, resets retry_count)
    - binary heap keyed by (priority rank, sequence) with lazy invalidation:
      replaced or removed entries stay in the heap until popped or compacted
    - per-priority counters so status() is O(1)

    Thread-safety:
    - every public method takes an RLock, so enqueue() can be called from a
      connector thread while the scheduler runs in the event loop
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tasks: dict[str, AnalysisTask] = {}
        # key -> sequence of the live heap entry for that key
        self._live: dict[str, int] = {}
        self._heap: list[tuple[int, int, str]] = []
        self._counts: Counter[Priority] = Counter()
        self._back = itertools.count(0)
        self._front = itertools.count(-1, -1)

    # ---- low-level helpers ----

    def _push(self, task: AnalysisTask, sequence: int) -> None:
        rank, seq = sort_key(task.priority, sequence)
        heapq.heappush(self._heap, (rank, seq, task.key))
        self._live[task.key] = seq

    def _is_live(self, entry: tuple[int, int, str]) -> bool:
        rank, seq, key = entry
        task = self._tasks.get(key)
        return task is not None and self._live.get(key) == seq and task.priority.rank == rank

    def _maybe_compact(self) -> None:
        if len(self._heap) <= 2 * len(self._tasks) + 16:
            return
        self._heap = [e for e in self._heap if self._is_live(e)]
        heapq.heapify(self._heap)

    def _forget(self, key: str) -> AnalysisTask | None:
        task = self._tasks.pop(key, None)
        self._live.pop(key, None)
        if task is not None:
            self._counts[task.priority] -= 1
        return task

    # ---- public API ----

    def enqueue(self, key: str, payload: Any, priority: Priority = Priority.NORMAL) -> AnalysisTask:
        """
        Insert or replace the pending task for `key`.

        A replaced task keeps its place in the arrival order; only its
        payload/priority change and retry_count goes back to 0.
        """
        priority = Priority.parse(priority)
        with self._lock:
            existing = self._tasks.get(key)
            if existing is not None:
                self._counts[existing.priority] -= 1
                sequence = self._live[key]
                moved = existing.priority is not priority
                existing.payload = payload
                existing.priority = priority
                existing.retry_count = 0
                self._counts[priority] += 1
                if moved:
                    self._push(existing, sequence)
                self._maybe_compact()
                logger.debug("Task replaced key=%s priority=%s", key, priority.value)
                return existing

            task = AnalysisTask(key=key, payload=payload, priority=priority)
            self._tasks[key] = task
            self._counts[priority] += 1
            self._push(task, next(self._back))
            logger.debug("Task enqueued key=%s priority=%s", key, priority.value)
            return task

    def requeue(self, task: AnalysisTask) -> bool:
        """
        Reinsert a failed task at the front of its priority class.

        Returns False (and leaves the store untouched) if a fresh request for
        the same key arrived in the meantime: the freshest request wins.
        """
        with self._lock:
            if task.key in self._tasks:
                logger.info("Retry for key=%s superseded by a pending request", task.key)
                return False
            self._tasks[task.key] = task
            self._counts[task.priority] += 1
            self._push(task, next(self._front))
            logger.debug("Task requeued key=%s retry_count=%s", task.key, task.retry_count)
            return True

    def dequeue(self) -> AnalysisTask | None:
        with self._lock:
            while self._heap:
                entry = heapq.heappop(self._heap)
                if not self._is_live(entry):
                    continue
                return self._forget(entry[2])
            return None

    def remove(self, key: str) -> AnalysisTask | None:
        with self._lock:
            task = self._forget(key)
            self._maybe_compact()
            return task

    def clear(self) -> int:
        with self._lock:
            n = len(self._tasks)
            self._tasks.clear()
            self._live.clear()
            self._heap.clear()
            self._counts.clear()
            if n:
                logger.info("TaskStore cleared: dropped %d pending task(s)", n)
            return n

    def status(self) -> StoreCounts:
        with self._lock:
            return StoreCounts(
                total=len(self._tasks),
                high_count=self._counts[Priority.HIGH],
                normal_count=self._counts[Priority.NORMAL],
                low_count=self._counts[Priority.LOW],
            )

    def snapshot(self) -> list[AnalysisTask]:
        """Pending tasks in the order they would be processed."""
        with self._lock:
            # A key can have two identical live entries after high -> low -> high.
            live = sorted({e for e in self._heap if self._is_live(e)})
            return [self._tasks[key] for _, _, key in live]

    def get(self, key: str) -> AnalysisTask | None:
        with self._lock:
            return self._tasks.get(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._tasks

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __iter__(self) -> Iterator[AnalysisTask]:
        return iter(self.snapshot())
