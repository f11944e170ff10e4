# src/auto_analysis/jobs/job_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class Priority(StrEnum):
    """
    Priority class of a queued analysis.

    Processing order is high -> normal -> low; `rank` is the sort component
    (lower runs first).
    """

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, raw: Priority | str | None) -> Priority:
        if raw is None:
            return cls.NORMAL
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown priority: {raw!r} (expected high, normal or low)") from None


_RANKS: dict[Priority, int] = {
    Priority.HIGH: 0,
    Priority.NORMAL: 1,
    Priority.LOW: 2,
}


@dataclass(slots=True)
class AnalysisTask:
    key: str
    payload: Any
    priority: Priority = Priority.NORMAL
    retry_count: int = 0


def sort_key(priority: Priority, sequence: int) -> tuple[int, int]:
    """
    Total order over pending tasks.

    Sequences grow for fresh arrivals and shrink (go negative) for requeued
    tasks, so a retry sorts ahead of untouched tasks of the same class.
    """
    return (priority.rank, sequence)


@dataclass(slots=True, frozen=True)
class StoreCounts:
    total: int
    high_count: int
    normal_count: int
    low_count: int


@dataclass(slots=True, frozen=True)
class QueueStatus:
    """Snapshot returned to callers of AnalysisQueue.status()."""

    total: int
    processing: bool
    high_count: int
    normal_count: int
    low_count: int
    retry_pending: int = 0
