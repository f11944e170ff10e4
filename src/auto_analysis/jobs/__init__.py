"""
Analysis job subsystem.

Components:
- job_models.py: data structures (AnalysisTask, Priority, status snapshots)
- job_store.py: in-memory, deduplicating priority store
- job_retry.py: fixed-delay retry budget and scheduled reinsertion
- job_events.py: complete/failed listeners with per-listener isolation
- job_scheduler.py: single-flight tick loop that runs analyze -> persist
- job_api.py: AnalysisQueue, the surface the rest of the app uses
"""

from .job_api import AnalysisQueue, subject_key
from .job_events import EventNotifier, QueueEvent
from .job_models import AnalysisTask, Priority, QueueStatus
from .job_retry import RetryManager, RetryOutcome, RetryPolicy
from .job_scheduler import AnalysisScheduler, SchedulerState
from .job_store import TaskStore

__all__ = [
    "AnalysisQueue",
    "AnalysisScheduler",
    "AnalysisTask",
    "EventNotifier",
    "Priority",
    "QueueEvent",
    "QueueStatus",
    "RetryManager",
    "RetryOutcome",
    "RetryPolicy",
    "SchedulerState",
    "TaskStore",
    "subject_key",
]
