"""In-process background queue for AI analysis of questions."""

from .jobs import AnalysisQueue, Priority, QueueEvent, QueueStatus

__all__ = ["AnalysisQueue", "Priority", "QueueEvent", "QueueStatus"]
