# src/auto_analysis/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the queue.

The scheduler depends on Protocols instead of concrete implementations.
This keeps the AI provider and the result storage swappable and makes testing easier.
"""

from typing import Any, Awaitable, Protocol

AnalysisResult = Any
# Whatever the provider returns; the queue passes it to the sink and the listeners untouched.


class AnalysisProvider(Protocol):
    """Runs the (slow, fallible) AI analysis for one subject."""

    def analyze(self, key: str, payload: Any) -> Awaitable[AnalysisResult]: ...


class PersistenceSink(Protocol):
    """Stores a finished analysis. Raising counts as a failed attempt."""

    def persist(self, key: str, result: AnalysisResult) -> Awaitable[None]: ...
