# src/auto_analysis/jobs/job_events.py

from __future__ import annotations

"""
Completion / failure notifications.

Listeners are plain callables (sync or async). Each call is isolated: a
listener that raises is logged and skipped, the rest still run.
"""

import inspect
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

CompleteListener = Callable[[str, Any], Any]
FailedListener = Callable[[str, BaseException], Any]


class QueueEvent(StrEnum):
    COMPLETE = "complete"
    FAILED = "failed"

    @classmethod
    def parse(cls, raw: QueueEvent | str) -> QueueEvent:
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown queue event: {raw!r} (expected complete or failed)") from None


class EventNotifier:
    def __init__(self) -> None:
        self._listeners: dict[QueueEvent, list[Callable[..., Any]]] = {
            QueueEvent.COMPLETE: [],
            QueueEvent.FAILED: [],
        }

    def on_complete(self, callback: CompleteListener) -> None:
        self._listeners[QueueEvent.COMPLETE].append(callback)

    def on_failed(self, callback: FailedListener) -> None:
        self._listeners[QueueEvent.FAILED].append(callback)

    def remove_listener(self, event: QueueEvent | str, callback: Callable[..., Any]) -> bool:
        """
        Unregister the first registration of `callback` for `event`.

        Bound methods match when they wrap the same function and instance.
        Returns False if it was not registered.
        """
        listeners = self._listeners[QueueEvent.parse(event)]
        for i, cb in enumerate(listeners):
            if cb is callback or (inspect.ismethod(cb) and cb == callback):
                del listeners[i]
                return True
        return False

    def listener_count(self, event: QueueEvent | str) -> int:
        return len(self._listeners[QueueEvent.parse(event)])

    async def emit_complete(self, key: str, result: Any) -> None:
        await self._emit(QueueEvent.COMPLETE, key, result)

    async def emit_failed(self, key: str, error: BaseException) -> None:
        await self._emit(QueueEvent.FAILED, key, error)

    async def _emit(self, event: QueueEvent, key: str, value: Any) -> None:
        # Copy: a listener may remove itself while we iterate.
        for callback in list(self._listeners[event]):
            try:
                ret = callback(key, value)
                if inspect.isawaitable(ret):
                    await ret
            except Exception:
                logger.exception("%s listener failed key=%s callback=%r", event.value, key, callback)
