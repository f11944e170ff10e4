# src/auto_analysis/sinks/json_sink.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from .http_sink import result_to_json

logger = logging.getLogger(__name__)


class JsonFileAnalysisSink:
    """
    PersistenceSink that keeps {key: analysis} in a single JSON file.

    Writes are atomic (tmp file + os.replace), run in a worker thread and are
    serialized by an asyncio.Lock; the file is re-read before each write so
    several runs accumulate results. An unreadable file is renamed to
    `<name>.corrupt` rather than overwritten.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def corrupt_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".corrupt")

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text("utf-8"))
        except ValueError:
            aside = self.corrupt_path
            os.replace(self.path, aside)
            logger.exception("Corrupt analysis results in %s; moved to %s, starting fresh", self.path, aside)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self.path)
        with contextlib.suppress(OSError):
            os.chmod(self.path, 0o600)

    def _store(self, key: str, value: Any) -> None:
        data = self.load()
        data[key] = value
        self._write(data)

    async def persist(self, key: str, result: Any) -> None:
        async with self._lock:
            await asyncio.to_thread(self._store, key, result_to_json(result))
        logger.debug("Saved analysis key=%s to %s", key, self.path)
