# src/auto_analysis/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- ensures local (gitignored) directories exist,
- picks concrete collaborators (LLM or offline evaluator, HTTP or JSON-file sink),
- wires them into an AnalysisQueue,
- loads question payloads from JSON files.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import get_settings
from ..core.ports import AnalysisProvider, PersistenceSink
from ..evaluation.client import LLMQuestionEvaluator
from ..evaluation.offline import OfflineQuestionEvaluator
from ..jobs.job_api import AnalysisQueue
from ..sinks.http_sink import HttpAnalysisSink
from ..sinks.json_sink import JsonFileAnalysisSink

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppParts:
    settings: Any
    provider: AnalysisProvider
    sink: PersistenceSink
    queue: AnalysisQueue


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.results_path.parent.mkdir(parents=True, exist_ok=True)


def create_provider(settings, *, offline: bool = False) -> AnalysisProvider:
    if offline:
        return OfflineQuestionEvaluator()
    try:
        return LLMQuestionEvaluator(settings)
    except Exception as e:
        # Fallback for demos / local runs without external services.
        logger.warning("LLM evaluator unavailable (%s); using offline evaluator", e)
        return OfflineQuestionEvaluator()


def create_sink(settings, *, results_path: Path | None = None) -> PersistenceSink:
    if results_path is None and settings.backend_base_url:
        return HttpAnalysisSink(settings.backend_base_url, token=settings.backend_token)
    return JsonFileAnalysisSink(results_path or settings.results_path)


def create_app(
    *,
    settings=None,
    offline: bool = False,
    results_path: Path | None = None,
    **queue_overrides: Any,
) -> AppParts:
    """
    Build the queue and its collaborators.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    provider = create_provider(settings, offline=offline)
    sink = create_sink(settings, results_path=results_path)
    queue = AnalysisQueue.from_settings(settings, provider=provider, sink=sink, **queue_overrides)
    return AppParts(settings=settings, provider=provider, sink=sink, queue=queue)


def load_questions(path: str | Path) -> list[dict[str, Any]]:
    """Read one question object, or a list of them, from a JSON file."""
    p = Path(path)
    data = json.loads(p.read_text("utf-8"))
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"{p}: expected a JSON object or a list of objects")
    out: list[dict[str, Any]] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            logger.warning("%s: item %d is not an object; skipped", p, i)
            continue
        out.append(item)
    logger.info("Loaded %d question(s) from %s", len(out), p)
    return out
