# src/auto_analysis/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the queue, enqueues every question from the given
JSON files, then runs the worker until nothing is pending or retrying.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from ..config import get_settings
from ..jobs.job_models import Priority
from ..logging_setup import setup_logging
from .bootstrap import create_app, load_questions

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="auto-analysis",
        description="Run AI analysis for question JSON files through the background queue.",
    )
    p.add_argument("files", nargs="+", type=Path, help="JSON file with a question object or a list of them")
    p.add_argument(
        "--priority",
        choices=[pr.value for pr in Priority],
        default=Priority.NORMAL.value,
        help="priority for every enqueued question (default: normal)",
    )
    p.add_argument("--offline", action="store_true", help="use the deterministic offline evaluator")
    p.add_argument("--results", type=Path, default=None, help="write results to this JSON file")
    p.add_argument("--max-retries", type=int, default=None)
    p.add_argument("--retry-delay-ms", type=int, default=None)
    p.add_argument("--poll-interval-ms", type=int, default=None)
    return p


def _queue_overrides(args: argparse.Namespace) -> dict[str, Any]:
    out: dict[str, Any] = {"wake_on_enqueue": True}
    if args.max_retries is not None:
        out["max_retries"] = max(0, args.max_retries)
    if args.retry_delay_ms is not None:
        out["retry_delay_seconds"] = max(0, args.retry_delay_ms) / 1000.0
    if args.poll_interval_ms is not None:
        out["poll_interval_seconds"] = max(1, args.poll_interval_ms) / 1000.0
    return out


async def run(args: argparse.Namespace, settings=None) -> int:
    parts = create_app(
        settings=settings,
        offline=args.offline,
        results_path=args.results,
        **_queue_overrides(args),
    )
    queue = parts.queue

    completed: list[str] = []
    failed: list[str] = []

    def _done(key: str, result: Any) -> None:
        completed.append(key)
        rating = getattr(getattr(result, "evaluation", None), "overall_rating", "?")
        logger.info("Completed %s (rating=%s)", key, rating)

    def _failed(key: str, error: BaseException) -> None:
        failed.append(key)
        logger.error("Gave up on %s: %s", key, error)

    queue.on_complete(_done)
    queue.on_failed(_failed)

    payloads: list[dict[str, Any]] = []
    for path in args.files:
        try:
            payloads.extend(load_questions(path))
        except (OSError, ValueError):
            logger.exception("Failed to load %s", path)
            return 2

    queue.start()
    try:
        try:
            queue.enqueue_batch(payloads, args.priority)
        except ValueError:
            logger.exception("Invalid question payload")
            return 2
        logger.info("Queued %d question(s): %s", len(payloads), queue.status())
        await queue.wait_until_idle()
    finally:
        await queue.stop()
        aclose = getattr(parts.sink, "aclose", None)
        if callable(aclose):
            await aclose()

    logger.info("Done: %d completed, %d failed", len(completed), len(failed))
    return 1 if failed else 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
