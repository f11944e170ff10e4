# tests/test_sinks.py

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from auto_analysis.evaluation.models import CompleteAnalysis, CoreAbilities, QuestionEvaluation
from auto_analysis.sinks.http_sink import HttpAnalysisSink
from auto_analysis.sinks.json_sink import JsonFileAnalysisSink


def _analysis(rating: int = 6) -> CompleteAnalysis:
    return CompleteAnalysis(
        evaluation=QuestionEvaluation(overall_rating=rating, evaluation_reasoning="fine", last_updated="t0"),
        core_abilities=CoreAbilities(),
        analysis_timestamp="t1",
    )


@pytest.mark.asyncio
async def test_json_sink_accumulates_results(tmp_path: Path) -> None:
    path = tmp_path / "out" / "results.json"
    sink = JsonFileAnalysisSink(path)

    await sink.persist("Q1", _analysis(6))
    await sink.persist("Q2", {"raw": True})
    await sink.persist("Q1", _analysis(9))

    data = json.loads(path.read_text("utf-8"))
    assert set(data) == {"Q1", "Q2"}
    assert data["Q1"]["evaluation"]["overallRating"] == 9
    assert data["Q2"] == {"raw": True}
    assert not path.with_suffix(".json.tmp").exists()


@pytest.mark.asyncio
async def test_json_sink_recovers_from_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "results.json"
    path.write_text("{broken", "utf-8")

    sink = JsonFileAnalysisSink(path)
    await sink.persist("Q1", {"ok": 1})

    assert json.loads(path.read_text("utf-8")) == {"Q1": {"ok": 1}}
    assert sink.corrupt_path.read_text("utf-8") == "{broken"


@pytest.mark.asyncio
async def test_http_sink_posts_analysis() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    sink = HttpAnalysisSink("https://backend.test/api/", token="secret", client=client)

    await sink.persist("Q 1", _analysis(7))
    await client.aclose()

    assert len(seen) == 1
    req = seen[0]
    assert req.method == "POST"
    assert str(req.url) == "https://backend.test/api/question-evaluation/save-analysis/Q%201"
    assert req.headers["Authorization"] == "Bearer secret"
    body = json.loads(req.content)
    assert body["evaluation"]["overallRating"] == 7
    assert body["coreAbilities"]["logicalThinking"] == 5


@pytest.mark.asyncio
async def test_http_sink_raises_on_error_status() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404, json={"success": False})))
    sink = HttpAnalysisSink("https://backend.test/api", client=client)

    with pytest.raises(httpx.HTTPStatusError):
        await sink.persist("missing", {"x": 1})
    await client.aclose()


def test_http_sink_requires_base_url() -> None:
    with pytest.raises(ValueError):
        HttpAnalysisSink("  ")
