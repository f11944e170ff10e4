# tests/test_evaluation.py

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest

from auto_analysis.evaluation.client import LLMQuestionEvaluator, extract_json_object
from auto_analysis.evaluation.models import CoreAbilities, QuestionInput
from auto_analysis.evaluation.offline import OfflineQuestionEvaluator

from .fakes import question

EVAL_JSON = json.dumps({"overallRating": 8, "evaluationReasoning": "Neat use of parity."})
ABILITY_JSON = json.dumps(
    {
        "logicalThinking": 7,
        "mathematicalIntuition": 6,
        "problemSolving": 5,
        "analyticalSkills": 0,
        "creativeThinking": 12,
        "computationalSkills": 2,
    }
)


def _status_error(cls: type[openai.APIStatusError], code: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://llm.invalid/v1/chat/completions")
    return cls("error", response=httpx.Response(code, request=request), body=None)


def _reply(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class ScriptedCompletions:
    """
    Fake `client.chat.completions` whose answers are scripted per model.

    Each model maps to a list of outcomes consumed in order; an outcome is a
    reply string or an exception to raise.
    """

    def __init__(self, script: dict[str, list[Any]]) -> None:
        self.script = {m: list(v) for m, v in script.items()}
        self.models_called: list[str] = []

    async def create(self, *, model: str, messages: list[dict[str, str]], **kwargs: Any) -> SimpleNamespace:
        self.models_called.append(model)
        outcome = self.script[model].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return _reply(outcome)


def _client(script: dict[str, list[Any]]) -> tuple[SimpleNamespace, ScriptedCompletions]:
    completions = ScriptedCompletions(script)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_extract_json_object_tolerates_prose_and_fences() -> None:
    text = 'Sure!\n```json\n{"overallRating": 4, "evaluationReasoning": "ok"}\n```\nHope it helps.'
    assert extract_json_object(text) == {"overallRating": 4, "evaluationReasoning": "ok"}

    with pytest.raises(ValueError):
        extract_json_object("no json here")
    with pytest.raises(ValueError):
        extract_json_object("{not: valid}")


def test_question_input_defaults_and_validation() -> None:
    q = QuestionInput.from_payload({"qid": "1", "content": {"stem": " x + 1 = 2 "}, "category": "algebra"})

    assert q.stem == "x + 1 = 2"
    assert q.difficulty == 3
    assert q.question_type == "solution"
    assert q.category == ["algebra"]
    assert q.tags == []

    with pytest.raises(ValueError):
        QuestionInput.from_payload({"qid": "1", "content": {"stem": ""}})


@pytest.mark.asyncio
async def test_evaluator_falls_back_to_next_model_and_remembers_missing_model(settings: SimpleNamespace) -> None:
    client, completions = _client(
        {
            "m1": [_status_error(openai.NotFoundError, 404)],
            "m2": [EVAL_JSON, ABILITY_JSON],
        }
    )
    evaluator = LLMQuestionEvaluator(settings, client=client)

    analysis = await evaluator.analyze("Q1", question("Q1"))

    assert completions.models_called == ["m1", "m2", "m2"]
    assert analysis.evaluation.overall_rating == 8
    assert analysis.evaluation.evaluation_reasoning == "Neat use of parity."
    abilities = analysis.core_abilities
    assert abilities.logical_thinking == 7
    assert abilities.analytical_skills == 5  # 0 means "missing"
    assert abilities.creative_thinking == 10  # clamped

    data = analysis.to_dict()
    assert data["analysisVersion"] == "1.0.0"
    assert data["evaluation"]["overallRating"] == 8
    assert data["coreAbilities"]["computationalSkills"] == 2


@pytest.mark.asyncio
async def test_ability_failure_uses_default_scores(settings: SimpleNamespace) -> None:
    client, _ = _client({"m1": [EVAL_JSON, "I cannot score this."], "m2": ["still no json"]})
    evaluator = LLMQuestionEvaluator(settings, client=client)

    analysis = await evaluator.analyze("Q1", question("Q1"))

    assert analysis.evaluation.overall_rating == 8
    assert analysis.core_abilities == CoreAbilities()


@pytest.mark.asyncio
async def test_evaluation_failure_raises_for_queue_retry(settings: SimpleNamespace) -> None:
    client, _ = _client(
        {
            "m1": [_status_error(openai.RateLimitError, 429)],
            "m2": [_status_error(openai.RateLimitError, 429)],
        }
    )
    evaluator = LLMQuestionEvaluator(settings, client=client)

    with pytest.raises(RuntimeError, match="rate-limited"):
        await evaluator.analyze("Q1", question("Q1"))


@pytest.mark.asyncio
async def test_auth_error_fails_fast(settings: SimpleNamespace) -> None:
    client, completions = _client({"m1": [_status_error(openai.AuthenticationError, 401)], "m2": [EVAL_JSON]})
    evaluator = LLMQuestionEvaluator(settings, client=client)

    with pytest.raises(RuntimeError, match="authentication"):
        await evaluator.analyze("Q1", question("Q1"))
    assert completions.models_called == ["m1"]


def test_evaluator_requires_api_key_and_models(settings: SimpleNamespace) -> None:
    with pytest.raises(RuntimeError, match="API key"):
        LLMQuestionEvaluator(settings)

    settings.llm_models = []
    with pytest.raises(RuntimeError, match="model list"):
        LLMQuestionEvaluator(settings, client=object())


@pytest.mark.asyncio
async def test_offline_evaluator_is_deterministic() -> None:
    evaluator = OfflineQuestionEvaluator()

    a = await evaluator.analyze("Q1", question("Q1", difficulty=4))
    b = await evaluator.analyze("Q1", question("Q1", difficulty=4))

    assert a.evaluation.overall_rating == b.evaluation.overall_rating
    assert a.core_abilities == b.core_abilities
    for score in a.core_abilities.to_dict().values():
        assert 1 <= score <= 10
