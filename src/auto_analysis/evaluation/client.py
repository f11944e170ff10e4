# src/auto_analysis/evaluation/client.py

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Dict, List, Optional

import httpx
import openai
from openai import AsyncOpenAI

from ..config import get_settings
from .models import CompleteAnalysis, CoreAbilities, QuestionEvaluation, QuestionInput
from .prompts import (
    ABILITY_SYSTEM_PROMPT,
    EVALUATION_SYSTEM_PROMPT,
    build_ability_prompt,
    build_evaluation_prompt,
)

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

BAD_MODEL_COOLDOWN_SECONDS = 3600.0


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"AuthenticationError", "PermissionDeniedError", "UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"RateLimitError", "TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException)):
        return True
    return exc.__class__.__name__ in {
        "APIConnectionError",
        "APITimeoutError",
        "ConnectTimeout",
        "ReadTimeout",
        "WriteTimeout",
    }


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible endpoints answer 404 for unknown models
    if isinstance(exc, openai.NotFoundError):
        return True
    return exc.__class__.__name__ in {"NotFoundError"}


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Pull the outermost {...} block out of a model reply and parse it.

    Reasoning models like to wrap JSON in prose or code fences.
    """
    match = _JSON_OBJECT_RE.search(text or "")
    if not match:
        raise ValueError("LLM reply contains no JSON object")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"LLM reply JSON is malformed: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("LLM reply JSON is not an object")
    return data


def _make_client(settings: Any) -> AsyncOpenAI:
    """
    Build the OpenAI-compatible client.

    IMPORTANT:
    - No secrets required at import time.
    - SDK retries are disabled: the queue owns the retry policy.
    """
    api_key = getattr(settings, "llm_api_key", None)
    base_url = getattr(settings, "llm_base_url", "") or ""

    if not api_key or not str(api_key).strip():
        raise RuntimeError("LLM API key is not set. Set AUTOAI_LLM_API_KEY (or DEEPSEEK_API_KEY) in your .env.")
    if not base_url.strip():
        raise RuntimeError("LLM base URL is not set. Set AUTOAI_LLM_BASE_URL in your .env.")

    read_s = float(getattr(settings, "llm_timeout_seconds", 120.0))
    timeout = httpx.Timeout(connect=10.0, read=read_s, write=10.0, pool=10.0)
    return AsyncOpenAI(base_url=str(base_url), api_key=str(api_key), timeout=timeout, max_retries=0)


class LLMQuestionEvaluator:
    """
    AnalysisProvider backed by an OpenAI-compatible chat completion API.

    Behavior:
    - Tries models in the configured order (AUTOAI_LLM_MODELS).
    - 404 (model not available) -> skip it for an hour, try next.
    - Rate limit / network issues / bad JSON -> try next.
    - Auth issues -> fail fast (no point trying other models).
    - The evaluation step must succeed, otherwise analyze() raises and the
      queue retries the whole job. The ability assessment falls back to
      default scores.
    """

    def __init__(
        self,
        settings: Any = None,
        *,
        client: Any = None,
        models: Optional[List[str]] = None,
    ) -> None:
        if settings is None:
            settings = get_settings()
        self._models: List[str] = [
            m.strip() for m in (models if models is not None else getattr(settings, "llm_models", [])) if m and m.strip()
        ]
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set AUTOAI_LLM_MODELS in your .env.")
        self._client = client if client is not None else _make_client(settings)
        self._bad_models: Dict[str, float] = {}  # model -> retry_at (monotonic)

    async def analyze(self, key: str, payload: Any) -> CompleteAnalysis:
        question = QuestionInput.from_payload(payload)

        data = await self._complete_json(
            system_prompt=EVALUATION_SYSTEM_PROMPT,
            prompt=build_evaluation_prompt(question),
            max_tokens=2000,
        )
        evaluation = QuestionEvaluation.from_llm(data)

        try:
            abilities_data = await self._complete_json(
                system_prompt=ABILITY_SYSTEM_PROMPT,
                prompt=build_ability_prompt(question),
                max_tokens=1500,
            )
            abilities = CoreAbilities.from_llm(abilities_data)
        except Exception:
            logger.warning("Ability assessment failed key=%s; using default scores", key, exc_info=True)
            abilities = CoreAbilities()

        logger.debug("Evaluated key=%s rating=%s", key, evaluation.overall_rating)
        return CompleteAnalysis(evaluation=evaluation, core_abilities=abilities)

    async def _complete_json(self, *, system_prompt: str, prompt: str, max_tokens: int) -> dict[str, Any]:
        last_error: Optional[Exception] = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            t0 = time.monotonic()
            try:
                resp = await self._client.chat.completions.create(
                    model=model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=max_tokens,
                    stream=False,
                )
                content = resp.choices[0].message.content if resp.choices else None
                if not content:
                    last_error = RuntimeError(f"Model returned no content: {model}")
                    logger.info("LLM: empty reply from model=%s, trying next", model)
                    continue
                data = extract_json_object(content)
                logger.info("LLM: model=%s answered in %.2fs", model, time.monotonic() - t0)
                return data

            except ValueError as e:
                last_error = e
                logger.info("LLM: unusable reply from model=%s (%s), trying next", model, e)
                continue

            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError("LLM authentication failed. Check AUTOAI_LLM_API_KEY.") from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + BAD_MODEL_COOLDOWN_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                    continue

                if _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                    continue

                if _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                    continue

                logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error

        raise RuntimeError("All LLM models failed.")
