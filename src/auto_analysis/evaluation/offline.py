# src/auto_analysis/evaluation/offline.py

from __future__ import annotations

import hashlib
from typing import Any

from .models import CompleteAnalysis, CoreAbilities, QuestionEvaluation, QuestionInput


class OfflineQuestionEvaluator:
    """
    Offline deterministic evaluator used for demos when no LLM API key is configured.

    Scores are derived from the question text and difficulty, so the same
    question always gets the same analysis.
    """

    async def analyze(self, key: str, payload: Any) -> CompleteAnalysis:
        q = QuestionInput.from_payload(payload)
        digest = hashlib.sha256(q.stem.encode("utf-8")).digest()
        base = max(1, min(10, q.difficulty * 2))

        def score(i: int) -> int:
            return max(1, min(10, base + (digest[i] % 3) - 1))

        evaluation = QuestionEvaluation(
            overall_rating=score(0),
            evaluation_reasoning=(
                "Offline demo mode: no LLM is configured. "
                "Set AUTOAI_LLM_API_KEY to get real evaluations."
            ),
        )
        abilities = CoreAbilities(
            logical_thinking=score(1),
            mathematical_intuition=score(2),
            problem_solving=score(3),
            analytical_skills=score(4),
            creative_thinking=score(5),
            computational_skills=score(6),
        )
        return CompleteAnalysis(evaluation=evaluation, core_abilities=abilities)
