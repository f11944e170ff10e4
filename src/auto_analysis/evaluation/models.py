# src/auto_analysis/evaluation/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

ANALYSIS_VERSION = "1.0.0"
DEFAULT_CATEGORY = "comprehensive"
DEFAULT_DIFFICULTY = 3
DEFAULT_SCORE = 5


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clamp_score(raw: Any, default: int = DEFAULT_SCORE) -> int:
    """Coerce a model-provided score into 1..10; missing/garbage -> default."""
    try:
        val = int(round(float(raw)))
    except (TypeError, ValueError):
        return default
    if val == 0:
        return default
    return max(1, min(10, val))


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


@dataclass(slots=True, frozen=True)
class QuestionInput:
    """The parts of a question payload the evaluator looks at."""

    stem: str
    question_type: str = "solution"
    difficulty: int = DEFAULT_DIFFICULTY
    solution: str | None = None
    solution_answers: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    category: list[str] = field(default_factory=lambda: [DEFAULT_CATEGORY])

    @classmethod
    def from_payload(cls, payload: Any) -> QuestionInput:
        content = _get(payload, "content") or {}
        if isinstance(content, str):
            stem, solution, answers = content, None, []
        else:
            stem = str(_get(content, "stem") or "")
            solution = _get(content, "solution") or None
            answers = list(_get(content, "solutionAnswers") or [])

        if not stem.strip():
            raise ValueError("question payload has no content stem")

        category = _get(payload, "category")
        if not category:
            category = [DEFAULT_CATEGORY]
        elif not isinstance(category, (list, tuple)):
            category = [category]

        try:
            difficulty = int(_get(payload, "difficulty") or DEFAULT_DIFFICULTY)
        except (TypeError, ValueError):
            difficulty = DEFAULT_DIFFICULTY

        return cls(
            stem=stem.strip(),
            question_type=str(_get(payload, "type") or "solution"),
            difficulty=difficulty,
            solution=str(solution) if solution else None,
            solution_answers=[str(a) for a in answers],
            tags=[str(t) for t in (_get(payload, "tags") or [])],
            category=[str(c) for c in category],
        )


@dataclass(slots=True, frozen=True)
class QuestionEvaluation:
    overall_rating: int
    evaluation_reasoning: str
    last_updated: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_llm(cls, data: Mapping[str, Any]) -> QuestionEvaluation:
        reasoning = str(data.get("evaluationReasoning") or "").strip()
        return cls(
            overall_rating=_clamp_score(data.get("overallRating")),
            evaluation_reasoning=reasoning or "No reasoning provided.",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "overallRating": self.overall_rating,
            "evaluationReasoning": self.evaluation_reasoning,
            "lastUpdated": self.last_updated,
        }


@dataclass(slots=True, frozen=True)
class CoreAbilities:
    logical_thinking: int = DEFAULT_SCORE
    mathematical_intuition: int = DEFAULT_SCORE
    problem_solving: int = DEFAULT_SCORE
    analytical_skills: int = DEFAULT_SCORE
    creative_thinking: int = DEFAULT_SCORE
    computational_skills: int = DEFAULT_SCORE

    @classmethod
    def from_llm(cls, data: Mapping[str, Any]) -> CoreAbilities:
        return cls(
            logical_thinking=_clamp_score(data.get("logicalThinking")),
            mathematical_intuition=_clamp_score(data.get("mathematicalIntuition")),
            problem_solving=_clamp_score(data.get("problemSolving")),
            analytical_skills=_clamp_score(data.get("analyticalSkills")),
            creative_thinking=_clamp_score(data.get("creativeThinking")),
            computational_skills=_clamp_score(data.get("computationalSkills")),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "logicalThinking": self.logical_thinking,
            "mathematicalIntuition": self.mathematical_intuition,
            "problemSolving": self.problem_solving,
            "analyticalSkills": self.analytical_skills,
            "creativeThinking": self.creative_thinking,
            "computationalSkills": self.computational_skills,
        }


@dataclass(slots=True, frozen=True)
class CompleteAnalysis:
    evaluation: QuestionEvaluation
    core_abilities: CoreAbilities
    analysis_timestamp: str = field(default_factory=utc_now_iso)
    analysis_version: str = ANALYSIS_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "evaluation": self.evaluation.to_dict(),
            "coreAbilities": self.core_abilities.to_dict(),
            "analysisTimestamp": self.analysis_timestamp,
            "analysisVersion": self.analysis_version,
        }
