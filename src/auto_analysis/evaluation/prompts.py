# src/auto_analysis/evaluation/prompts.py

from __future__ import annotations

from .models import QuestionInput

EVALUATION_SYSTEM_PROMPT = "You are an expert reviewer of mathematics exercises."

ABILITY_SYSTEM_PROMPT = "You are an expert in assessing which mathematical abilities an exercise trains."


def _question_block(q: QuestionInput) -> str:
    lines = [
        f"Question: {q.stem}",
        f"Question type: {q.question_type}",
        f"Difficulty: {q.difficulty} stars",
        f"Category: {', '.join(q.category)}",
        f"Knowledge points: {', '.join(q.tags) if q.tags else 'mathematics'}",
    ]
    if q.solution:
        lines.append(f"Solution: {q.solution}")
    if q.solution_answers:
        lines.append(f"Solution steps: {'; '.join(q.solution_answers)}")
    return "\n".join(lines)


def build_evaluation_prompt(q: QuestionInput) -> str:
    return f"""Analyse the following mathematics question and give an overall evaluation.

{_question_block(q)}

## Requirements

### 1. overallRating (integer 1-10)
- Quality: reward questions that need real thinking with a modest amount of computation.
  Heavy computation without insight scores low; heavy thinking plus heavy, irreducible
  computation scores at most 7. The better the blend of insight, computation and
  knowledge points, the higher the score.
- Suitability: questions that are hard to read but carry cross-topic value may score high.
- Statement: concise statements with mathematical depth score higher.

### 2. evaluationReasoning (at most 300 words)
- Strengths of the question, techniques and methods it uses.
- What exactly it examines.
- Which learners and which stage of learning it suits.
Judge the question itself, not its solution write-up.

### 3. Output
Return ONLY this JSON object, nothing else:

{{
  "overallRating": 6,
  "evaluationReasoning": "..."
}}"""


def build_ability_prompt(q: QuestionInput) -> str:
    return f"""Assess how much the following mathematics question trains each core ability.

{_question_block(q)}

Score each ability from 1 to 10:
1. logicalThinking: rigour and length of the reasoning chain the question demands
2. mathematicalIntuition: spotting non-obvious patterns, structures or geometric insight
3. problemSolving: choosing and combining strategies, planning multi-step solutions
4. analyticalSkills: handling several interacting conditions or data systematically
5. creativeThinking: need for non-standard constructions or shortcuts
6. computationalSkills: amount and difficulty of algebraic or numeric manipulation

If the solution contains a lot of computation, computationalSkills must reflect it.
A long solution with small conceptual steps is not a high logicalThinking score.

Return ONLY this JSON object:

{{
  "logicalThinking": 5,
  "mathematicalIntuition": 5,
  "problemSolving": 5,
  "analyticalSkills": 5,
  "creativeThinking": 5,
  "computationalSkills": 5
}}"""
