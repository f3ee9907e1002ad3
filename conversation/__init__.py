"""Conversation phase and readiness engine."""

from .phases import recommend_phase, assess_conversation
from .rubric import (
    build_rubric,
    compute_card_readiness,
    compute_insight_coverage,
    infer_rubric_from_transcript,
)
from .llm_rubric import LLMRubricEvaluator

__all__ = [
    "recommend_phase",
    "assess_conversation",
    "build_rubric",
    "compute_card_readiness",
    "compute_insight_coverage",
    "infer_rubric_from_transcript",
    "LLMRubricEvaluator",
]
