"""Rubric derivation: insight coverage, card readiness and heuristic inference."""

import re
from typing import Iterable, Optional

from schemas.insights import Insight, InsightKind
from schemas.rubric import (
    CardReadiness,
    CardReadinessStatus,
    ConversationPhase,
    ConversationRubric,
    EnergyLevel,
    EngagementStyle,
    InsightCoverage,
    ReadinessBias,
    RecommendedFocus,
)
from schemas.transcript import ConversationTurn, Role


REQUIRED_BASE_KINDS = [InsightKind.INTEREST, InsightKind.STRENGTH]
ASPIRATION_KINDS = [InsightKind.HOPE, InsightKind.GOAL, InsightKind.HIGHLIGHT]
CONSTRAINT_KINDS = [InsightKind.CONSTRAINT, InsightKind.FRUSTRATION, InsightKind.BOUNDARY]

MIN_CONTEXT_DEPTH_FOR_CARDS = 2

# Heuristic thresholds, in characters of trimmed user text over the window
HEURISTIC_WINDOW = 4
ENGAGEMENT_THRESHOLDS = (280, 120)
ENERGY_THRESHOLDS = (320, 160)
DEPTH_THRESHOLDS = (400, 220, 120)

IDEA_REQUEST_PATTERN = re.compile(
    r"\b(options?\b|\bideas?\b|\bcareers?\b|\bsuggestions?\b)",
    re.IGNORECASE
)

PHASE_FOCUS = {
    ConversationPhase.WARMUP: RecommendedFocus.RAPPORT,
    ConversationPhase.STORY_MINING: RecommendedFocus.STORY,
    ConversationPhase.PATTERN_MAPPING: RecommendedFocus.PATTERN,
    ConversationPhase.OPTION_SEEDING: RecommendedFocus.IDEATION,
    ConversationPhase.COMMITMENT: RecommendedFocus.DECISION,
}


def has_insight_of_kind(insights: Iterable[Insight], kinds: list[InsightKind]) -> bool:
    return any(insight.kind in kinds for insight in insights)


def compute_insight_coverage(insights: list[Insight]) -> InsightCoverage:
    """Map insight kinds onto the four coverage families."""
    return InsightCoverage(
        interests=has_insight_of_kind(insights, [InsightKind.INTEREST]),
        aptitudes=has_insight_of_kind(insights, [InsightKind.STRENGTH]),
        goals=has_insight_of_kind(insights, [InsightKind.GOAL, InsightKind.HOPE, InsightKind.HIGHLIGHT]),
        constraints=has_insight_of_kind(insights, CONSTRAINT_KINDS),
    )


def compute_card_readiness(
    context_depth: int,
    coverage: InsightCoverage,
    explicit_ideas_request: bool,
    next_phase: Optional[ConversationPhase] = None
) -> CardReadiness:
    """
    Decide whether suggestion cards should be generated.

    Ready requires depth of at least 2, interest coverage, aptitude or goal
    coverage, and intent: an explicit ideas request or a phase decision
    landing on option-seeding. Anything short of that is context-light
    with some depth, blocked without.
    """
    missing = []
    if not coverage.interests:
        missing.append("interests")
    if not (coverage.aptitudes or coverage.goals):
        missing.extend(["aptitudes", "goals"])
    if context_depth < MIN_CONTEXT_DEPTH_FOR_CARDS:
        missing.append("context-depth")

    has_intent = explicit_ideas_request or next_phase == ConversationPhase.OPTION_SEEDING
    if not has_intent:
        missing.append("ideas-request")

    if not missing:
        reason = (
            "User asked for ideas and the profile covers interests and strengths or goals."
            if explicit_ideas_request
            else "Conversation moved into option seeding with enough depth for cards."
        )
        return CardReadiness(status=CardReadinessStatus.READY, reason=reason)

    if context_depth >= 1:
        return CardReadiness(
            status=CardReadinessStatus.CONTEXT_LIGHT,
            missing_signals=missing,
            reason=f"Some context gathered; still missing {', '.join(missing)}.",
        )

    return CardReadiness(
        status=CardReadinessStatus.BLOCKED,
        missing_signals=missing,
        reason="Not enough conversation depth to suggest anything yet.",
    )


def build_rubric(
    signals: ConversationRubric,
    insights: list[Insight],
    next_phase: ConversationPhase
) -> ConversationRubric:
    """
    Derive a fresh rubric from evaluator signals and the insight snapshot.

    Only the evaluator fields (engagement, depth, energy, readiness bias,
    ideas request) are taken from ``signals``; coverage, gaps, readiness and
    focus are always recomputed so contradictory inputs cannot leak through.
    """
    coverage = compute_insight_coverage(insights)
    readiness = compute_card_readiness(
        signals.context_depth,
        coverage,
        signals.explicit_ideas_request,
        next_phase
    )

    return ConversationRubric(
        engagement_style=signals.engagement_style,
        context_depth=signals.context_depth,
        energy_level=signals.energy_level,
        readiness_bias=signals.readiness_bias,
        explicit_ideas_request=signals.explicit_ideas_request,
        insight_coverage=coverage,
        insight_gaps=coverage.gaps(),
        card_readiness=readiness,
        recommended_focus=PHASE_FOCUS[next_phase],
    )


def infer_rubric_from_transcript(turns: list[ConversationTurn]) -> ConversationRubric:
    """Cheap length-based rubric over the last few turns, used without an LLM."""
    recent = turns[-HEURISTIC_WINDOW:]
    user_turns = [turn for turn in recent if turn.role == Role.USER]
    assistant_turns = [turn for turn in recent if turn.role == Role.ASSISTANT]

    user_length = sum(len(turn.text.strip()) for turn in user_turns)
    assistant_length = sum(len(turn.text.strip()) for turn in assistant_turns)

    if not user_turns:
        engagement = EngagementStyle.BLOCKED
    elif user_length > ENGAGEMENT_THRESHOLDS[0]:
        engagement = EngagementStyle.LEANING_IN
    elif user_length > ENGAGEMENT_THRESHOLDS[1]:
        engagement = EngagementStyle.HESITANT
    else:
        engagement = EngagementStyle.BLOCKED

    if user_length > ENERGY_THRESHOLDS[0]:
        energy = EnergyLevel.HIGH
    elif user_length > ENERGY_THRESHOLDS[1]:
        energy = EnergyLevel.MEDIUM
    else:
        energy = EnergyLevel.LOW

    ideas_request = any(IDEA_REQUEST_PATTERN.search(turn.text) for turn in user_turns)

    if ideas_request:
        readiness_bias = ReadinessBias.SEEKING_OPTIONS
    elif engagement == EngagementStyle.LEANING_IN and assistant_length > 0:
        readiness_bias = ReadinessBias.DECIDING
    else:
        readiness_bias = ReadinessBias.EXPLORING

    depth = 0
    for level, threshold in zip((3, 2, 1), DEPTH_THRESHOLDS):
        if user_length > threshold:
            depth = level
            break

    return ConversationRubric(
        engagement_style=engagement,
        context_depth=depth,
        energy_level=energy,
        readiness_bias=readiness_bias,
        explicit_ideas_request=ideas_request,
    )
