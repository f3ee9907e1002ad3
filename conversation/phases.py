"""
Conversation phase transition function.

Deterministic and side-effect free: the same snapshot always produces the
same decision, so it is safe to re-run after every final turn.
"""

import logging
from typing import Optional, Union

from schemas.insights import Insight
from schemas.rubric import (
    ConversationAssessment,
    ConversationPhase,
    ConversationRubric,
    EngagementStyle,
    PhaseDecision,
    ReadinessBias,
)
from schemas.transcript import ConversationTurn, Role
from .rubric import (
    ASPIRATION_KINDS,
    CONSTRAINT_KINDS,
    REQUIRED_BASE_KINDS,
    build_rubric,
    has_insight_of_kind,
    infer_rubric_from_transcript,
)

logger = logging.getLogger(__name__)


MIN_CONTEXT_DEPTH_FOR_PATTERN = 2
MIN_CONTEXT_DEPTH_FOR_OPTIONS = 2
MIN_KINDS_FOR_OPTIONS = 5

# Turn counts after which a stalled phase seeds a teaser card
STORY_TEASER_TURNS = 6
PATTERN_TEASER_TURNS = 8
OPTION_TEASER_TURNS = 10

LOW_ENGAGEMENT = (EngagementStyle.BLOCKED, EngagementStyle.HESITANT)


def recommend_phase(
    current_phase: Union[ConversationPhase, str],
    turns: list[ConversationTurn],
    insights: list[Insight],
    suggestion_count: int,
    vote_count: int,
    rubric: Optional[ConversationRubric] = None
) -> PhaseDecision:
    """
    Decide the next conversation phase.

    Args:
        current_phase: Phase the session is in
        turns: Final conversation turns, oldest first
        insights: Accumulated insights
        suggestion_count: Cards shown so far
        vote_count: Votes cast so far
        rubric: Latest rubric; missing means blocked, depth 0, exploring

    Returns:
        PhaseDecision with at least one rationale line

    Raises:
        ValueError: If current_phase is not a known phase
    """
    phase = ConversationPhase(current_phase)
    rubric = rubric if rubric is not None else ConversationRubric()

    engagement = rubric.engagement_style
    depth = rubric.context_depth
    low_engagement = engagement in LOW_ENGAGEMENT

    base_covered = all(has_insight_of_kind(insights, [kind]) for kind in REQUIRED_BASE_KINDS)
    has_aspirations = has_insight_of_kind(insights, ASPIRATION_KINDS)
    has_constraints = has_insight_of_kind(insights, CONSTRAINT_KINDS)
    kind_count = len({insight.kind for insight in insights})

    next_phase = phase
    rationale = []
    seed_teaser = False

    if phase == ConversationPhase.WARMUP:
        if any(turn.role == Role.USER for turn in turns):
            next_phase = ConversationPhase.STORY_MINING
            rationale.append("User has started responding; move into story mining.")
        else:
            rationale.append("Awaiting initial user response; stay in warmup.")

    elif phase == ConversationPhase.STORY_MINING:
        ready_for_patterns = (
            base_covered
            and has_aspirations
            and (has_constraints or depth >= MIN_CONTEXT_DEPTH_FOR_PATTERN)
        )
        if ready_for_patterns:
            next_phase = ConversationPhase.PATTERN_MAPPING
            rationale.append(
                "Insights now cover interests, strengths, and aspirations; move to pattern mapping."
            )
        elif low_engagement and len(turns) >= STORY_TEASER_TURNS:
            seed_teaser = True
            rationale.append("Rubric shows low engagement; seed teaser card to spark reaction.")
        else:
            rationale.append(
                "Stay in story mining until aspirations (and ideally constraints) are surfaced."
            )

    elif phase == ConversationPhase.PATTERN_MAPPING:
        deep_context = (
            base_covered
            and has_aspirations
            and has_constraints
            and (depth >= MIN_CONTEXT_DEPTH_FOR_OPTIONS or kind_count >= MIN_KINDS_FOR_OPTIONS)
        )
        if rubric.explicit_ideas_request or rubric.readiness_bias == ReadinessBias.SEEKING_OPTIONS:
            next_phase = ConversationPhase.OPTION_SEEDING
            rationale.append("Rubric signals they're seeking options; progress to option seeding.")
        elif deep_context and (engagement == EngagementStyle.LEANING_IN or vote_count > 0):
            next_phase = ConversationPhase.OPTION_SEEDING
            rationale.append("Insight coverage and rubric depth high; ready to introduce cards.")
        elif low_engagement and suggestion_count == 0 and len(turns) >= PATTERN_TEASER_TURNS:
            seed_teaser = True
            rationale.append("Stalled despite coaching; try a teaser card to gauge reactions.")
        else:
            rationale.append("Continue mapping patterns to strengthen aspirations and constraints.")

    elif phase == ConversationPhase.OPTION_SEEDING:
        if vote_count > 0 and rubric.readiness_bias == ReadinessBias.DECIDING:
            next_phase = ConversationPhase.COMMITMENT
            rationale.append("Votes on cards and readiness to decide; shift to commitment.")
        elif low_engagement and suggestion_count == 0 and len(turns) >= OPTION_TEASER_TURNS:
            seed_teaser = True
            rationale.append("Option seeding stalled without cards; seed teaser to regain momentum.")
        else:
            rationale.append("Stay in option seeding to gather reactions and refine.")

    elif phase == ConversationPhase.COMMITMENT:
        if low_engagement and vote_count == 0:
            next_phase = ConversationPhase.PATTERN_MAPPING
            rationale.append("Commitment stalled; revert to pattern mapping for more context.")
        else:
            rationale.append("Remain in commitment to coach next steps.")

    return PhaseDecision(
        next_phase=next_phase,
        rationale=rationale,
        should_seed_teaser_card=seed_teaser,
    )


def assess_conversation(
    current_phase: Union[ConversationPhase, str],
    turns: list[ConversationTurn],
    insights: list[Insight],
    suggestion_count: int,
    vote_count: int,
    rubric: Optional[ConversationRubric] = None
) -> ConversationAssessment:
    """
    Run the phase decision and recompute the rubric for its outcome.

    Without a rubric the transcript heuristic supplies the signals.
    """
    signals = rubric if rubric is not None else infer_rubric_from_transcript(turns)
    decision = recommend_phase(
        current_phase,
        turns,
        insights,
        suggestion_count,
        vote_count,
        signals
    )
    fresh_rubric = build_rubric(signals, insights, decision.next_phase)

    if decision.next_phase != ConversationPhase(current_phase):
        logger.info(
            f"Phase {ConversationPhase(current_phase).value} -> {decision.next_phase.value}: "
            f"{decision.rationale[0]}"
        )

    return ConversationAssessment(decision=decision, rubric=fresh_rubric)
