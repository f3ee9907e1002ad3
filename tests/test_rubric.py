"""Tests for rubric coverage, readiness and the transcript heuristic."""

from conversation.rubric import (
    build_rubric,
    compute_card_readiness,
    compute_insight_coverage,
    infer_rubric_from_transcript,
)
from schemas.insights import Insight, InsightKind
from schemas.rubric import (
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


def user(text: str) -> ConversationTurn:
    return ConversationTurn(role=Role.USER, text=text)


def assistant(text: str) -> ConversationTurn:
    return ConversationTurn(role=Role.ASSISTANT, text=text)


class TestInsightCoverage:
    """Test coverage families."""

    def test_coverage_mapping(self):
        """Test each kind lands in its family."""
        coverage = compute_insight_coverage([
            Insight(kind=InsightKind.INTEREST, value="rugby"),
            Insight(kind=InsightKind.HIGHLIGHT, value="captained the team"),
            Insight(kind=InsightKind.BOUNDARY, value="no night shifts"),
        ])
        assert coverage == InsightCoverage(
            interests=True, aptitudes=False, goals=True, constraints=True
        )

    def test_gaps_in_order(self):
        """Test gaps list unmet keys in declaration order."""
        coverage = InsightCoverage(goals=True)
        assert coverage.gaps() == ["interests", "aptitudes", "constraints"]


class TestCardReadiness:
    """Test the card readiness gate."""

    def setup_method(self):
        """Set up test fixtures."""
        self.full = InsightCoverage(interests=True, aptitudes=True, goals=True, constraints=True)

    def test_ready_with_explicit_request(self):
        """Test depth, coverage and an ideas request make cards ready."""
        readiness = compute_card_readiness(2, self.full, True)
        assert readiness.status == CardReadinessStatus.READY
        assert readiness.missing_signals == []

    def test_ready_via_option_seeding(self):
        """Test landing on option seeding counts as intent."""
        coverage = InsightCoverage(interests=True, goals=True)
        readiness = compute_card_readiness(2, coverage, False, ConversationPhase.OPTION_SEEDING)
        assert readiness.status == CardReadinessStatus.READY

    def test_context_light(self):
        """Test some depth without everything else is context-light."""
        readiness = compute_card_readiness(1, InsightCoverage(interests=True), False)
        assert readiness.status == CardReadinessStatus.CONTEXT_LIGHT
        assert readiness.missing_signals == ["aptitudes", "goals", "context-depth", "ideas-request"]

    def test_blocked_without_depth(self):
        """Test zero depth is blocked."""
        readiness = compute_card_readiness(0, self.full, True)
        assert readiness.status == CardReadinessStatus.BLOCKED
        assert readiness.missing_signals == ["context-depth"]

    def test_depth_alone_is_not_enough(self):
        """Test maximum depth and an ideas request without interests is not ready."""
        coverage = InsightCoverage(aptitudes=True, goals=True, constraints=True)
        readiness = compute_card_readiness(3, coverage, True, ConversationPhase.OPTION_SEEDING)
        assert readiness.status == CardReadinessStatus.CONTEXT_LIGHT
        assert readiness.missing_signals == ["interests"]

    def test_no_intent_not_ready(self):
        """Test full context without intent waits."""
        readiness = compute_card_readiness(3, self.full, False, ConversationPhase.PATTERN_MAPPING)
        assert readiness.status == CardReadinessStatus.CONTEXT_LIGHT
        assert readiness.missing_signals == ["ideas-request"]


class TestBuildRubric:
    """Test rubric recomputation."""

    def test_signals_kept_and_derived_fields_recomputed(self):
        """Test evaluator fields pass through and derived fields are fresh."""
        signals = ConversationRubric(
            engagement_style=EngagementStyle.HESITANT,
            context_depth=1,
            energy_level=EnergyLevel.MEDIUM,
            insight_gaps=["bogus"],
        )
        insights = [Insight(kind=InsightKind.STRENGTH, value="patient")]

        rubric = build_rubric(signals, insights, ConversationPhase.PATTERN_MAPPING)

        assert rubric.engagement_style == EngagementStyle.HESITANT
        assert rubric.energy_level == EnergyLevel.MEDIUM
        assert rubric.insight_coverage.aptitudes is True
        assert rubric.insight_gaps == ["interests", "goals", "constraints"]
        assert rubric.recommended_focus == RecommendedFocus.PATTERN
        assert rubric.card_readiness.status == CardReadinessStatus.CONTEXT_LIGHT


class TestTranscriptHeuristic:
    """Test the length-based fallback rubric."""

    def test_no_turns(self):
        """Test an empty transcript is blocked and shallow."""
        rubric = infer_rubric_from_transcript([])
        assert rubric.engagement_style == EngagementStyle.BLOCKED
        assert rubric.context_depth == 0
        assert rubric.energy_level == EnergyLevel.LOW
        assert rubric.readiness_bias == ReadinessBias.EXPLORING

    def test_long_user_text(self):
        """Test long recent user text reads as leaning in and deep."""
        turns = [assistant("Tell me more."), user("x" * 450)]
        rubric = infer_rubric_from_transcript(turns)

        assert rubric.engagement_style == EngagementStyle.LEANING_IN
        assert rubric.energy_level == EnergyLevel.HIGH
        assert rubric.context_depth == 3
        assert rubric.readiness_bias == ReadinessBias.DECIDING

    def test_medium_user_text(self):
        """Test mid-length text is hesitant with moderate depth."""
        rubric = infer_rubric_from_transcript([user("y" * 230)])
        assert rubric.engagement_style == EngagementStyle.HESITANT
        assert rubric.energy_level == EnergyLevel.MEDIUM
        assert rubric.context_depth == 2
        assert rubric.readiness_bias == ReadinessBias.EXPLORING

    def test_ideas_request_detected(self):
        """Test asking for ideas sets the flag and bias."""
        rubric = infer_rubric_from_transcript([user("Any career ideas for me?")])
        assert rubric.explicit_ideas_request is True
        assert rubric.readiness_bias == ReadinessBias.SEEKING_OPTIONS

    def test_only_recent_window_counts(self):
        """Test older turns outside the window are ignored."""
        turns = [user("z" * 500)] + [assistant("ok")] * 4
        rubric = infer_rubric_from_transcript(turns)
        assert rubric.engagement_style == EngagementStyle.BLOCKED
        assert rubric.context_depth == 0

    def test_whitespace_is_not_engagement(self):
        """Test padding does not inflate length."""
        rubric = infer_rubric_from_transcript([user(" " * 500 + "ok")])
        assert rubric.context_depth == 0
