"""Conversation rubric and phase schemas."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ConversationPhase(str, Enum):
    """Five-stage conversational progression, in order."""
    WARMUP = "warmup"
    STORY_MINING = "story-mining"
    PATTERN_MAPPING = "pattern-mapping"
    OPTION_SEEDING = "option-seeding"
    COMMITMENT = "commitment"


PHASE_ORDER = [
    ConversationPhase.WARMUP,
    ConversationPhase.STORY_MINING,
    ConversationPhase.PATTERN_MAPPING,
    ConversationPhase.OPTION_SEEDING,
    ConversationPhase.COMMITMENT,
]


class EngagementStyle(str, Enum):
    """How the user is engaging with the conversation."""
    LEANING_IN = "leaning-in"
    HESITANT = "hesitant"
    BLOCKED = "blocked"
    SEEKING_OPTIONS = "seeking-options"


class EnergyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReadinessBias(str, Enum):
    EXPLORING = "exploring"
    SEEKING_OPTIONS = "seeking-options"
    DECIDING = "deciding"


class CardReadinessStatus(str, Enum):
    """Gate for suggestion generation."""
    BLOCKED = "blocked"
    CONTEXT_LIGHT = "context-light"
    READY = "ready"


class RecommendedFocus(str, Enum):
    RAPPORT = "rapport"
    STORY = "story"
    PATTERN = "pattern"
    IDEATION = "ideation"
    DECISION = "decision"


class InsightCoverage(BaseModel):
    """Which signal families the accumulated insights cover."""
    interests: bool = False
    aptitudes: bool = False
    goals: bool = False
    constraints: bool = False

    def gaps(self) -> list[str]:
        """Coverage keys still unmet, in declaration order."""
        return [key for key, covered in self.model_dump().items() if not covered]


class CardReadiness(BaseModel):
    """Whether the conversation supports generating cards."""
    status: CardReadinessStatus = CardReadinessStatus.BLOCKED
    missing_signals: list[str] = Field(default_factory=list)
    reason: Optional[str] = None


class ConversationRubric(BaseModel):
    """Working assessment of the conversation, always derived fresh."""
    engagement_style: EngagementStyle = EngagementStyle.BLOCKED
    context_depth: int = Field(0, ge=0, le=3)
    energy_level: EnergyLevel = EnergyLevel.LOW
    readiness_bias: ReadinessBias = ReadinessBias.EXPLORING
    explicit_ideas_request: bool = False
    insight_coverage: InsightCoverage = Field(default_factory=InsightCoverage)
    insight_gaps: list[str] = Field(default_factory=list)
    card_readiness: CardReadiness = Field(default_factory=CardReadiness)
    recommended_focus: RecommendedFocus = RecommendedFocus.RAPPORT


class PhaseDecision(BaseModel):
    """Output of the phase transition function."""
    next_phase: ConversationPhase
    rationale: list[str] = Field(default_factory=list)
    should_seed_teaser_card: bool = False


class ConversationAssessment(BaseModel):
    """Phase decision together with the rubric recomputed for it."""
    decision: PhaseDecision
    rubric: ConversationRubric


class RubricEvaluation(BaseModel):
    """Rubric signals from an evaluator, with its reasoning."""
    rubric: ConversationRubric
    reasoning: list[str] = Field(default_factory=list)
    source: str = "heuristic"  # "llm" or "heuristic"
