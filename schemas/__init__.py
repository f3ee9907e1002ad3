"""Pydantic schemas for the conversation engine."""

from .transcript import (
    Role,
    TranscriptItem,
    ConversationTurn,
    TranscriptDelta,
    TranscriptFinal,
    Acknowledgment,
    ResponseStarted,
    ResponseCompleted,
    RemoteError,
    DecodedEvent,
)
from .insights import Insight, InsightKind, Confidence, Vote, Votes
from .rubric import (
    ConversationPhase,
    EngagementStyle,
    EnergyLevel,
    ReadinessBias,
    CardReadinessStatus,
    RecommendedFocus,
    InsightCoverage,
    CardReadiness,
    ConversationRubric,
    PhaseDecision,
    ConversationAssessment,
    RubricEvaluation,
)
from .suggestions import (
    CardDistance,
    SuggestionCandidate,
    Suggestion,
    CandidateRequest,
    CandidateReview,
    ReviewDecision,
)

__all__ = [
    "Role",
    "TranscriptItem",
    "ConversationTurn",
    "TranscriptDelta",
    "TranscriptFinal",
    "Acknowledgment",
    "ResponseStarted",
    "ResponseCompleted",
    "RemoteError",
    "DecodedEvent",
    "Insight",
    "InsightKind",
    "Confidence",
    "Vote",
    "Votes",
    "ConversationPhase",
    "EngagementStyle",
    "EnergyLevel",
    "ReadinessBias",
    "CardReadinessStatus",
    "RecommendedFocus",
    "InsightCoverage",
    "CardReadiness",
    "ConversationRubric",
    "PhaseDecision",
    "ConversationAssessment",
    "RubricEvaluation",
    "CardDistance",
    "SuggestionCandidate",
    "Suggestion",
    "CandidateRequest",
    "CandidateReview",
    "ReviewDecision",
]
