"""Suggestion card schemas."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from .insights import Confidence


class CardDistance(str, Enum):
    """How far a card strays from the user's stated interests."""
    CORE = "core"
    ADJACENT = "adjacent"
    UNEXPECTED = "unexpected"


TIER_ORDER = [CardDistance.CORE, CardDistance.ADJACENT, CardDistance.UNEXPECTED]

# Ranking weight per tier, core first
TIER_SCORES = {
    CardDistance.CORE: 3.0,
    CardDistance.ADJACENT: 2.0,
    CardDistance.UNEXPECTED: 1.0,
}


class SuggestionCandidate(BaseModel):
    """Card content as returned by the content-generation service."""
    title: str = ""
    summary: str = ""
    why_it_fits: list[str] = Field(default_factory=list)
    career_angles: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)
    micro_experiments: list[str] = Field(default_factory=list)
    neighbor_territories: list[str] = Field(default_factory=list)


class Suggestion(SuggestionCandidate):
    """Accepted card returned to the caller."""
    id: str
    distance: CardDistance
    score: float
    confidence: Confidence = Confidence.MEDIUM
    source: str = "generated"  # "generated" or "fallback"


class CandidateRequest(BaseModel):
    """Everything the content-generation service sees for one attempt."""
    distance: CardDistance
    profile: dict[str, list[str]] = Field(default_factory=dict)
    motivation_summary: Optional[str] = None
    liked_ids: list[str] = Field(default_factory=list)
    disliked_ids: list[str] = Field(default_factory=list)
    accepted: list[SuggestionCandidate] = Field(default_factory=list)
    avoid_titles: list[str] = Field(default_factory=list)
    banned_keywords: list[str] = Field(default_factory=list)


class ReviewDecision(str, Enum):
    """Critic decision for a candidate."""
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


class CandidateReview(BaseModel):
    """Output from the candidate critic."""
    decision: ReviewDecision
    critique: list[str] = Field(default_factory=list)
    banned_keywords: list[str] = Field(default_factory=list)
    similarity: Optional[float] = None
