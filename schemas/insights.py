"""Insight and vote schemas."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class InsightKind(str, Enum):
    """Category of a fact extracted from the conversation."""
    INTEREST = "interest"
    STRENGTH = "strength"
    GOAL = "goal"
    HOPE = "hope"
    CONSTRAINT = "constraint"
    FRUSTRATION = "frustration"
    BOUNDARY = "boundary"
    HIGHLIGHT = "highlight"


class Confidence(str, Enum):
    """Confidence attached to an insight or a card."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Insight(BaseModel):
    """A categorized fact about the user."""
    kind: InsightKind
    value: str
    confidence: Optional[Confidence] = None


class Vote(int, Enum):
    """User reaction to a suggestion card."""
    SAVED = 1
    MAYBE = 0
    SKIPPED = -1


# Mapping of suggestion id to vote; absent ids are pending
Votes = dict[str, Vote]
