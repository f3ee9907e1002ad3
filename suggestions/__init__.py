"""Suggestion generation and dedup engine."""

from .critic import CandidateCritic
from .engine import SuggestionEngine, create_suggestion_engine, build_profile, split_votes
from .errors import SuggestionConfigurationError
from .fallback import FallbackLibrary
from .generator import CandidateGenerator, parse_candidate
from .motivation import MotivationSummarizer

__all__ = [
    "CandidateCritic",
    "SuggestionEngine",
    "create_suggestion_engine",
    "build_profile",
    "split_votes",
    "SuggestionConfigurationError",
    "FallbackLibrary",
    "CandidateGenerator",
    "parse_candidate",
    "MotivationSummarizer",
]
