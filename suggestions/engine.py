"""
Suggestion generation and dedup engine.

Produces one card per distance tier (core, adjacent, unexpected) through a
request -> critique -> retry loop per tier, falling back to the fixed
library when the retry budget runs out.
"""

import logging
import threading
from typing import Optional

from config.settings import Settings
from llm.factory import create_llm_client, LLMProvider
from schemas.insights import Insight, InsightKind, Vote, Votes
from schemas.suggestions import (
    TIER_ORDER,
    TIER_SCORES,
    CandidateRequest,
    CardDistance,
    ReviewDecision,
    Suggestion,
    SuggestionCandidate,
)
from .critic import CandidateCritic
from .errors import SuggestionConfigurationError
from .fallback import FallbackLibrary
from .generator import CandidateGenerator
from .keywords import dominant_keywords, slugify
from .motivation import MotivationSummarizer

logger = logging.getLogger(__name__)


PROFILE_GROUPS = {
    "interests": [InsightKind.INTEREST],
    "strengths": [InsightKind.STRENGTH],
    "goals": [InsightKind.GOAL],
    "frustrations": [InsightKind.FRUSTRATION],
    "hopes": [InsightKind.HOPE],
    "constraints": [InsightKind.CONSTRAINT, InsightKind.BOUNDARY],
    "highlights": [InsightKind.HIGHLIGHT],
}


def build_profile(insights: list[Insight]) -> dict[str, list[str]]:
    """Group insight values by profile section."""
    return {
        section: [insight.value for insight in insights if insight.kind in kinds]
        for section, kinds in PROFILE_GROUPS.items()
    }


def split_votes(votes: Optional[Votes]) -> tuple[list[str], list[str]]:
    """Liked and disliked suggestion ids; maybes and pending are ignored."""
    votes = votes or {}
    liked = [key for key, vote in votes.items() if vote == Vote.SAVED]
    disliked = [key for key, vote in votes.items() if vote == Vote.SKIPPED]
    return liked, disliked


class SuggestionEngine:
    """Generates up to one card per distance tier for a profile."""

    def __init__(
        self,
        generator: Optional[CandidateGenerator],
        settings: Optional[Settings] = None,
        critic: Optional[CandidateCritic] = None,
        fallback: Optional[FallbackLibrary] = None,
        summarizer: Optional[MotivationSummarizer] = None
    ):
        """
        Initialize suggestion engine.

        Args:
            generator: Content-generation client wrapper; None when no
                credential is configured
            settings: Retry budgets, thresholds and default limit
            critic: Candidate critic (built from settings if omitted)
            fallback: Fallback library (built from the critic if omitted)
            summarizer: Optional motivation summarizer run once per generation
        """
        self.generator = generator
        self.settings = settings or Settings()
        self.critic = critic or CandidateCritic(
            duplicate_threshold=self.settings.duplicate_threshold,
            overlap_threshold=self.settings.keyword_overlap_threshold
        )
        self.fallback = fallback or FallbackLibrary(critic=self.critic)
        self.summarizer = summarizer

    def generate(
        self,
        insights: list[Insight],
        votes: Optional[Votes] = None,
        limit: Optional[int] = None,
        abort: Optional[threading.Event] = None,
        previous_titles: Optional[list[str]] = None
    ) -> list[Suggestion]:
        """
        Generate suggestion cards.

        Args:
            insights: Accumulated insights
            votes: Votes keyed by suggestion id
            limit: Maximum number of cards (default from settings)
            abort: When set, remaining attempts are skipped and the
                fallback fills the remaining tiers
            previous_titles: Titles already shown to the user

        Returns:
            One card per tier in core, adjacent, unexpected order, truncated
            to ``limit``; empty when there are no insights

        Raises:
            SuggestionConfigurationError: If insights exist but no
                content-generation client is configured
        """
        if not insights:
            return []

        if self.generator is None:
            raise SuggestionConfigurationError(
                "A content-generation API key is required for card generation"
            )

        limit = self.settings.suggestion_limit if limit is None else limit
        tiers = TIER_ORDER[:max(limit, 0)]

        profile = build_profile(insights)
        liked, disliked = split_votes(votes)
        dominant = dominant_keywords(insights, self.settings.dominant_keyword_count)
        avoid_titles = {title.strip().lower() for title in (previous_titles or []) if title.strip()}
        motivation = self._summarize(insights, abort) if tiers else None

        logger.info(
            f"Generating {len(tiers)} card(s) from {len(insights)} insights "
            f"({len(liked)} liked, {len(disliked)} disliked)"
        )

        accepted: list[Suggestion] = []
        for index, distance in enumerate(tiers):
            card = self._generate_tier(
                index, distance, insights, profile, liked, disliked,
                accepted, avoid_titles, dominant, motivation, abort
            )
            accepted.append(card)
            avoid_titles.add(card.title.lower())

        return accepted

    def _generate_tier(
        self,
        index: int,
        distance: CardDistance,
        insights: list[Insight],
        profile: dict[str, list[str]],
        liked: list[str],
        disliked: list[str],
        accepted: list[Suggestion],
        avoid_titles: set[str],
        dominant: list[str],
        motivation: Optional[str],
        abort: Optional[threading.Event]
    ) -> Suggestion:
        banned = list(dominant) if distance == CardDistance.UNEXPECTED else []
        attempts = self.settings.attempts_for(distance.value)

        for attempt in range(1, attempts + 1):
            if abort is not None and abort.is_set():
                logger.info(f"Generation aborted before {distance.value} attempt {attempt}")
                break

            request = CandidateRequest(
                distance=distance,
                profile=profile,
                motivation_summary=motivation,
                liked_ids=liked,
                disliked_ids=disliked,
                accepted=list(accepted),
                avoid_titles=sorted(avoid_titles),
                banned_keywords=list(banned),
            )

            try:
                candidate = self.generator.request_candidate(request)
            except Exception as e:
                logger.warning(f"{distance.value} attempt {attempt}/{attempts} failed: {e}")
                continue

            if candidate is None:
                continue

            review = self.critic.review(candidate, distance, accepted, avoid_titles, banned)
            if review.decision == ReviewDecision.ACCEPT:
                logger.info(f"Accepted {distance.value} card: {candidate.title}")
                return self._to_suggestion(candidate, index, distance)

            logger.warning(
                f"Rejected {distance.value} candidate '{candidate.title}' "
                f"(attempt {attempt}/{attempts}): {'; '.join(review.critique)}"
            )
            for keyword in review.banned_keywords:
                if keyword not in banned:
                    banned.append(keyword)

        return self.fallback.build(distance, insights, accepted, avoid_titles, dominant)

    def _summarize(
        self,
        insights: list[Insight],
        abort: Optional[threading.Event]
    ) -> Optional[str]:
        if self.summarizer is None or (abort is not None and abort.is_set()):
            return None
        try:
            return self.summarizer.summarize(insights)
        except Exception as e:
            logger.warning(f"Motivation summary failed, continuing without it: {e}")
            return None

    def _to_suggestion(
        self,
        candidate: SuggestionCandidate,
        index: int,
        distance: CardDistance
    ) -> Suggestion:
        return Suggestion(
            **candidate.model_dump(),
            id=f"dynamic-{index}-{slugify(candidate.title)}",
            distance=distance,
            score=TIER_SCORES[distance],
        )


def create_suggestion_engine(settings: Optional[Settings] = None) -> SuggestionEngine:
    """
    Build an engine wired to the configured content-generation provider.

    Without a credential the engine is built with no generator, so
    ``generate`` raises SuggestionConfigurationError once insights exist.
    The motivation summary uses the rubric provider and is skipped when
    that provider has no key.
    """
    settings = settings or Settings()
    api_key = settings.get_content_api_key()

    generator = None
    if api_key:
        client = create_llm_client(
            provider=LLMProvider(settings.content_provider),
            api_key=api_key,
            model=settings.content_model
        )
        generator = CandidateGenerator(client)
        logger.info(
            f"Suggestion engine using {settings.content_provider} ({client.get_model_name()})"
        )
    else:
        logger.warning(f"No API key for {settings.content_provider}; card generation disabled")

    summarizer = None
    llm_key = settings.get_llm_api_key()
    if settings.motivation_summary_enabled and llm_key:
        summarizer = MotivationSummarizer(
            create_llm_client(
                provider=LLMProvider(settings.llm_provider),
                api_key=llm_key,
                model=settings.llm_model
            ),
            max_insights=settings.motivation_insight_limit
        )

    return SuggestionEngine(generator=generator, settings=settings, summarizer=summarizer)
