"""Deterministic fallback cards used when the service cannot produce one."""

import hashlib
import logging
from pathlib import Path
from typing import Optional

import yaml

from schemas.insights import Confidence, Insight, InsightKind
from schemas.suggestions import (
    TIER_ORDER,
    TIER_SCORES,
    CardDistance,
    ReviewDecision,
    Suggestion,
    SuggestionCandidate,
)
from .critic import CandidateCritic
from .keywords import keyword_overlap, slugify, strip_keywords

logger = logging.getLogger(__name__)


DEFAULT_LIBRARY_PATH = Path(__file__).parent / "fallback_cards.yaml"
PLACEHOLDER = "{insight}"
UNTITLED_UNEXPECTED = "Wildcard Pathway"


def leading_insight(insights: list[Insight]) -> Optional[Insight]:
    """First interest, otherwise the first insight of any kind."""
    for insight in insights:
        if insight.kind == InsightKind.INTEREST:
            return insight
    return insights[0] if insights else None


def scrub_card(card: SuggestionCandidate, keywords: list[str]) -> SuggestionCandidate:
    """Copy of ``card`` with every word matching ``keywords`` removed."""
    def scrub_lines(lines: list[str]) -> list[str]:
        return [line for line in (strip_keywords(item, keywords) for item in lines) if line]

    return SuggestionCandidate(
        title=strip_keywords(card.title, keywords) or UNTITLED_UNEXPECTED,
        summary=strip_keywords(card.summary, keywords),
        why_it_fits=scrub_lines(card.why_it_fits),
        career_angles=scrub_lines(card.career_angles),
        next_steps=scrub_lines(card.next_steps),
        micro_experiments=scrub_lines(card.micro_experiments),
        neighbor_territories=scrub_lines(card.neighbor_territories),
    )


class FallbackLibrary:
    """Small fixed card library keyed off the user's leading insight."""

    def __init__(
        self,
        critic: Optional[CandidateCritic] = None,
        library_path: Path = DEFAULT_LIBRARY_PATH
    ):
        """
        Initialize fallback library.

        Args:
            critic: Critic used to skip entries that clash with accepted cards
            library_path: YAML file with one entry list per distance tier
        """
        self.critic = critic or CandidateCritic()
        self.entries = self._load(library_path)

    def _load(self, path: Path) -> dict[CardDistance, list[dict]]:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        entries = {}
        for distance in TIER_ORDER:
            tier_entries = data.get(distance.value) or []
            if not tier_entries:
                raise ValueError(f"Fallback library has no '{distance.value}' entries: {path}")
            entries[distance] = tier_entries

        logger.debug(f"Loaded fallback library from {path}")
        return entries

    def _render(self, entry: dict, insight_text: str) -> SuggestionCandidate:
        title_text = insight_text[:1].upper() + insight_text[1:]

        def fill(value: str, text: str) -> str:
            return value.replace(PLACEHOLDER, text).strip()

        return SuggestionCandidate(
            title=fill(entry.get("title", ""), title_text),
            summary=fill(entry.get("summary", ""), insight_text),
            why_it_fits=[fill(line, insight_text) for line in entry.get("why_it_fits", [])],
            career_angles=[fill(line, insight_text) for line in entry.get("career_angles", [])],
            next_steps=[fill(line, insight_text) for line in entry.get("next_steps", [])],
            micro_experiments=[fill(line, insight_text) for line in entry.get("micro_experiments", [])],
            neighbor_territories=[fill(line, insight_text) for line in entry.get("neighbor_territories", [])],
        )

    def build(
        self,
        distance: CardDistance,
        insights: list[Insight],
        accepted: list[SuggestionCandidate],
        avoid_titles: set[str],
        dominant: list[str]
    ) -> Suggestion:
        """
        Pick the fallback card for a tier.

        The starting entry is fixed by a hash of the leading insight text.
        Entries that the critic rejects against this run's cards are
        skipped. If every entry is rejected, the entry repeating the fewest
        dominant keywords is used; for the unexpected tier any dominant
        keywords it still repeats are cut from the card text.

        Args:
            distance: Tier to fill
            insights: Insights for this run, must not be empty
            accepted: Cards already accepted this run
            avoid_titles: Titles that must not repeat
            dominant: Dominant profile keywords, banned for the unexpected tier
        """
        insight = leading_insight(insights)
        insight_text = insight.value.strip() if insight else ""
        tier_entries = self.entries[distance]

        digest = hashlib.md5(insight_text.lower().encode("utf-8")).hexdigest()
        start = int(digest, 16) % len(tier_entries)

        chosen = None
        rendered = []
        for offset in range(len(tier_entries)):
            entry = tier_entries[(start + offset) % len(tier_entries)]
            candidate = self._render(entry, insight_text)
            review = self.critic.review(candidate, distance, accepted, avoid_titles, dominant)
            if review.decision == ReviewDecision.ACCEPT:
                chosen = candidate
                break
            rendered.append(candidate)

        if chosen is None:
            chosen = min(rendered, key=lambda card: len(keyword_overlap(card, dominant)))
            logger.warning(
                f"No {distance.value} fallback entry passed review; using '{chosen.title}'"
            )
            if distance == CardDistance.UNEXPECTED:
                overlap = keyword_overlap(chosen, dominant)
                if len(overlap) >= self.critic.overlap_threshold:
                    chosen = scrub_card(chosen, overlap)

        logger.warning(f"Using fallback {distance.value} card: {chosen.title}")
        return Suggestion(
            **chosen.model_dump(),
            id=f"fallback-{distance.value}-{slugify(chosen.title)}",
            distance=distance,
            score=TIER_SCORES[distance],
            confidence=Confidence.LOW,
            source="fallback",
        )
