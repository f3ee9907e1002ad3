"""Candidate critic: decides ACCEPT or REJECT for one suggestion card."""

from typing import Iterable

from schemas.suggestions import (
    CandidateReview,
    CardDistance,
    ReviewDecision,
    SuggestionCandidate,
)
from .keywords import card_keywords, keyword_overlap, similarity


class CandidateCritic:
    """Rule-based novelty and completeness checks for candidate cards."""

    def __init__(self, duplicate_threshold: float = 0.6, overlap_threshold: int = 2):
        """
        Initialize critic.

        Args:
            duplicate_threshold: Jaccard similarity treated as the same idea
            overlap_threshold: Banned keywords an unexpected card may not reach
        """
        self.duplicate_threshold = duplicate_threshold
        self.overlap_threshold = overlap_threshold

    def review(
        self,
        candidate: SuggestionCandidate,
        distance: CardDistance,
        accepted: Iterable[SuggestionCandidate],
        avoid_titles: Iterable[str],
        banned_keywords: Iterable[str] = ()
    ) -> CandidateReview:
        """
        Review a candidate against the cards accepted so far.

        Args:
            candidate: Card under review
            distance: Tier the card is meant for
            accepted: Cards already accepted this run
            avoid_titles: Titles that must not repeat, any case
            banned_keywords: Ban list, only enforced for the unexpected tier

        Returns:
            CandidateReview; on a keyword-overlap rejection ``banned_keywords``
            holds the candidate's own keywords to fold into the ban list
        """
        title = candidate.title.strip()
        if not title or not candidate.summary.strip():
            return CandidateReview(
                decision=ReviewDecision.REJECT,
                critique=["Card is missing a title or summary"],
            )

        avoided = {existing.strip().lower() for existing in avoid_titles}
        if title.lower() in avoided:
            return CandidateReview(
                decision=ReviewDecision.REJECT,
                critique=[f"Title '{title}' was already suggested"],
            )

        for card in accepted:
            score = similarity(candidate, card)
            if score >= self.duplicate_threshold:
                return CandidateReview(
                    decision=ReviewDecision.REJECT,
                    critique=[f"Near-duplicate of '{card.title}' (similarity {score:.2f})"],
                    similarity=score,
                )

        if distance == CardDistance.UNEXPECTED:
            overlap = keyword_overlap(candidate, banned_keywords)
            if len(overlap) >= self.overlap_threshold:
                return CandidateReview(
                    decision=ReviewDecision.REJECT,
                    critique=[
                        f"Unexpected card repeats profile keywords: {', '.join(overlap)}"
                    ],
                    banned_keywords=card_keywords(candidate),
                )

        return CandidateReview(decision=ReviewDecision.ACCEPT)
