"""Tests for tokenization, dominant keywords and card similarity."""

from schemas.insights import Insight, InsightKind
from schemas.suggestions import SuggestionCandidate
from suggestions.keywords import (
    card_keywords,
    dominant_keywords,
    is_near_duplicate,
    jaccard,
    keyword_overlap,
    similarity,
    slugify,
    strip_keywords,
    tokenize,
)


class TestTokenize:
    """Test token cleanup."""

    def test_drops_short_tokens_and_stopwords(self):
        """Test punctuation, short tokens and stopwords are removed."""
        assert tokenize("I'd love AI tools, and rugby!") == ["love", "rugby"]

    def test_empty_text(self):
        """Test empty input gives no tokens."""
        assert tokenize("") == []
        assert tokenize(None) == []


class TestDominantKeywords:
    """Test keyword frequency ranking."""

    def test_most_frequent_first(self):
        """Test ranking by frequency with first-seen tie order."""
        insights = [
            Insight(kind=InsightKind.INTEREST, value="rugby"),
            Insight(kind=InsightKind.STRENGTH, value="coaching kids at rugby"),
            Insight(kind=InsightKind.GOAL, value="coaching professionally"),
        ]
        assert dominant_keywords(insights) == ["rugby", "coaching", "kids", "professionally"]

    def test_limit(self):
        """Test the keyword list is capped."""
        insights = [Insight(kind=InsightKind.INTEREST, value="alpha bravo charlie delta")]
        assert dominant_keywords(insights, limit=2) == ["alpha", "bravo"]


class TestSimilarity:
    """Test Jaccard similarity between cards."""

    def test_jaccard_edges(self):
        """Test empty and identical sets."""
        assert jaccard(set(), set()) == 0.0
        assert jaccard({"a"}, {"a"}) == 1.0

    def test_identical_cards_are_duplicates(self):
        """Test a card is a near-duplicate of itself."""
        card = SuggestionCandidate(title="Youth Rugby Assistant", summary="Run junior training.")
        assert similarity(card, card) == 1.0
        assert is_near_duplicate(card, card)

    def test_distinct_cards_are_not_duplicates(self):
        """Test unrelated cards fall below the threshold."""
        a = SuggestionCandidate(title="Youth Rugby Assistant", summary="Run junior training.")
        b = SuggestionCandidate(title="Urban Farming Technician", summary="Grow food in cities.")
        assert not is_near_duplicate(a, b)

    def test_threshold_is_inclusive(self):
        """Test similarity exactly at the threshold counts as duplicate."""
        a = SuggestionCandidate(title="alpha bravo charlie", summary="")
        b = SuggestionCandidate(title="alpha bravo delta", summary="")
        assert similarity(a, b) == 0.5
        assert is_near_duplicate(a, b, threshold=0.5)


class TestCardKeywords:
    """Test keyword overlap and extraction."""

    def test_overlap_covers_all_card_text(self):
        """Test next steps and neighbor territories count toward overlap."""
        card = SuggestionCandidate(
            title="Museum Exhibit Assistant",
            summary="Guide visitors through collections.",
            next_steps=["Ask a rugby club about its history."],
        )
        assert keyword_overlap(card, ["rugby", "coaching", "museum"]) == ["rugby", "museum"]

    def test_card_keywords_ordered_unique(self):
        """Test reading order and uniqueness."""
        card = SuggestionCandidate(title="Camp Host", summary="Host a summer camp.")
        assert card_keywords(card) == ["camp", "host", "summer"]

    def test_slugify(self):
        """Test slug lower-cases, hyphenates and truncates."""
        assert slugify("  Youth Rugby  Assistant ") == "youth-rugby-assistant"
        assert len(slugify("x" * 50)) == 32

    def test_strip_keywords(self):
        """Test words matching banned keywords are cut, punctuation included."""
        text = "Set up live-sound desks so Live shows sound great."
        stripped = strip_keywords(text, ["live", "sound"])

        assert stripped == "Set up desks so shows great."
        assert not {"live", "sound"} & set(tokenize(stripped))
