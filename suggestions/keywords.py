"""Tokenization, dominant keywords and Jaccard similarity for suggestion cards."""

import re
from collections import Counter
from typing import Iterable

from schemas.insights import Insight
from schemas.suggestions import SuggestionCandidate


STOPWORDS = frozenset([
    "the", "and", "for", "with", "that", "this", "from", "into", "about",
    "your", "their", "they", "you", "are", "our", "use", "using", "build",
    "based", "help", "guide", "create", "maker", "builder", "design",
    "designer", "consultant", "coach", "educator", "teacher", "content",
    "curator", "community", "connector", "ai", "poc", "proof", "concept",
    "business", "startup", "founder", "small", "medium", "enterprise", "sme",
    "tool", "tools", "voice",
])

MIN_TOKEN_LENGTH = 3
NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")


def tokenize(text: str) -> list[str]:
    """Lower-case, strip punctuation, drop short tokens and stopwords."""
    cleaned = NON_ALPHANUMERIC.sub(" ", (text or "").lower())
    return [
        token for token in cleaned.split()
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOPWORDS
    ]


def dominant_keywords(insights: Iterable[Insight], limit: int = 15) -> list[str]:
    """Most frequent tokens across all insight values; ties keep first-seen order."""
    counts = Counter()
    for insight in insights:
        counts.update(tokenize(insight.value))
    return [token for token, _ in counts.most_common(limit)]


def card_tokens(card: SuggestionCandidate) -> set[str]:
    """Token set over title, summary, why-it-fits and career angles."""
    tokens = set(tokenize(card.title))
    tokens.update(tokenize(card.summary))
    for line in card.why_it_fits:
        tokens.update(tokenize(line))
    for line in card.career_angles:
        tokens.update(tokenize(line))
    return tokens


def card_text_tokens(card: SuggestionCandidate) -> set[str]:
    """Every token the card says anywhere, used for keyword-overlap checks."""
    tokens = card_tokens(card)
    for field in (card.next_steps, card.micro_experiments, card.neighbor_territories):
        for line in field:
            tokens.update(tokenize(line))
    return tokens


def jaccard(a: set[str], b: set[str]) -> float:
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


def similarity(a: SuggestionCandidate, b: SuggestionCandidate) -> float:
    return jaccard(card_tokens(a), card_tokens(b))


def is_near_duplicate(
    a: SuggestionCandidate,
    b: SuggestionCandidate,
    threshold: float = 0.6
) -> bool:
    """Cards at or above the threshold count as the same idea."""
    return similarity(a, b) >= threshold


def keyword_overlap(card: SuggestionCandidate, keywords: Iterable[str]) -> list[str]:
    """Banned keywords the card repeats, in ban-list order."""
    tokens = card_text_tokens(card)
    return [keyword for keyword in keywords if keyword in tokens]


def card_keywords(card: SuggestionCandidate) -> list[str]:
    """Unique card tokens in reading order, for folding into a ban list."""
    ordered = []
    for line in [card.title, card.summary, *card.why_it_fits, *card.career_angles]:
        for token in tokenize(line):
            if token not in ordered:
                ordered.append(token)
    return ordered


def slugify(title: str, length: int = 32) -> str:
    return re.sub(r"\s+", "-", title.strip().lower())[:length]


def strip_keywords(text: str, keywords: Iterable[str]) -> str:
    """Drop every word of ``text`` that tokenizes to one of ``keywords``."""
    banned = set(keywords)
    kept = [word for word in text.split() if not banned.intersection(tokenize(word))]
    return " ".join(kept)
