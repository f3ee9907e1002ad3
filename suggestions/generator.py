"""Candidate generator backed by the content-generation service."""

import json
import logging
import re
from typing import Any, Optional

from llm.base_client import BaseLLMClient, Message
from schemas.suggestions import CandidateRequest, CardDistance, SuggestionCandidate

logger = logging.getLogger(__name__)


CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

# Service field name -> card field name
CARD_FIELDS = {
    "why_it_fits": "why_it_fits",
    "pathways": "career_angles",
    "career_angles": "career_angles",
    "next_steps": "next_steps",
    "micro_experiments": "micro_experiments",
    "neighbor_tags": "neighbor_territories",
    "neighbor_territories": "neighbor_territories",
}

DISTANCE_GUIDANCE = {
    CardDistance.CORE: "core = deepens what they already build; stay anchored in their own words.",
    CardDistance.ADJACENT: (
        "adjacent = moves their current skills to a new audience, medium or business model "
        "and explicitly calls back to what they already do."
    ),
    CardDistance.UNEXPECTED: (
        "unexpected = bold crossover into a domain the user never mentioned; explain how "
        "their skills transfer. Do not use any word from banned_keywords."
    ),
}


class CandidateGenerator:
    """
    Requests one suggestion card per call.

    Unusable replies (empty, non-JSON, no card) come back as None.
    Client and transport errors propagate to the caller.
    """

    SYSTEM_PROMPT = """You generate one personalized career pathway card for a young person exploring what to do next.
Base the card only on the user profile, motivation summary and vote signals provided.

CRITICAL: Respond with ONLY valid JSON. No markdown, no code blocks, no explanations.

JSON FORMAT:
{
  "cards": [
    {
      "title": "Career Title",
      "summary": "One sentence description",
      "why_it_fits": ["reason 1", "reason 2"],
      "pathways": ["angle 1", "angle 2"],
      "next_steps": ["step 1", "step 2"],
      "micro_experiments": ["experiment 1", "experiment 2"],
      "neighbor_tags": ["tag1", "tag2"],
      "distance": "core"
    }
  ]
}

RULES:
- Return exactly one card with the requested distance.
- Never reuse a title from avoid_titles or repeat the idea of an accepted card.
- micro_experiments are small actions for the next 1-7 days.
- Keep every array to 3 items or fewer."""

    def __init__(self, llm_client: BaseLLMClient, temperature: float = 0.2):
        """
        Initialize candidate generator.

        Args:
            llm_client: Client for the content-generation service
            temperature: Sampling temperature
        """
        self.llm_client = llm_client
        self.temperature = temperature

    def build_user_content(self, request: CandidateRequest) -> dict:
        return {
            "user_profile": request.profile,
            "motivation_summary": request.motivation_summary,
            "positive_votes": request.liked_ids,
            "negative_votes": request.disliked_ids,
            "instructions": {
                "distance": request.distance.value,
                "distance_guidance": DISTANCE_GUIDANCE[request.distance],
                "must_avoid": request.disliked_ids,
                "avoid_titles": request.avoid_titles,
                "accepted_cards": [
                    {"title": card.title, "summary": card.summary}
                    for card in request.accepted
                ],
                "banned_keywords": request.banned_keywords,
            },
        }

    def request_candidate(self, request: CandidateRequest) -> Optional[SuggestionCandidate]:
        """
        Ask the service for one card at the requested distance.

        Args:
            request: Profile, votes and avoidance constraints for this attempt

        Returns:
            Parsed candidate, or None if the reply held no usable card
        """
        messages = [
            Message(role="system", content=self.SYSTEM_PROMPT),
            Message(role="user", content=json.dumps(self.build_user_content(request)))
        ]

        response = self.llm_client.chat(
            messages=messages,
            temperature=self.temperature,
            max_tokens=1200,
            json_mode=True
        )

        candidate = parse_candidate(response.content, request.distance)
        if candidate is None:
            logger.warning(
                f"Unusable {request.distance.value} candidate from "
                f"{self.llm_client.get_provider_name()}: {response.content[:200]!r}"
            )
        return candidate


def _clean_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _pick_card(parsed: Any, distance: CardDistance) -> Optional[dict]:
    if isinstance(parsed, dict) and isinstance(parsed.get("cards"), list):
        cards = [card for card in parsed["cards"] if isinstance(card, dict)]
        for card in cards:
            if str(card.get("distance", "")).lower() == distance.value:
                return card
        return cards[0] if cards else None

    if isinstance(parsed, dict):
        return parsed

    return None


def parse_candidate(content: str, distance: CardDistance) -> Optional[SuggestionCandidate]:
    """
    Parse a service reply into a card.

    Accepts ``{"cards": [...]}`` (the card tagged with ``distance`` wins,
    otherwise the first) or a bare card object, optionally inside a
    markdown code block.
    """
    content = (content or "").strip()
    match = CODE_BLOCK_PATTERN.search(content)
    if match:
        content = match.group(1).strip()

    if not content:
        return None

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        return None

    card = _pick_card(parsed, distance)
    if card is None:
        return None

    fields = {
        "title": card.get("title").strip() if isinstance(card.get("title"), str) else "",
        "summary": card.get("summary").strip() if isinstance(card.get("summary"), str) else "",
    }
    for source, target in CARD_FIELDS.items():
        if target not in fields or not fields[target]:
            fields[target] = _clean_list(card.get(source))

    return SuggestionCandidate(**fields)
