"""LLM-based rubric evaluator with heuristic fallback."""

import json
import logging
from typing import Optional

from llm.base_client import BaseLLMClient, Message, strip_code_fences
from schemas.insights import Insight, Votes
from schemas.rubric import (
    ConversationRubric,
    EnergyLevel,
    EngagementStyle,
    ReadinessBias,
    RubricEvaluation,
)
from schemas.suggestions import Suggestion
from schemas.transcript import ConversationTurn
from .rubric import infer_rubric_from_transcript

logger = logging.getLogger(__name__)


MAX_TURNS = 12

RUBRIC_KEYS = {
    "engagement_style": "engagement_style",
    "engagementStyle": "engagement_style",
    "context_depth": "context_depth",
    "contextDepth": "context_depth",
    "energy_level": "energy_level",
    "energyLevel": "energy_level",
    "readiness_bias": "readiness_bias",
    "readinessBias": "readiness_bias",
    "explicit_ideas_request": "explicit_ideas_request",
    "explicitIdeasRequest": "explicit_ideas_request",
}


class LLMRubricEvaluator:
    """
    Grades the conversation with a chat model.

    Falls back to the transcript heuristic when no client is configured,
    when the transcript is empty, or when the model reply is unusable.
    """

    SYSTEM_PROMPT = """You evaluate a coaching conversation between a peer guide and a user exploring careers.

Grade the transcript and return a rubric with these fields:
- engagement_style: "leaning-in", "hesitant", "blocked" or "seeking-options"
- context_depth: integer 0-3
  - 0: pleasantries or single-word replies only
  - 1: basic interests without motivations or constraints
  - 2: at least one hope/goal OR constraint with specific detail
  - 3: rich story covering influences, aspirations, strengths and boundaries
- energy_level: "low", "medium" or "high"
- readiness_bias: "exploring", "seeking-options" or "deciding"
- explicit_ideas_request: true only if the user directly asks for ideas, options or suggestions

Favour accuracy over optimism: when aspirations or constraints are missing keep context_depth low.

## Response Format
Respond with valid JSON only:
{
  "rubric": {
    "engagement_style": "hesitant",
    "context_depth": 1,
    "energy_level": "medium",
    "readiness_bias": "exploring",
    "explicit_ideas_request": false
  },
  "reasoning": ["short bullet", "short bullet"]
}"""

    def __init__(self, llm_client: Optional[BaseLLMClient] = None):
        """
        Initialize rubric evaluator.

        Args:
            llm_client: Chat client; None means heuristic only
        """
        self.llm_client = llm_client

    def evaluate(
        self,
        turns: list[ConversationTurn],
        insights: list[Insight],
        suggestions: Optional[list[Suggestion]] = None,
        votes: Optional[Votes] = None
    ) -> RubricEvaluation:
        """
        Grade the conversation.

        Args:
            turns: Final turns, oldest first
            insights: Accumulated insights
            suggestions: Cards shown so far
            votes: Votes keyed by suggestion id

        Returns:
            RubricEvaluation carrying the rubric signals and reasoning
        """
        if not self.llm_client or not turns:
            return self._heuristic(turns)

        payload = {
            "turns": [
                {"role": turn.role.value, "text": turn.text.strip()}
                for turn in turns[-MAX_TURNS:]
            ],
            "insights": [
                {"kind": insight.kind.value, "value": insight.value}
                for insight in insights
            ],
            "suggestions": [
                {"id": suggestion.id, "title": suggestion.title}
                for suggestion in (suggestions or [])
            ],
            "votes": {key: int(vote) for key, vote in (votes or {}).items()},
        }

        messages = [
            Message(role="system", content=self.SYSTEM_PROMPT),
            Message(role="user", content=json.dumps(payload))
        ]

        try:
            response = self.llm_client.chat(
                messages=messages,
                temperature=0,
                max_tokens=300,
                json_mode=True
            )

            content = strip_code_fences(response.content)
            if not content:
                raise ValueError("Empty rubric response")

            parsed = json.loads(content)
            if not isinstance(parsed, dict) or "rubric" not in parsed:
                raise ValueError("Malformed rubric JSON")

            rubric = self._validate(self._normalise_keys(parsed["rubric"]))

            reasoning = []
            if isinstance(parsed.get("reasoning"), list):
                reasoning = [
                    item.strip() for item in parsed["reasoning"]
                    if isinstance(item, str) and item.strip()
                ]

            logger.info(
                f"Rubric evaluated: {rubric.engagement_style.value}, "
                f"depth {rubric.context_depth}, {rubric.readiness_bias.value}"
            )
            return RubricEvaluation(rubric=rubric, reasoning=reasoning, source="llm")

        except Exception as e:
            logger.warning(f"LLM rubric evaluation failed, using heuristic: {e}")
            return self._heuristic(turns)

    def _heuristic(self, turns: list[ConversationTurn]) -> RubricEvaluation:
        return RubricEvaluation(
            rubric=infer_rubric_from_transcript(turns),
            reasoning=["Heuristic estimate from recent user message length."],
            source="heuristic",
        )

    def _normalise_keys(self, raw) -> dict:
        if not isinstance(raw, dict):
            return {}
        result = {}
        for key, value in raw.items():
            target = RUBRIC_KEYS.get(key)
            if target and target not in result:
                result[target] = value
        return result

    def _validate(self, data: dict) -> ConversationRubric:
        """Strict field checks; raises ValueError on anything off-contract."""
        depth = data.get("context_depth")
        if isinstance(depth, bool) or depth not in (0, 1, 2, 3):
            raise ValueError(f"Invalid context_depth: {depth}")

        ideas_request = data.get("explicit_ideas_request")
        if not isinstance(ideas_request, bool):
            raise ValueError(f"Invalid explicit_ideas_request: {ideas_request}")

        return ConversationRubric(
            engagement_style=EngagementStyle(data.get("engagement_style")),
            context_depth=int(depth),
            energy_level=EnergyLevel(data.get("energy_level")),
            readiness_bias=ReadinessBias(data.get("readiness_bias")),
            explicit_ideas_request=ideas_request,
        )
