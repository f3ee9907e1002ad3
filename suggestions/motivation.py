"""LLM pass that condenses raw insights into a short motivation profile."""

import logging
from typing import Optional

from llm.base_client import BaseLLMClient, Message
from schemas.insights import Insight

logger = logging.getLogger(__name__)


MAX_INSIGHTS = 18


class MotivationSummarizer:
    """
    Summarizes what drives the user before card generation.

    The summary is optional context for the card generator; callers treat
    any failure here as "no summary".
    """

    SYSTEM_PROMPT = """You turn raw conversation notes into a short motivation profile.
Summarize the user's drivers, preferred working style, constraints and delights.
Stay factual and use only the statements provided. Keep to 3-4 bullet points."""

    def __init__(
        self,
        llm_client: BaseLLMClient,
        temperature: float = 0.1,
        max_insights: int = MAX_INSIGHTS
    ):
        """
        Initialize motivation summarizer.

        Args:
            llm_client: Chat client (the rubric provider)
            temperature: Sampling temperature, kept low for factual output
            max_insights: Only the first N insights are summarized
        """
        self.llm_client = llm_client
        self.temperature = temperature
        self.max_insights = max_insights

    def summarize(self, insights: list[Insight]) -> Optional[str]:
        """
        Summarize the leading insights.

        Returns:
            Bullet-point summary, or None when there is nothing to summarize
            or the reply is empty. Client errors propagate.
        """
        snapshot = [
            f"{insight.kind.value}: {insight.value}"
            for insight in insights[:self.max_insights]
        ]
        if not snapshot:
            return None

        messages = [
            Message(role="system", content=self.SYSTEM_PROMPT),
            Message(role="user", content="\n".join(snapshot))
        ]
        response = self.llm_client.chat(
            messages=messages,
            temperature=self.temperature,
            max_tokens=400
        )

        summary = response.content.strip()
        if not summary:
            logger.warning("Motivation summary came back empty")
            return None

        logger.debug(f"Motivation summary from {len(snapshot)} insights: {summary[:200]!r}")
        return summary
