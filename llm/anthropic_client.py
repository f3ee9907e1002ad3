"""Anthropic Messages API client."""

import os
import logging
from typing import Optional, List

from .base_client import BaseLLMClient, Message, LLMResponse

logger = logging.getLogger(__name__)


# Prefilled assistant turn that forces a JSON object reply
JSON_PREFILL = "{"


class AnthropicClient(BaseLLMClient):
    """
    Claude client over the official SDK.

    System messages are folded into the top-level ``system`` field. The
    Messages API has no JSON response format, so ``json_mode`` prefills the
    assistant turn with an opening brace and restores it on the reply.
    """

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 30.0
    ):
        """
        Args:
            api_key: Anthropic API key (falls back to ANTHROPIC_API_KEY env var)
            model: Model override (falls back to ANTHROPIC_MODEL, then the default)
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.model = model or os.environ.get("ANTHROPIC_MODEL") or self.DEFAULT_MODEL
        self.client = None

        if not self.api_key:
            logger.warning("No Anthropic API key provided")
            return

        import anthropic
        self.client = anthropic.Anthropic(api_key=self.api_key, timeout=timeout)
        logger.info(f"Anthropic client ready ({self.model})")

    @staticmethod
    def _split_system(messages: List[Message]) -> tuple[str, list[dict]]:
        system_parts = []
        turns = []
        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            else:
                turns.append({"role": msg.role, "content": msg.content})
        return "\n\n".join(system_parts), turns

    def chat(
        self,
        messages: List[Message],
        temperature: float = 0.7,
        max_tokens: int = 2000,
        json_mode: bool = False
    ) -> LLMResponse:
        if self.client is None:
            raise RuntimeError("Anthropic client not initialized. Check API key.")

        system, turns = self._split_system(messages)
        if json_mode:
            turns.append({"role": "assistant", "content": JSON_PREFILL})

        request = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": turns,
        }
        if system:
            request["system"] = system

        try:
            reply = self.client.messages.create(**request)
        except Exception as e:
            logger.error(f"Anthropic request failed ({self.model}): {e}")
            raise

        text = "".join(block.text for block in reply.content if block.type == "text")
        if json_mode:
            text = JSON_PREFILL + text

        usage = None
        if reply.usage is not None:
            usage = {
                "prompt_tokens": reply.usage.input_tokens,
                "completion_tokens": reply.usage.output_tokens,
                "total_tokens": reply.usage.input_tokens + reply.usage.output_tokens,
            }

        return LLMResponse(content=text, usage=usage, finish_reason=reply.stop_reason)

    def get_provider_name(self) -> str:
        return "anthropic"

    def get_model_name(self) -> str:
        return self.model
