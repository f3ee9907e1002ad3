"""OpenAI chat completions client."""

import os
import logging
from typing import Optional, List

from .base_client import BaseLLMClient, Message, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIClient(BaseLLMClient):
    """
    Chat completions over the official SDK.

    Used for rubric grading; ``json_mode`` maps onto the native
    ``response_format`` so replies parse without fence stripping.
    """

    DEFAULT_MODEL = "gpt-4.1-mini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 30.0
    ):
        """
        Args:
            api_key: OpenAI API key (falls back to OPENAI_API_KEY env var)
            model: Model override (falls back to OPENAI_MODEL, then gpt-4.1-mini)
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model or os.environ.get("OPENAI_MODEL") or self.DEFAULT_MODEL
        self.client = None

        if not self.api_key:
            logger.warning("No OpenAI API key provided")
            return

        from openai import OpenAI
        self.client = OpenAI(api_key=self.api_key, timeout=timeout)
        logger.info(f"OpenAI client ready ({self.model})")

    def _build_request(
        self,
        messages: List[Message],
        temperature: float,
        max_tokens: int,
        json_mode: bool
    ) -> dict:
        request = {
            "model": self.model,
            "messages": [msg.model_dump() for msg in messages],
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}
        return request

    def chat(
        self,
        messages: List[Message],
        temperature: float = 0.7,
        max_tokens: int = 2000,
        json_mode: bool = False
    ) -> LLMResponse:
        if self.client is None:
            raise RuntimeError("OpenAI client not initialized. Check API key.")

        try:
            completion = self.client.chat.completions.create(
                **self._build_request(messages, temperature, max_tokens, json_mode)
            )
        except Exception as e:
            logger.error(f"OpenAI request failed ({self.model}): {e}")
            raise

        choice = completion.choices[0]
        usage = None
        if completion.usage is not None:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }

        return LLMResponse(
            content=choice.message.content or "",
            usage=usage,
            finish_reason=choice.finish_reason
        )

    def get_provider_name(self) -> str:
        return "openai"

    def get_model_name(self) -> str:
        return self.model
