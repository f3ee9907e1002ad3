"""Perplexity chat completions client over plain HTTP."""

import os
import logging
from typing import Optional, List

import requests

from .base_client import BaseLLMClient, Message, LLMResponse

logger = logging.getLogger(__name__)


class PerplexityClient(BaseLLMClient):
    """
    Perplexity Sonar client.

    Perplexity exposes an OpenAI-shaped chat completions endpoint, so this
    client speaks to it with requests instead of pulling in another SDK.
    """

    DEFAULT_MODEL = "sonar"
    BASE_URL = "https://api.perplexity.ai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: int = 30,
        base_url: Optional[str] = None
    ):
        """
        Initialize Perplexity client.

        Args:
            api_key: Perplexity API key (falls back to PERPLEXITY_API_KEY env var)
            model: Model to use (default: sonar)
            timeout: Request timeout in seconds
            base_url: Override for the API base URL
        """
        self.api_key = api_key or os.environ.get("PERPLEXITY_API_KEY")
        self.model = model or self.DEFAULT_MODEL
        self.timeout = timeout
        self.base_url = (base_url or self.BASE_URL).rstrip('/')

        if self.api_key:
            logger.info(f"Perplexity client initialized with model: {self.model}")
        else:
            logger.warning("No Perplexity API key provided")

    def _get_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def chat(
        self,
        messages: List[Message],
        temperature: float = 0.7,
        max_tokens: int = 2000,
        json_mode: bool = False
    ) -> LLMResponse:
        """Send chat completion request to Perplexity."""
        if not self.api_key:
            raise RuntimeError("Perplexity client not initialized. Check API key.")

        # json_mode is advisory here; prompts already demand raw JSON
        body = {
            "model": self.model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
        }

        response = requests.post(
            f"{self.base_url}/chat/completions",
            json=body,
            headers=self._get_headers(),
            timeout=self.timeout
        )

        if response.status_code != 200:
            logger.error(f"Perplexity API error ({response.status_code}): {response.text[:500]}")
            raise RuntimeError(
                response.text or f"Perplexity request failed with {response.status_code}"
            )

        data = response.json()
        choices = data.get("choices") or [{}]
        choice = choices[0]
        content = (choice.get("message") or {}).get("content") or ""

        usage = None
        if isinstance(data.get("usage"), dict):
            usage = {
                key: value for key, value in data["usage"].items()
                if isinstance(value, int)
            }

        return LLMResponse(
            content=content,
            usage=usage,
            finish_reason=choice.get("finish_reason")
        )

    def get_provider_name(self) -> str:
        """Get the provider name."""
        return "perplexity"

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model
