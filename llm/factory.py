"""LLM client factory."""

from enum import Enum
from typing import Optional

from .base_client import BaseLLMClient
from .openai_client import OpenAIClient
from .anthropic_client import AnthropicClient
from .perplexity_client import PerplexityClient


class LLMProvider(str, Enum):
    """Chat providers the engine can talk to."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    PERPLEXITY = "perplexity"


CLIENT_CLASSES = {
    LLMProvider.OPENAI: OpenAIClient,
    LLMProvider.ANTHROPIC: AnthropicClient,
    LLMProvider.PERPLEXITY: PerplexityClient,
}


def create_llm_client(
    provider: LLMProvider,
    api_key: Optional[str] = None,
    model: Optional[str] = None
) -> BaseLLMClient:
    """
    Build a chat client for ``provider``.

    Rubric grading and card generation can point at different providers,
    so this is called once per role with that role's key and model.

    Raises:
        ValueError: If provider is not supported
    """
    client_class = CLIENT_CLASSES.get(LLMProvider(provider))
    if client_class is None:
        raise ValueError(f"Unsupported LLM provider: {provider}")
    return client_class(api_key=api_key, model=model)
