"""LLM client abstraction layer."""

from .base_client import BaseLLMClient, Message, LLMResponse, strip_code_fences
from .factory import create_llm_client, LLMProvider

__all__ = [
    "BaseLLMClient",
    "Message",
    "LLMResponse",
    "strip_code_fences",
    "create_llm_client",
    "LLMProvider",
]
