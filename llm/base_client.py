"""Chat client interface shared by the rubric evaluator and card generator."""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict
from pydantic import BaseModel


class Message(BaseModel):
    role: str  # "system", "user" or "assistant"
    content: str


class LLMResponse(BaseModel):
    """Text reply plus provider bookkeeping."""
    content: str
    usage: Optional[Dict[str, int]] = None
    finish_reason: Optional[str] = None


class BaseLLMClient(ABC):
    """
    Minimal chat-completion surface.

    Implementations raise RuntimeError when used without credentials and
    let provider errors propagate; callers decide whether to fall back.
    """

    @abstractmethod
    def chat(
        self,
        messages: List[Message],
        temperature: float = 0.7,
        max_tokens: int = 2000,
        json_mode: bool = False
    ) -> LLMResponse:
        """
        Run one completion.

        Args:
            messages: Conversation, system prompt first
            temperature: Sampling temperature (0-1)
            max_tokens: Cap on reply length
            json_mode: Ask for a single JSON object where the provider supports it

        Returns:
            LLMResponse with the reply text
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        pass


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code block from a model reply."""
    content = content.strip()
    if content.startswith("```"):
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
        content = content.strip()
    return content
