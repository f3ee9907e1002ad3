"""Application settings."""

import os
from typing import Optional
from pydantic import BaseModel


class Settings(BaseModel):
    """Engine configuration settings."""

    # LLM provider used for rubric evaluation
    llm_provider: str = "openai"  # "openai", "anthropic" or "perplexity"
    llm_model: Optional[str] = None

    # Content-generation service used for suggestion cards
    content_provider: str = "perplexity"
    content_model: Optional[str] = None

    # API Keys
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    perplexity_api_key: Optional[str] = None

    # Realtime session settings
    realtime_model: str = "gpt-realtime"
    realtime_voice: str = "alloy"
    realtime_base_url: str = "https://api.openai.com/v1/realtime"
    transcription_model: str = "whisper-1"
    http_timeout: int = 15
    acknowledgment_timeout: float = 5.0  # Caller-side deadline, the session never times out itself

    # Suggestion settings
    suggestion_limit: int = 3
    core_attempts: int = 3
    adjacent_attempts: int = 3
    unexpected_attempts: int = 5
    duplicate_threshold: float = 0.6
    keyword_overlap_threshold: int = 2
    dominant_keyword_count: int = 15
    motivation_summary_enabled: bool = True  # Runs on the rubric provider
    motivation_insight_limit: int = 18

    # Rubric settings
    rubric_llm_enabled: bool = True

    # Logging
    verbose: bool = False

    def __init__(self, **data):
        # Auto-load API keys from environment if not provided
        for field, env_var in (
            ("openai_api_key", "OPENAI_API_KEY"),
            ("anthropic_api_key", "ANTHROPIC_API_KEY"),
            ("perplexity_api_key", "PERPLEXITY_API_KEY"),
        ):
            if data.get(field) is None:
                data[field] = os.environ.get(env_var)

        if "realtime_model" not in data and os.environ.get("OPENAI_REALTIME_MODEL"):
            data["realtime_model"] = os.environ["OPENAI_REALTIME_MODEL"]

        super().__init__(**data)

    def _key_for(self, provider: str) -> Optional[str]:
        if provider == "openai":
            return self.openai_api_key
        elif provider == "anthropic":
            return self.anthropic_api_key
        elif provider == "perplexity":
            return self.perplexity_api_key
        return None

    def get_llm_api_key(self) -> Optional[str]:
        """Get the API key for the configured rubric LLM provider."""
        return self._key_for(self.llm_provider)

    def get_content_api_key(self) -> Optional[str]:
        """Get the API key for the configured content-generation provider."""
        return self._key_for(self.content_provider)

    def attempts_for(self, distance: str) -> int:
        """Retry budget for a suggestion distance tier."""
        return {
            "core": self.core_attempts,
            "adjacent": self.adjacent_attempts,
            "unexpected": self.unexpected_attempts,
        }[distance]
