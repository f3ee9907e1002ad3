"""Suggestion engine errors."""


class SuggestionConfigurationError(RuntimeError):
    """No content-generation credential or client is configured."""
