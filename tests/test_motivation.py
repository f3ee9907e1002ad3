"""Tests for the motivation summarizer."""

import pytest
from unittest.mock import Mock

from llm.base_client import LLMResponse
from schemas.insights import Insight, InsightKind
from suggestions.motivation import MotivationSummarizer


class TestMotivationSummarizer:
    """Test the pre-generation motivation pass."""

    def setup_method(self):
        """Set up test fixtures."""
        self.mock_llm = Mock()
        self.summarizer = MotivationSummarizer(llm_client=self.mock_llm)

    def test_summarizes_leading_insights(self):
        """Test only the first 18 insights are sent, at low temperature."""
        self.mock_llm.chat.return_value = LLMResponse(content="  - Loves team sport\n- Patient  ")
        insights = [Insight(kind=InsightKind.INTEREST, value=f"hobby {i}") for i in range(25)]

        summary = self.summarizer.summarize(insights)

        assert summary == "- Loves team sport\n- Patient"
        call_args = self.mock_llm.chat.call_args
        assert call_args[1]["temperature"] == 0.1
        messages = call_args[1]["messages"]
        assert messages[0].role == "system"
        lines = messages[1].content.split("\n")
        assert len(lines) == 18
        assert lines[0] == "interest: hobby 0"
        assert lines[-1] == "interest: hobby 17"

    def test_no_insights(self):
        """Test nothing is requested without insights."""
        assert self.summarizer.summarize([]) is None
        self.mock_llm.chat.assert_not_called()

    def test_empty_reply(self):
        """Test a blank reply means no summary."""
        self.mock_llm.chat.return_value = LLMResponse(content="   ")
        insights = [Insight(kind=InsightKind.GOAL, value="work outdoors")]

        assert self.summarizer.summarize(insights) is None

    def test_client_errors_propagate(self):
        """Test client failures are left to the caller."""
        self.mock_llm.chat.side_effect = RuntimeError("Rate limit exceeded")
        insights = [Insight(kind=InsightKind.GOAL, value="work outdoors")]

        with pytest.raises(RuntimeError):
            self.summarizer.summarize(insights)
