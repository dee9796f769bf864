"""
Unit tests for the quiz content reviewer.
"""

from __future__ import annotations

import json

import pytest

from quizfoundry.core import openai_validator
from quizfoundry.core.errors import AppError

QUIZ = {
    "title": "Planets",
    "description": "The solar system",
    "questions": [{"question_text": "Which planet is red?", "options": [{"option_text": "Mars"}]}],
}


@pytest.fixture
def reviewer(monkeypatch):
    """Answer review requests with the given text and record the prompts."""
    prompts_seen = []

    def _install(reply: str):
        def fake(user_prompt, api_key=None, model=None):
            prompts_seen.append(user_prompt)
            return reply

        monkeypatch.setattr(openai_validator, "_ask_validator", fake)
        return prompts_seen

    return _install


class TestValidateQuizContent:
    def test_approved(self, reviewer) -> None:
        seen = reviewer(json.dumps({"isApproved": True, "reasoning": "Fine", "confidence": 90, "concerns": []}))

        result = openai_validator.validate_quiz_content(QUIZ)

        assert result == {"is_approved": True, "reasoning": "Fine", "confidence": 90, "concerns": []}
        assert "Which planet is red?" in seen[0]

    def test_fenced_response(self, reviewer) -> None:
        body = json.dumps({"isApproved": False, "reasoning": "Spam", "confidence": 70, "concerns": ["spam"]})
        reviewer(f"```json\n{body}\n```")

        result = openai_validator.validate_quiz_content(QUIZ)

        assert not result["is_approved"]
        assert result["concerns"] == ["spam"]

    def test_unparseable_response_is_a_rejection(self, reviewer) -> None:
        reviewer("Looks good to me!")

        assert openai_validator.validate_quiz_content(QUIZ) == {
            "is_approved": False,
            "reasoning": "Content validation failed - unable to parse response",
            "confidence": 0,
            "concerns": ["Unable to validate content safety"],
        }

    def test_values_are_coerced(self, reviewer) -> None:
        reviewer(json.dumps({"isApproved": "yes", "confidence": 250, "concerns": "too short"}))

        result = openai_validator.validate_quiz_content(QUIZ)

        assert result["is_approved"] is False
        assert result["confidence"] == 100
        assert result["concerns"] == ["too short"]
        assert result["reasoning"] == "No reasoning provided"


class TestHelpers:
    def test_rejection_message(self) -> None:
        message = openai_validator.rejection_message(
            {"reasoning": "Offensive content", "concerns": ["slur in question 2", "spam"]}
        )
        assert message == (
            "Quiz content was rejected: Offensive content Specific concerns: slur in question 2, spam"
        )
        assert openai_validator.rejection_message({"reasoning": "Spam", "concerns": []}) == (
            "Quiz content was rejected: Spam"
        )

    def test_missing_api_key(self, monkeypatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(AppError) as exc:
            openai_validator.configure_openai(None)
        assert exc.value.message == "OpenAI API key is not configured"
