"""
Unit tests for request models and body parsing.
"""

from __future__ import annotations

import pytest

from quizfoundry.core.errors import AppError
from quizfoundry.core.schemas import (
    CompleteOnboardingRequest,
    LoginRequest,
    PrototypeQuizRequest,
    QuizContext,
    SignupRequest,
    SubmitQuizRequest,
    UpdateQuizWithQuestionsRequest,
    UpdateUserRequest,
    envelope,
    parse_body,
)


def full_question(correct: int = 1, options: int = 3) -> dict:
    return {
        "question_text": "What is the largest planet?",
        "order_index": 0,
        "options": [
            {"option_text": f"Option {i}", "is_correct": i < correct, "order_index": i}
            for i in range(options)
        ],
    }


class TestParseBody:
    def test_messages_are_joined(self) -> None:
        with pytest.raises(AppError) as exc:
            parse_body(SignupRequest, {"email": "nope", "password": "123"})

        assert exc.value.status_code == 400
        assert exc.value.message == "Invalid email address; Password must be at least 6 characters"
        assert exc.value.details

    def test_fixed_message(self) -> None:
        with pytest.raises(AppError) as exc:
            parse_body(LoginRequest, {"email": "ada@example.com", "password": ""}, message="Invalid input data")
        assert exc.value.message == "Invalid input data"

    def test_prefix_and_separator(self) -> None:
        with pytest.raises(AppError) as exc:
            parse_body(UpdateUserRequest, {"name": "A", "avatar_url": "not a url"},
                       prefix="Invalid input: ", sep=", ")
        assert exc.value.message == "Invalid input: Name must be at least 2 characters, Invalid url"

    def test_missing_fields_name_the_field(self) -> None:
        with pytest.raises(AppError) as exc:
            parse_body(CompleteOnboardingRequest, {"name": "Ada"})
        assert exc.value.message == "role is required"

    def test_none_body_is_treated_as_empty(self) -> None:
        with pytest.raises(AppError) as exc:
            parse_body(CompleteOnboardingRequest, None)
        assert exc.value.message == "name is required; role is required"


class TestModels:
    def test_signup_lowercases_email(self) -> None:
        data = parse_body(SignupRequest, {"email": "Ada@Example.COM", "password": "secret123"})
        assert data.email == "ada@example.com"

    def test_prototype_accepts_camel_case(self) -> None:
        data = parse_body(PrototypeQuizRequest, {
            "prompt": "  The history of the printing press  ",
            "questionCount": 5,
            "optionsCount": 4,
            "difficulty": "hard",
        })
        assert data.prompt == "The history of the printing press"
        assert data.question_count == 5

    @pytest.mark.parametrize("count, message", [
        (2, "Must have at least 3 questions"),
        (21, "Cannot have more than 20 questions"),
    ])
    def test_prototype_question_bounds(self, count, message) -> None:
        with pytest.raises(AppError) as exc:
            parse_body(PrototypeQuizRequest, {
                "prompt": "The history of the printing press",
                "questionCount": count,
                "optionsCount": 4,
                "difficulty": "easy",
            })
        assert exc.value.message == message

    def test_unknown_difficulty(self) -> None:
        with pytest.raises(AppError) as exc:
            parse_body(PrototypeQuizRequest, {
                "prompt": "The history of the printing press",
                "questionCount": 5,
                "optionsCount": 4,
                "difficulty": "extreme",
            })
        assert exc.value.message == "Difficulty must be easy, medium, or hard"

    @pytest.mark.parametrize("correct, message", [
        (0, "Each question must have at least one correct answer"),
        (2, "Each question must have exactly one correct answer"),
    ])
    def test_full_questions_need_one_correct_option(self, correct, message) -> None:
        with pytest.raises(AppError) as exc:
            parse_body(UpdateQuizWithQuestionsRequest, {
                "title": "Planets",
                "difficulty": "easy",
                "questions": [full_question(correct=correct)],
            })
        assert exc.value.message == message

    def test_quiz_needs_questions_and_a_title(self) -> None:
        with pytest.raises(AppError) as exc:
            parse_body(UpdateQuizWithQuestionsRequest, {"title": "ab", "difficulty": "easy", "questions": []})
        assert exc.value.message == "Title must be at least 3 characters; Quiz must have at least 1 question"

    def test_bio_cannot_be_blank(self) -> None:
        with pytest.raises(AppError) as exc:
            parse_body(UpdateUserRequest, {"bio": "   "})
        assert exc.value.message == "Bio cannot contain only whitespace"
        assert parse_body(UpdateUserRequest, {"bio": ""}).bio == ""

    def test_submission_aliases(self) -> None:
        data = parse_body(SubmitQuizRequest, {"answers": [{"questionId": "q1", "optionId": "o1"}]})
        assert data.answers[0].question_id == "q1"
        assert data.answers[0].option_id == "o1"

    def test_context_dump_uses_field_names(self) -> None:
        context = parse_body(QuizContext, {
            "title": "Planets",
            "difficulty": "easy",
            "originalPrompt": "The solar system",
            "existingQuestions": [{"question_text": "Which planet is red?"}],
        })
        dumped = context.model_dump()
        assert dumped["original_prompt"] == "The solar system"
        assert dumped["existing_questions"][0]["options"] == []


class TestEnvelope:
    def test_message_is_optional(self) -> None:
        assert envelope({"a": 1}) == {"success": True, "data": {"a": 1}}
        assert envelope(None, "Done") == {"success": True, "data": None, "message": "Done"}
