"""Shared pytest fixtures for the test suite.

Fixture overview
----------------
settings          - Settings for an in-memory, development-mode app
store             - a fresh MemoryStore
app / client      - the FastAPI app built on that store and a TestClient for it
register          - helper that signs a user up and returns (user, auth headers)
member            - a registered user who has completed onboarding
fake_ai           - replaces the chat-completion call with canned responses
content_review    - turns content review on and answers it with a configurable verdict
"""

from __future__ import annotations

import json
import os
from types import SimpleNamespace

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

import pytest
from fastapi.testclient import TestClient

from quizfoundry.app import create_app
from quizfoundry.core import openai_qg, openai_validator
from quizfoundry.core.config import Settings
from quizfoundry.core.store import MemoryStore
from quizfoundry.services.quiz_service import load_questions


# ── App & client ─────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    return Settings(secret_key="test-secret-key", bypass_checks=True)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def app(settings, store):
    return create_app(settings=settings, store=store)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


# ── Users ────────────────────────────────────────────────────────────────────


@pytest.fixture
def register(client):
    """Sign up a user and return (user, headers) for authenticated calls."""
    counter = {"n": 0}

    def _register(email: str | None = None, password: str = "secret123", name: str = "Ada"):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        resp = client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        return data["user"], {"Authorization": f"Bearer {data['session']['access_token']}"}

    return _register


@pytest.fixture
def onboard(client):
    def _onboard(headers, name: str = "Ada Lovelace", role: str = "student"):
        resp = client.post("/api/onboarding/complete", json={"name": name, "role": role}, headers=headers)
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]["user"]

    return _onboard


@pytest.fixture
def member(register, onboard):
    """A user who has completed onboarding: (user, headers)."""
    user, headers = register()
    return onboard(headers), headers


# ── AI boundary ──────────────────────────────────────────────────────────────


def quiz_payload(questions: int = 5, options: int = 4, title: str = "The Solar System Quiz") -> dict:
    return {
        "title": title,
        "description": "Planets, moons and the sun.",
        "questions": [
            {
                "question_text": f"Which planet is number {q + 1} from the sun?",
                "options": [
                    {"option_text": f"Planet {q}-{o}", "is_correct": o == 0}
                    for o in range(options)
                ],
            }
            for q in range(questions)
        ],
    }


class FakeAI:
    """Records every completion request and answers from a queue (last reply repeats)."""

    def __init__(self):
        self.replies: list = [json.dumps(quiz_payload())]
        self.calls: list = []

    def reply_with(self, *replies) -> None:
        self.replies = [r if isinstance(r, (str, Exception)) else json.dumps(r) for r in replies]

    async def __call__(self, system: str, user: str, temperature: float = 0.7) -> str:
        self.calls.append({"system": system, "user": user, "temperature": temperature})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def fake_ai(monkeypatch) -> FakeAI:
    fake = FakeAI()
    monkeypatch.setattr(openai_qg, "_complete", fake)
    monkeypatch.setattr(openai_qg, "RETRY_DELAY_SECONDS", 0)
    return fake


# ── Quiz helpers ─────────────────────────────────────────────────────────────


def manual_quiz_body(title: str = "Planets of the Solar System", questions: int = 2,
                     is_public: bool = True) -> dict:
    return {
        "title": title,
        "description": "Order of the planets.",
        "difficulty": "easy",
        "is_public": is_public,
        "questions": [
            {
                "question_text": f"Which planet is number {i + 1} from the sun?",
                "order_index": i,
                "options": [
                    {"option_text": "Mercury", "is_correct": True, "order_index": 0},
                    {"option_text": "Venus", "is_correct": False, "order_index": 1},
                ],
            }
            for i in range(questions)
        ],
    }


def correct_answers(store, quiz_id: str) -> list:
    return [
        {"questionId": q["id"], "optionId": next(o["id"] for o in q["options"] if o["is_correct"])}
        for q in load_questions(store, [quiz_id])[quiz_id]
    ]


@pytest.fixture
def content_review(app, monkeypatch):
    """Enable review of public content; edit ``.verdict`` to change the answer."""
    app.state.settings = Settings(secret_key="test-secret-key")
    review = SimpleNamespace(
        calls=[],
        verdict={"isApproved": True, "reasoning": "Looks fine", "confidence": 90, "concerns": []},
    )

    def fake(user_prompt, api_key=None, model=None):
        review.calls.append(user_prompt)
        return json.dumps(review.verdict)

    monkeypatch.setattr(openai_validator, "_ask_validator", fake)
    return review
