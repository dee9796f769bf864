"""
Route tests for creator, participant, per-quiz and overview analytics.
"""

from __future__ import annotations

import uuid

from conftest import correct_answers, manual_quiz_body


def publish(client, headers, title: str = "Planets of the Solar System") -> dict:
    resp = client.post("/api/manual-quizzes/publish", json=manual_quiz_body(title=title), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["quiz"]


def take(client, store, headers, quiz_id: str) -> dict:
    resp = client.post(f"/api/quizzes/{quiz_id}/submit", json={"answers": correct_answers(store, quiz_id)},
                       headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


class TestQuizAnalytics:
    def test_owner_sees_attempts(self, client, member, register, onboard, store) -> None:
        _, owner = member
        quiz = publish(client, owner)
        _, player = register()
        onboard(player, name="Grace Hopper")
        take(client, store, player, quiz["id"])

        resp = client.get(f"/api/analytics/quiz/{quiz['id']}", headers=owner)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["overview"]["totalAttempts"] == 1
        assert data["overview"]["averageScore"] == 100.0
        assert data["engagement"]["topPerformers"][0]["userName"] == "Grace Hopper"
        assert [q["correctRate"] for q in data["questions"]] == [100.0, 100.0]

    def test_invalid_id(self, client, member) -> None:
        _, headers = member
        resp = client.get("/api/analytics/quiz/not-a-uuid", headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid quiz ID format"

    def test_someone_elses_quiz(self, client, member, register, onboard) -> None:
        _, owner = member
        quiz = publish(client, owner)
        _, other = register()
        onboard(other)

        resp = client.get(f"/api/analytics/quiz/{quiz['id']}", headers=other)

        assert resp.status_code == 404
        assert resp.json()["error"] == "Quiz not found or access denied"

    def test_unknown_quiz(self, client, member) -> None:
        _, headers = member
        assert client.get(f"/api/analytics/quiz/{uuid.uuid4()}", headers=headers).status_code == 404


class TestUserAnalytics:
    def test_creator(self, client, member, store) -> None:
        _, headers = member
        quiz = publish(client, headers)
        publish(client, headers, title="Moons of Jupiter")
        take(client, store, headers, quiz["id"])

        data = client.get("/api/analytics/creator", headers=headers).json()["data"]

        assert data["overview"]["totalQuizzes"] == 2
        assert data["overview"]["totalAttempts"] == 1
        assert data["overview"]["totalQuestions"] == 4
        assert data["breakdown"]["byType"]["humanCreated"]["count"] == 2

    def test_creator_without_quizzes(self, client, member) -> None:
        _, headers = member
        data = client.get("/api/analytics/creator", headers=headers).json()["data"]
        assert data["overview"]["totalQuizzes"] == 0

    def test_participant(self, client, member, store) -> None:
        _, headers = member
        quiz = publish(client, headers)
        take(client, store, headers, quiz["id"])
        take(client, store, headers, quiz["id"])

        data = client.get("/api/analytics/participant", headers=headers).json()["data"]

        assert data["overview"]["totalAttempts"] == 2
        assert data["overview"]["uniqueQuizzes"] == 1
        assert data["achievements"]["perfectScores"] == 2
        assert data["recentAttempts"][0]["creatorName"] == "Ada Lovelace"
        assert data["engagement"]["streaks"]["currentStreak"] == 1

    def test_participant_without_attempts(self, client, member) -> None:
        _, headers = member
        data = client.get("/api/analytics/participant", headers=headers).json()["data"]
        assert data["overview"]["totalAttempts"] == 0
        assert data["recentAttempts"] == []

    def test_overview(self, client, member, register, onboard, store) -> None:
        _, owner = member
        quiz = publish(client, owner)
        take(client, store, owner, quiz["id"])
        _, player = register()
        onboard(player)
        take(client, store, player, quiz["id"])

        data = client.get("/api/analytics/overview", headers=owner).json()["data"]

        assert data == {
            "quizzesCreated": 1,
            "quizzesAttempted": 1,
            "averageScore": 100.0,
            "totalParticipants": 2,
        }
