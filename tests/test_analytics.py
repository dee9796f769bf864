"""
Unit tests for the analytics aggregations.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quizfoundry.core import analytics

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def ago(**delta) -> str:
    return (NOW - timedelta(**delta)).isoformat()


class TestHelpers:
    def test_score_distribution(self) -> None:
        buckets = analytics.score_distribution([10, 20, 21, 55, 100])

        assert [b["count"] for b in buckets] == [2, 1, 1, 0, 1]
        assert buckets[0] == {"range": "0-20%", "count": 2, "percentage": 40.0}
        assert buckets[3]["percentage"] == 0.0

    def test_empty_distribution(self) -> None:
        assert all(b["count"] == 0 and b["percentage"] == 0 for b in analytics.score_distribution([]))

    def test_recent_activity(self) -> None:
        activity = analytics.recent_activity([ago(hours=1), ago(days=3), ago(days=20), ago(days=40)], NOW)
        assert activity == {"last24Hours": 1, "last7Days": 2, "last30Days": 3}

    def test_last_days(self) -> None:
        days = analytics.last_days(NOW)
        assert len(days) == 30
        assert days[0] == "2024-05-17"
        assert days[-1] == "2024-06-15"


class TestStreaks:
    def test_gap_of_two_days_keeps_streak(self) -> None:
        result = analytics.streaks(["2024-01-01", "2024-01-03", "2024-01-04", "2024-01-10"], "2024-01-11")
        assert result == {"currentStreak": 1, "longestStreak": 3}

    def test_current_streak_needs_recent_activity(self) -> None:
        result = analytics.streaks(["2024-01-01", "2024-01-02"], "2024-01-05")
        assert result == {"currentStreak": 0, "longestStreak": 2}

    def test_no_activity(self) -> None:
        assert analytics.streaks([], "2024-01-05") == {"currentStreak": 0, "longestStreak": 0}


class TestQuizAnalytics:
    def test_single_question(self) -> None:
        quiz = {"id": "quiz", "difficulty": "medium"}
        questions = [{
            "id": "q1",
            "question_text": "Which planet is red?",
            "order_index": 0,
            "options": [
                {"id": "o1", "option_text": "Mars", "is_correct": True},
                {"id": "o2", "option_text": "Venus", "is_correct": False},
            ],
        }]
        attempts = [
            {"id": "a1", "user_id": "u1", "score": 1, "percentage": 100, "completed_at": ago(hours=1)},
            {"id": "a2", "user_id": "u2", "score": 0, "percentage": 0, "completed_at": ago(days=2)},
        ]
        answers = [
            {"attempt_id": "a1", "question_id": "q1", "selected_option_id": "o1", "is_correct": True},
            {"attempt_id": "a2", "question_id": "q1", "selected_option_id": "o2", "is_correct": False},
        ]
        profiles = {"u1": {"name": "Ada", "avatar_url": None}}

        result = analytics.quiz_analytics(quiz, questions, attempts, answers, profiles, NOW)

        assert result["overview"]["totalAttempts"] == 2
        assert result["overview"]["uniqueUsers"] == 2
        assert result["overview"]["averageScore"] == 50.0
        assert result["overview"]["highestScore"] == 100
        assert result["overview"]["lowestScore"] == 0

        stats = result["questions"][0]
        assert stats["correctRate"] == 50.0
        assert stats["difficulty"] == "medium"
        assert [o["selectedCount"] for o in stats["optionAnalysis"]] == [1, 1]
        assert result["performance"]["difficultyRating"] == {"perceived": "medium", "actualDifficulty": 3}

        top = result["engagement"]["topPerformers"]
        assert top[0]["userName"] == "Ada"
        assert top[1]["userName"] is None
        assert result["engagement"]["recentActivity"]["last24Hours"] == 1
        assert len(result["engagement"]["attemptsOverTime"]) == 30

    def test_no_attempts(self) -> None:
        result = analytics.quiz_analytics({"difficulty": "easy"}, [], [], [], {}, NOW)
        assert result["overview"]["averageScore"] == 0
        assert result["overview"]["highestScore"] == 0
        assert result["performance"]["difficultyRating"]["actualDifficulty"] == 4


class TestCreatorAnalytics:
    QUIZZES = [
        {"id": "A", "title": "Alpha", "difficulty": "easy", "is_manual": False, "created_at": ago(days=1)},
        {"id": "B", "title": "Beta", "difficulty": "easy", "is_manual": True, "created_at": ago(days=2)},
    ]
    ATTEMPTS = [
        {"quiz_id": "A", "user_id": "u1", "percentage": 100, "completed_at": ago(hours=2)},
        {"quiz_id": "A", "user_id": "u2", "percentage": 60, "completed_at": ago(days=3)},
        {"quiz_id": "B", "user_id": "u1", "percentage": 50, "completed_at": ago(days=10)},
    ]

    def test_overview(self) -> None:
        result = analytics.creator_analytics(self.QUIZZES, self.ATTEMPTS, {"A": 5, "B": 3}, NOW)

        assert result["overview"] == {
            "totalQuizzes": 2,
            "totalAttempts": 3,
            "totalUniqueUsers": 2,
            "averageScore": 70.0,
            "averageAttemptsPerQuiz": 1.5,
            "averageQuestionsPerQuiz": 4.0,
            "totalQuestions": 8,
        }

    def test_breakdown_uses_running_pairwise_mean(self) -> None:
        result = analytics.creator_analytics(self.QUIZZES, self.ATTEMPTS, {}, NOW)

        easy = result["breakdown"]["byDifficulty"]["easy"]
        assert easy == {"count": 2, "avgScore": 45.0, "attempts": 3}
        assert result["breakdown"]["byType"]["aiGenerated"] == {"count": 1, "avgScore": 40.0, "attempts": 2}
        assert result["breakdown"]["byType"]["humanCreated"] == {"count": 1, "avgScore": 25.0, "attempts": 1}

    def test_top_quizzes(self) -> None:
        result = analytics.creator_analytics(self.QUIZZES, self.ATTEMPTS, {}, NOW)

        assert [q["quizId"] for q in result["topQuizzes"]["mostPopular"]] == ["A", "B"]
        assert result["topQuizzes"]["highestRated"] == []
        assert result["performance"]["topPerformingQuizzes"][0]["avgScore"] == 80.0

    def test_no_quizzes(self) -> None:
        result = analytics.creator_analytics([], [], {}, NOW)
        assert result["overview"]["totalQuizzes"] == 0
        assert result["engagement"]["creationTrend"] == []


class TestParticipantAnalytics:
    def attempts(self):
        quiz = {"id": "A", "title": "Science basics", "difficulty": "easy", "user_id": "creator",
                "original_prompt": "General science for kids"}
        return [
            {"quiz_id": "A", "score": 5, "percentage": 100, "completed_at": ago(hours=1), "quiz": quiz},
            {"quiz_id": "A", "score": 5, "percentage": 100, "completed_at": ago(days=1), "quiz": quiz},
        ]

    def test_empty(self) -> None:
        result = analytics.participant_analytics([], {}, NOW)
        assert result == analytics.empty_participant_analytics()

    def test_summary(self) -> None:
        result = analytics.participant_analytics(self.attempts(), {"creator": "Grace"}, NOW)

        assert result["overview"]["totalAttempts"] == 2
        assert result["overview"]["uniqueQuizzes"] == 1
        assert result["achievements"]["perfectScores"] == 2
        assert result["achievements"]["consistencyScore"] == 100.0
        assert result["engagement"]["streaks"] == {
            "currentStreak": 2, "longestStreak": 2, "lastActive": "2024-06-15"
        }
        assert result["engagement"]["favoriteTopics"] == [{"topic": "science", "attempts": 2, "avgScore": 100.0}]
        assert result["recentAttempts"][0]["creatorName"] == "Grace"
        assert result["recentAttempts"][0]["quizTitle"] == "Science basics"
        assert result["performance"]["strengthsByDifficulty"]["easy"]["attempts"] == 2
        assert len(result["performance"]["progressTrend"]) == 30

    def test_challenges(self) -> None:
        challenges = {
            c["name"]: c for c in analytics.participant_analytics(self.attempts(), {}, NOW)["achievements"]["challenges"]
        }
        assert challenges["Perfect Score Master"]["progress"] == pytest.approx(200 / 3)
        assert challenges["Consistency Champion"]["completed"]
        assert not challenges["Streak Warrior"]["completed"]


class TestParticipantTrends:
    def attempt(self, percentage: float, hours: int, difficulty: str = "medium") -> dict:
        quiz = {"id": difficulty, "title": "Mixed quiz", "difficulty": difficulty, "user_id": "creator",
                "original_prompt": "Odds and ends"}
        return {"quiz_id": difficulty, "score": percentage // 10, "percentage": percentage,
                "completed_at": ago(hours=hours), "quiz": quiz}

    def test_improvement_by_difficulty(self) -> None:
        attempts = [self.attempt(p, h, "hard") for p, h in ((90, 1), (70, 30), (50, 60), (30, 90))]
        attempts += [self.attempt(p, h, "easy") for p, h in ((100, 2), (40, 3), (70, 4))]

        strengths = analytics.participant_analytics(attempts, {}, NOW)["performance"]["strengthsByDifficulty"]

        assert strengths["hard"] == {"attempts": 4, "avgScore": 60.0, "improvement": 40.0}
        assert strengths["easy"] == {"attempts": 3, "avgScore": 70.0, "improvement": 0}
        assert strengths["medium"]["attempts"] == 0

    def test_consistency_of_spread_scores(self) -> None:
        attempts = [self.attempt(p, h) for p, h in ((90, 1), (70, 2), (50, 3), (30, 4))]

        achievements = analytics.participant_analytics(attempts, {}, NOW)["achievements"]

        # mean 60, population deviation sqrt(500)
        assert achievements["consistencyScore"] == 62.7
        assert achievements["improvementRate"] == 0.0

    def test_consistency_is_floored_at_zero(self) -> None:
        attempts = [self.attempt(p, h) for p, h in ((100, 1), (0, 2), (0, 3), (0, 4))]
        assert analytics.participant_analytics(attempts, {}, NOW)["achievements"]["consistencyScore"] == 0

    def test_improvement_rate_over_twelve_attempts(self) -> None:
        # newest first: 100, 95, ..., 45
        attempts = [self.attempt(100 - 5 * i, i + 1) for i in range(12)]

        result = analytics.participant_analytics(attempts, {}, NOW)

        assert result["achievements"]["improvementRate"] == 10.0
        assert result["performance"]["strengthsByDifficulty"]["medium"]["improvement"] == 30.0
        assert result["overview"]["highestScore"] == 100
        assert result["overview"]["lowestScore"] == 45
        assert len(result["recentAttempts"]) == 10


class TestOverviewAndPublicStats:
    def test_overview(self) -> None:
        result = analytics.overview_analytics(
            ["A", "B"],
            [{"percentage": 80}, {"percentage": 40}],
            [{"user_id": "u1"}, {"user_id": "u1"}, {"user_id": "u2"}],
        )
        assert result == {
            "quizzesCreated": 2, "quizzesAttempted": 2, "averageScore": 60.0, "totalParticipants": 2
        }

    def test_public_stats(self) -> None:
        quizzes = [
            {"is_ai_generated": True, "difficulty": "easy", "created_at": ago(hours=2)},
            {"is_ai_generated": False, "difficulty": "hard", "created_at": ago(days=3)},
            {"is_ai_generated": True, "difficulty": "easy", "created_at": ago(days=30)},
        ]
        result = analytics.public_quiz_stats(quizzes, 15, 6, NOW)

        assert result["totalQuizzes"] == 3
        assert result["quizzesByType"] == {"aiGenerated": 2, "humanCreated": 1}
        assert result["recentActivity"] == {"addedLast24Hours": 1, "addedLastWeek": 2}
        assert result["difficulty"] == {"easy": 2, "medium": 0, "hard": 1}
        assert result["engagement"] == {
            "totalAttempts": 6, "averageAttemptsPerQuiz": 2.0, "averageQuestionsPerQuiz": 5.0
        }

    def test_public_stats_when_empty(self) -> None:
        result = analytics.public_quiz_stats([], 0, 0, NOW)
        assert result["engagement"]["averageAttemptsPerQuiz"] == 0
