# backend/quizfoundry/core/analytics.py

import math, re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from .store import parse_ts

Row = Dict[str, Any]

DIFFICULTIES = ("easy", "medium", "hard")
SCORE_BUCKETS = (("0-20%", 20), ("21-40%", 40), ("41-60%", 60), ("61-80%", 80), ("81-100%", 100))

TOPIC_KEYWORDS = re.compile(
    r"\b(science|math|history|geography|literature|technology|sports|music|art|programming"
    r"|business|psychology|philosophy|politics|economics|biology|chemistry|physics|english"
    r"|spanish|french|german)\b"
)

# ------------------------------------------------------------
# Small helpers
# ------------------------------------------------------------
def round1(value: float) -> float:
    return round(value, 1)


def mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def utc_date(value: str) -> str:
    return parse_ts(value).astimezone(timezone.utc).date().isoformat()


def last_days(now: datetime, days: int = 30) -> List[str]:
    """Calendar dates (UTC) of the last `days` days, oldest first, ending today."""
    return [(now - timedelta(days=i)).date().isoformat() for i in range(days - 1, -1, -1)]


def score_distribution(scores: List[float]) -> List[Dict[str, Any]]:
    counts = [0] * len(SCORE_BUCKETS)
    for score in scores:
        for i, (_, upper) in enumerate(SCORE_BUCKETS):
            if score <= upper or i == len(SCORE_BUCKETS) - 1:
                counts[i] += 1
                break
    total = len(scores)
    return [
        {
            "range": label,
            "count": count,
            "percentage": round1(count / total * 100) if total else 0,
        }
        for (label, _), count in zip(SCORE_BUCKETS, counts)
    ]


def recent_activity(timestamps: Iterable[str], now: datetime) -> Dict[str, int]:
    parsed = [parse_ts(t) for t in timestamps]

    def since(delta: timedelta) -> int:
        cutoff = now - delta
        return sum(1 for t in parsed if t > cutoff)

    return {
        "last24Hours": since(timedelta(hours=24)),
        "last7Days": since(timedelta(days=7)),
        "last30Days": since(timedelta(days=30)),
    }


def _count_by_day(timestamps: Iterable[str], now: datetime) -> List[Dict[str, Any]]:
    per_day = Counter(utc_date(t) for t in timestamps)
    return [{"date": day, "count": per_day.get(day, 0)} for day in last_days(now)]


def _actual_difficulty(correct_rate: float) -> int:
    if correct_rate >= 80:
        return 1
    if correct_rate >= 60:
        return 2
    if correct_rate >= 40:
        return 3
    return 4


def _question_difficulty(correct_rate: float) -> str:
    if correct_rate >= 80:
        return "easy"
    if correct_rate <= 40:
        return "hard"
    return "medium"


def _option_analysis(options: List[Row], answers: List[Row]) -> List[Dict[str, Any]]:
    n = len(answers)
    rows = []
    for opt in options:
        selected = sum(1 for a in answers if a.get("selected_option_id") == opt["id"])
        rows.append({
            "optionId": opt["id"],
            "optionText": opt["option_text"],
            "isCorrect": opt["is_correct"],
            "selectedCount": selected,
            "percentage": round1(selected / n * 100) if n else 0,
        })
    return rows


# ------------------------------------------------------------
# Single quiz (owner view)
# ------------------------------------------------------------
def quiz_analytics(
    quiz: Row,
    questions: List[Row],
    attempts: List[Row],
    answers: List[Row],
    profiles: Dict[str, Row],
    now: datetime,
) -> Dict[str, Any]:
    """
    questions carry their "options"; attempts are any order; profiles map user id -> profile.
    """
    scores = [a["percentage"] for a in attempts]
    total = len(attempts)

    question_stats = []
    for question in questions:
        q_answers = [a for a in answers if a["question_id"] == question["id"]]
        n = len(q_answers)
        correct_rate = round1(sum(1 for a in q_answers if a["is_correct"]) / n * 100) if n else 0
        question_stats.append({
            "questionId": question["id"],
            "questionText": question["question_text"],
            "orderIndex": question["order_index"],
            "correctRate": correct_rate,
            "totalAnswers": n,
            "difficulty": _question_difficulty(correct_rate),
            "optionAnalysis": _option_analysis(question.get("options") or [], q_answers),
        })

    top = sorted(attempts, key=lambda a: a["percentage"], reverse=True)[:10]
    return {
        "overview": {
            "totalAttempts": total,
            "uniqueUsers": len({a["user_id"] for a in attempts}),
            "averageScore": round1(mean(scores)),
            "averageTimeSpent": 0,
            "completionRate": 100,
            "highestScore": max(scores) if scores else 0,
            "lowestScore": min(scores) if scores else 0,
        },
        "performance": {
            "scoreDistribution": score_distribution(scores),
            "difficultyRating": {
                "perceived": quiz["difficulty"],
                "actualDifficulty": _actual_difficulty(mean(q["correctRate"] for q in question_stats)),
            },
        },
        "engagement": {
            "attemptsOverTime": _count_by_day((a["completed_at"] for a in attempts), now),
            "topPerformers": [
                {
                    "userId": a["user_id"],
                    "userName": (profiles.get(a["user_id"]) or {}).get("name"),
                    "userAvatarUrl": (profiles.get(a["user_id"]) or {}).get("avatar_url"),
                    "score": a["score"],
                    "percentage": a["percentage"],
                    "completedAt": a["completed_at"],
                }
                for a in top
            ],
            "recentActivity": recent_activity((a["completed_at"] for a in attempts), now),
        },
        "questions": question_stats,
    }


# ------------------------------------------------------------
# Creator (all of a user's quizzes)
# ------------------------------------------------------------
def _running_breakdown(keys: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    return {k: {"count": 0, "avgScore": 0, "attempts": 0} for k in keys}


def creator_analytics(
    quizzes: List[Row],
    attempts: List[Row],
    question_counts: Dict[str, int],
    now: datetime,
) -> Dict[str, Any]:
    by_quiz: Dict[str, List[Row]] = {q["id"]: [] for q in quizzes}
    for a in attempts:
        by_quiz.setdefault(a["quiz_id"], []).append(a)

    by_difficulty = _running_breakdown(DIFFICULTIES)
    by_type = _running_breakdown(("aiGenerated", "humanCreated"))
    quiz_stats = []

    for quiz in quizzes:
        quiz_attempts = by_quiz[quiz["id"]]
        avg = mean(a["percentage"] for a in quiz_attempts)
        buckets = []
        if quiz["difficulty"] in by_difficulty:
            buckets.append(by_difficulty[quiz["difficulty"]])
        buckets.append(by_type["humanCreated" if quiz.get("is_manual") else "aiGenerated"])
        for bucket in buckets:
            bucket["count"] += 1
            bucket["attempts"] += len(quiz_attempts)
            if quiz_attempts:
                # Pairwise running mean: each new quiz weighs as much as all earlier ones.
                bucket["avgScore"] = round1((bucket["avgScore"] + avg) / 2)

        quiz_stats.append({
            "quizId": quiz["id"],
            "title": quiz["title"],
            "avgScore": round1(avg),
            "attempts": len(quiz_attempts),
            "uniqueUsers": len({a["user_id"] for a in quiz_attempts}),
            "difficulty": quiz["difficulty"],
            "createdAt": quiz["created_at"],
        })

    total_quizzes = len(quizzes)
    total_attempts = len(attempts)
    total_questions = sum(question_counts.get(q["id"], 0) for q in quizzes)
    trends = bool(quizzes)

    most_popular = sorted(quiz_stats, key=lambda q: q["attempts"], reverse=True)[:5]
    rated = sorted((q for q in quiz_stats if q["attempts"] >= 3), key=lambda q: q["avgScore"], reverse=True)[:5]

    return {
        "overview": {
            "totalQuizzes": total_quizzes,
            "totalAttempts": total_attempts,
            "totalUniqueUsers": len({a["user_id"] for a in attempts}),
            "averageScore": round1(mean(a["percentage"] for a in attempts)),
            "averageAttemptsPerQuiz": round1(total_attempts / total_quizzes) if total_quizzes else 0,
            "averageQuestionsPerQuiz": round1(total_questions / total_quizzes) if total_quizzes else 0,
            "totalQuestions": total_questions,
        },
        "breakdown": {"byDifficulty": by_difficulty, "byType": by_type},
        "performance": {
            "topPerformingQuizzes": sorted(
                (q for q in quiz_stats if q["attempts"] > 0), key=lambda q: q["avgScore"], reverse=True
            )[:5],
            "scoreDistribution": score_distribution([a["percentage"] for a in attempts]),
        },
        "engagement": {
            "creationTrend": _count_by_day((q["created_at"] for q in quizzes), now) if trends else [],
            "attemptsTrend": _count_by_day((a["completed_at"] for a in attempts), now) if trends else [],
            "recentActivity": recent_activity((a["completed_at"] for a in attempts), now),
        },
        "topQuizzes": {
            "mostPopular": [
                {k: q[k] for k in ("quizId", "title", "attempts", "uniqueUsers", "avgScore")}
                for q in most_popular
            ],
            "highestRated": [
                {k: q[k] for k in ("quizId", "title", "avgScore", "attempts", "difficulty")}
                for q in rated
            ],
        },
    }


# ------------------------------------------------------------
# Participant (a user's own attempts)
# ------------------------------------------------------------
def streaks(dates: Iterable[str], today: str) -> Dict[str, int]:
    """Days at most two apart count as consecutive; the current streak needs activity within a day."""
    ordered = sorted({datetime.fromisoformat(d).date() for d in dates})
    if not ordered:
        return {"currentStreak": 0, "longestStreak": 0}

    longest, run = 0, 0
    for i, day in enumerate(ordered):
        if i == 0 or (day - ordered[i - 1]).days <= 2:
            run += 1
        else:
            longest = max(longest, run)
            run = 1
    longest = max(longest, run)

    current = 0
    newest_first = ordered[::-1]
    if (datetime.fromisoformat(today).date() - newest_first[0]).days <= 1:
        current = 1
        for prev, day in zip(newest_first, newest_first[1:]):
            if (prev - day).days > 2:
                break
            current += 1
    return {"currentStreak": current, "longestStreak": longest}


def _improvement(newest_first: List[Row]) -> float:
    if len(newest_first) < 4:
        return 0
    half = len(newest_first) // 2
    recent = mean(a["percentage"] for a in newest_first[:half])
    older = mean(a["percentage"] for a in newest_first[-half:])
    return round1(recent - older)


def favourite_topics(attempts: List[Row]) -> List[Dict[str, Any]]:
    totals: Dict[str, List[float]] = {}
    for attempt in attempts:
        quiz = attempt.get("quiz") or {}
        text = (quiz.get("original_prompt") or quiz.get("title") or "").lower()
        for topic in TOPIC_KEYWORDS.findall(text):
            totals.setdefault(topic, []).append(attempt["percentage"])
    ranked = sorted(totals.items(), key=lambda kv: len(kv[1]), reverse=True)[:5]
    return [
        {"topic": topic, "attempts": len(scores), "avgScore": round1(mean(scores))}
        for topic, scores in ranked
    ]


def _challenge(name: str, description: str, value: float, target: float) -> Dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "completed": value >= target,
        "progress": min(100, value / target * 100),
    }


def empty_participant_analytics() -> Dict[str, Any]:
    return {
        "overview": {
            "totalAttempts": 0, "uniqueQuizzes": 0, "averageScore": 0, "highestScore": 0,
            "lowestScore": 0, "totalTimeSpent": 0, "averageTimePerQuiz": 0,
        },
        "performance": {
            "scoreDistribution": score_distribution([]),
            "progressTrend": [],
            "strengthsByDifficulty": {
                d: {"attempts": 0, "avgScore": 0, "improvement": 0} for d in DIFFICULTIES
            },
        },
        "engagement": {
            "activityTrend": [],
            "streaks": {"currentStreak": 0, "longestStreak": 0, "lastActive": ""},
            "favoriteTopics": [],
        },
        "achievements": {"perfectScores": 0, "improvementRate": 0, "consistencyScore": 0, "challenges": []},
        "recentAttempts": [],
    }


def participant_analytics(
    attempts: List[Row], creator_names: Dict[str, Optional[str]], now: datetime
) -> Dict[str, Any]:
    """attempts carry their quiz under "quiz" (id, title, difficulty, user_id, original_prompt)."""
    if not attempts:
        return empty_participant_analytics()

    attempts = sorted(attempts, key=lambda a: parse_ts(a["completed_at"]), reverse=True)
    scores = [a["percentage"] for a in attempts]
    total = len(attempts)
    average = round1(mean(scores))
    unique_quizzes = len({a["quiz_id"] for a in attempts})
    time_spent = sum(a.get("time_spent_seconds") or 0 for a in attempts)

    per_day: Dict[str, List[float]] = {}
    for a in attempts:
        per_day.setdefault(utc_date(a["completed_at"]), []).append(a["percentage"])
    days = last_days(now)

    strengths = {}
    for difficulty in DIFFICULTIES:
        subset = [a for a in attempts if (a.get("quiz") or {}).get("difficulty") == difficulty]
        strengths[difficulty] = {
            "attempts": len(subset),
            "avgScore": round1(mean(a["percentage"] for a in subset)),
            "improvement": _improvement(subset),
        }

    streak = streaks(per_day.keys(), now.date().isoformat())
    perfect = sum(1 for s in scores if s == 100)

    improvement_rate = 0.0
    if total >= 10:
        improvement_rate = round1(mean(scores[:10]) - mean(scores[-10:]))

    deviation = math.sqrt(sum((s - average) ** 2 for s in scores) / total) if total > 1 else 0
    consistency = max(0, round1(100 - deviation / average * 100)) if average > 0 else 0

    return {
        "overview": {
            "totalAttempts": total,
            "uniqueQuizzes": unique_quizzes,
            "averageScore": average,
            "highestScore": max(scores),
            "lowestScore": min(scores),
            "totalTimeSpent": time_spent,
            "averageTimePerQuiz": round(time_spent / total),
        },
        "performance": {
            "scoreDistribution": score_distribution(scores),
            "progressTrend": [
                {
                    "date": day,
                    "avgScore": round1(mean(per_day.get(day, []))),
                    "attempts": len(per_day.get(day, [])),
                }
                for day in days
            ],
            "strengthsByDifficulty": strengths,
        },
        "engagement": {
            "activityTrend": [{"date": day, "attempts": len(per_day.get(day, []))} for day in days],
            "streaks": {**streak, "lastActive": utc_date(attempts[0]["completed_at"])},
            "favoriteTopics": favourite_topics(attempts),
        },
        "achievements": {
            "perfectScores": perfect,
            "improvementRate": improvement_rate,
            "consistencyScore": consistency,
            "challenges": [
                _challenge("Perfect Score Master", "Get 3 perfect scores", perfect, 3),
                _challenge("Quiz Explorer", "Attempt 25 different quizzes", unique_quizzes, 25),
                _challenge("Consistency Champion", "Achieve 80%+ consistency score", consistency, 80),
                _challenge("Streak Warrior", "Maintain a 7-day streak", streak["longestStreak"], 7),
            ],
        },
        "recentAttempts": [
            {
                "quizId": a["quiz_id"],
                "quizTitle": (a.get("quiz") or {}).get("title") or "Unknown Quiz",
                "score": a["score"],
                "percentage": a["percentage"],
                "difficulty": (a.get("quiz") or {}).get("difficulty") or "medium",
                "completedAt": a["completed_at"],
                "creatorName": creator_names.get((a.get("quiz") or {}).get("user_id")),
            }
            for a in attempts[:10]
        ],
    }


# ------------------------------------------------------------
# Dashboard overview & public stats
# ------------------------------------------------------------
def overview_analytics(
    created_quiz_ids: List[str], own_attempts: List[Row], attempts_on_own_quizzes: List[Row]
) -> Dict[str, Any]:
    return {
        "quizzesCreated": len(created_quiz_ids),
        "quizzesAttempted": len(own_attempts),
        "averageScore": round1(mean(a["percentage"] for a in own_attempts)),
        "totalParticipants": len({a["user_id"] for a in attempts_on_own_quizzes}),
    }


def public_quiz_stats(
    quizzes: List[Row], total_questions: int, total_attempts: int, now: datetime
) -> Dict[str, Any]:
    by_type = {"aiGenerated": 0, "humanCreated": 0}
    difficulty = {d: 0 for d in DIFFICULTIES}
    for quiz in quizzes:
        by_type["aiGenerated" if quiz.get("is_ai_generated") else "humanCreated"] += 1
        if quiz.get("difficulty") in difficulty:
            difficulty[quiz["difficulty"]] += 1

    created = [parse_ts(q["created_at"]) for q in quizzes]
    n = len(quizzes)
    return {
        "totalQuizzes": n,
        "quizzesByType": by_type,
        "recentActivity": {
            "addedLast24Hours": sum(1 for c in created if c > now - timedelta(hours=24)),
            "addedLastWeek": sum(1 for c in created if c > now - timedelta(days=7)),
        },
        "difficulty": difficulty,
        "engagement": {
            "totalAttempts": total_attempts if n else 0,
            "averageAttemptsPerQuiz": round1(total_attempts / n) if n else 0,
            "averageQuestionsPerQuiz": round1(total_questions / n) if n else 0,
        },
    }
