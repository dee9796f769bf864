# backend/quizfoundry/services/analytics_service.py

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..core import analytics
from ..core.errors import AppError
from .quiz_service import load_questions

logger = logging.getLogger("quizfoundry.analytics")


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def get_quiz_analytics(store, quiz_id: str, owner_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    rows = store.select("quizzes", eq={"id": quiz_id, "user_id": owner_id})
    if not rows:
        raise AppError("Quiz not found or access denied", 404)
    quiz = rows[0]

    questions = load_questions(store, [quiz_id])[quiz_id]
    attempts = store.select("quiz_attempts", eq={"quiz_id": quiz_id}, order="completed_at", descending=True)
    user_ids = list({a["user_id"] for a in attempts})
    attempt_ids = [a["id"] for a in attempts]
    profiles = {p["id"]: p for p in store.select("profiles", in_={"id": user_ids})} if user_ids else {}
    answers = store.select("quiz_attempt_answers", in_={"attempt_id": attempt_ids}) if attempt_ids else []

    logger.info(f"[analytics] quiz {quiz_id}: {len(attempts)} attempts, {len(answers)} answers")
    return analytics.quiz_analytics(quiz, questions, attempts, answers, profiles, _now(now))


def get_creator_analytics(store, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    quizzes = store.select("quizzes", eq={"user_id": user_id}, order="created_at", descending=True)
    ids = [q["id"] for q in quizzes]
    attempts = store.select("quiz_attempts", in_={"quiz_id": ids}) if ids else []
    question_counts: Dict[str, int] = {}
    for question in (store.select("questions", in_={"quiz_id": ids}) if ids else []):
        question_counts[question["quiz_id"]] = question_counts.get(question["quiz_id"], 0) + 1

    logger.info(f"[analytics] creator {user_id}: {len(quizzes)} quizzes, {len(attempts)} attempts")
    return analytics.creator_analytics(quizzes, attempts, question_counts, _now(now))


def get_participant_analytics(store, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    attempts = store.select("quiz_attempts", eq={"user_id": user_id})
    if not attempts:
        return analytics.empty_participant_analytics()

    quiz_ids = list({a["quiz_id"] for a in attempts})
    quizzes = {q["id"]: q for q in store.select("quizzes", in_={"id": quiz_ids})}
    creator_ids = list({q["user_id"] for q in quizzes.values()})
    creators = {p["id"]: p.get("name") for p in store.select("profiles", in_={"id": creator_ids})} if creator_ids else {}

    with_quiz = [{**a, "quiz": quizzes.get(a["quiz_id"])} for a in attempts]
    logger.info(f"[analytics] participant {user_id}: {len(attempts)} attempts")
    return analytics.participant_analytics(with_quiz, creators, _now(now))


def get_overview_analytics(store, user_id: str) -> Dict[str, Any]:
    created_ids = [q["id"] for q in store.select("quizzes", eq={"user_id": user_id})]
    own_attempts = store.select("quiz_attempts", eq={"user_id": user_id})
    on_own = store.select("quiz_attempts", in_={"quiz_id": created_ids}) if created_ids else []
    return analytics.overview_analytics(created_ids, own_attempts, on_own)
