# backend/quizfoundry/core/scoring.py

from typing import Any, Dict, Iterable, List, Optional, TypedDict

from .errors import AppError


class QuestionResult(TypedDict):
    questionId: str
    selectedOptionId: Optional[str]
    correctOptionId: str
    isCorrect: bool


class GradedSubmission(TypedDict):
    score: int
    percentage: float
    results: List[QuestionResult]


def grade_submission(
    questions: List[Dict[str, Any]], answers: Iterable[Dict[str, str]]
) -> GradedSubmission:
    """
    Grade answers ({questionId, optionId}) against questions carrying their options.
    A repeated questionId keeps the last answer; unanswered questions count as wrong.
    """
    if not questions:
        raise AppError("Quiz has no questions", 400)

    chosen: Dict[str, str] = {}
    for answer in answers:
        chosen[answer["questionId"]] = answer["optionId"]

    results: List[QuestionResult] = []
    for question in questions:
        correct = next((o for o in question.get("options") or [] if o.get("is_correct")), None)
        if correct is None:
            raise AppError("Question missing correct answer", 500)

        selected = chosen.get(question["id"])
        results.append({
            "questionId": question["id"],
            "selectedOptionId": selected,
            "correctOptionId": correct["id"],
            "isCorrect": selected == correct["id"],
        })

    score = sum(1 for r in results if r["isCorrect"])
    return {
        "score": score,
        "percentage": score / len(questions) * 100,
        "results": results,
    }
