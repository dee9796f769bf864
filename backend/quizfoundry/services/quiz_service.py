# backend/quizfoundry/services/quiz_service.py

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from ..core import openai_qg, openai_validator
from ..core.analytics import public_quiz_stats, round1, mean
from ..core.config import Settings
from ..core.errors import AppError
from ..core.schemas import (
    AdvancedQuizRequest,
    CreateManualQuizRequest,
    EnhanceQuestionRequest,
    ExpressQuizRequest,
    GenerateOptionsRequest,
    GenerateQuestionsRequest,
    PrototypeQuizRequest,
    PublishManualQuizRequest,
    QuestionInput,
    QuestionTypeSuggestionsRequest,
    SubmitQuizRequest,
    UpdateQuizRequest,
    UpdateQuizWithQuestionsRequest,
)
from ..core.scoring import grade_submission
from ..core.store import utcnow_iso

logger = logging.getLogger("quizfoundry.quizzes")

EXPRESS_PRESETS = {"question_count": 5, "options_count": 4, "difficulty": "medium"}
PROTOTYPE_ID = "prototype"
SORT_FIELDS = ("created_at", "popularity", "difficulty", "title")
_DIFFICULTY_RANK = {"easy": 0, "medium": 1, "hard": 2}


# ------------------------------------------------------------
# Loading helpers
# ------------------------------------------------------------
def _quiz_row(store, quiz_id: str) -> Optional[Dict[str, Any]]:
    rows = store.select("quizzes", eq={"id": quiz_id})
    return rows[0] if rows else None


def _owned_quiz(store, quiz_id: str, user_id: str) -> Dict[str, Any]:
    rows = store.select("quizzes", eq={"id": quiz_id, "user_id": user_id})
    if not rows:
        raise AppError("Quiz not found or access denied", 404)
    return rows[0]


def load_questions(store, quiz_ids: List[str]) -> Dict[str, List[Dict[str, Any]]]:
    """Questions per quiz id, each carrying its ordered "options"."""
    if not quiz_ids:
        return {}
    questions = store.select("questions", in_={"quiz_id": quiz_ids}, order="order_index")
    options = store.select(
        "question_options", in_={"question_id": [q["id"] for q in questions]}, order="order_index"
    ) if questions else []

    per_question: Dict[str, List[Dict[str, Any]]] = {}
    for opt in options:
        per_question.setdefault(opt["question_id"], []).append(opt)

    grouped: Dict[str, List[Dict[str, Any]]] = {qid: [] for qid in quiz_ids}
    for q in questions:
        grouped[q["quiz_id"]].append({**q, "options": per_question.get(q["id"], [])})
    return grouped


def _counts(store, table: str, quiz_ids: List[str]) -> Counter:
    if not quiz_ids:
        return Counter()
    return Counter(row["quiz_id"] for row in store.select(table, in_={"quiz_id": quiz_ids}))


def strip_question_answers(question: Dict[str, Any]) -> Dict[str, Any]:
    options = [{k: v for k, v in o.items() if k != "is_correct"} for o in question.get("options") or []]
    return {**question, "options": options}


def strip_answers(quiz: Dict[str, Any]) -> Dict[str, Any]:
    if "questions" not in quiz:
        return quiz
    return {**quiz, "questions": [strip_question_answers(q) for q in quiz["questions"]]}


# ------------------------------------------------------------
# Persistence helpers
# ------------------------------------------------------------
def _insert_questions(store, quiz_id: str, questions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    saved = []
    for index, question in enumerate(questions):
        row = store.insert("questions", [{
            "quiz_id": quiz_id,
            "question_text": question["question_text"],
            "question_type": question.get("question_type", "multiple_choice"),
            "order_index": question.get("order_index", index),
        }])[0]
        options = question.get("options") or []
        option_rows = store.insert("question_options", [
            {
                "question_id": row["id"],
                "option_text": opt["option_text"],
                "is_correct": bool(opt.get("is_correct")),
                "order_index": opt.get("order_index", i),
            }
            for i, opt in enumerate(options)
        ]) if options else []
        saved.append({**row, "options": option_rows})
    return saved


def _delete_questions(store, quiz_id: str) -> None:
    question_ids = [q["id"] for q in store.select("questions", eq={"quiz_id": quiz_id})]
    if question_ids:
        store.delete("question_options", in_={"question_id": question_ids})
        store.delete("questions", in_={"id": question_ids})


def _save_quiz(store, user_id: str, values: Dict[str, Any],
               questions: List[Dict[str, Any]]) -> Dict[str, Any]:
    quiz = store.insert("quizzes", [{"user_id": user_id, **values}])[0]
    saved = _insert_questions(store, quiz["id"], questions)
    logger.info(f"[quizzes] saved quiz {quiz['id']} with {len(saved)} questions")
    return {**quiz, "questions": saved}


# ------------------------------------------------------------
# Content review
# ------------------------------------------------------------
def _review_content(title: str, description: Optional[str], questions: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "title": title,
        "description": description,
        "questions": [
            {
                "question_text": q["question_text"],
                "options": [
                    {"option_text": o["option_text"], "is_correct": bool(o.get("is_correct"))}
                    for o in q.get("options") or []
                ],
            }
            for q in questions
        ],
    }


async def ensure_content_approved(settings: Settings, content: Dict[str, Any], public: bool) -> None:
    """Reject public quiz content the reviewer does not approve. Private quizzes are never reviewed."""
    if settings.bypass_checks or not public:
        logger.info(f"[quizzes] skipping content review (public={public})")
        return
    result = await run_in_threadpool(
        openai_validator.validate_quiz_content,
        content,
        settings.openai_api_key or None,
        settings.openai_model,
    )
    if not result["is_approved"]:
        logger.warning(f"[quizzes] content rejected: {result['reasoning']}")
        raise AppError(
            openai_validator.rejection_message(result),
            400,
            validation_result={
                "reasoning": result["reasoning"],
                "confidence": result["confidence"],
                "concerns": result["concerns"],
            },
        )
    logger.info(f"[quizzes] content approved (confidence: {result['confidence']}%)")


# ------------------------------------------------------------
# Creation
# ------------------------------------------------------------
async def create_quiz_express(store, user_id: str, data: ExpressQuizRequest) -> Dict[str, Any]:
    generated = await openai_qg.generate_quiz_with_ai({"prompt": data.prompt, **EXPRESS_PRESETS})
    return await run_in_threadpool(_save_quiz, store, user_id, {
        "title": generated["title"],
        "description": generated["description"],
        "difficulty": generated["difficulty"],
        "is_public": data.is_public,
        "is_ai_generated": True,
        "is_manual": False,
        "original_prompt": data.prompt,
    }, generated["questions"])


async def create_prototype_quiz(data: PrototypeQuizRequest) -> Dict[str, Any]:
    return await openai_qg.generate_quiz_with_ai({
        "prompt": data.prompt,
        "difficulty": data.difficulty,
        "question_count": data.question_count,
        "options_count": data.options_count,
    })


async def create_quiz_advanced(user_id: str, data: AdvancedQuizRequest) -> Dict[str, Any]:
    """Generate an editable, unsaved quiz shaped like a stored one."""
    generated = await create_prototype_quiz(data)
    now = utcnow_iso()
    questions = []
    for q in generated["questions"]:
        question_id = f"{PROTOTYPE_ID}-question-{q['order_index']}"
        questions.append({
            "id": question_id,
            "quiz_id": PROTOTYPE_ID,
            "question_text": q["question_text"],
            "question_type": q["question_type"],
            "order_index": q["order_index"],
            "created_at": now,
            "updated_at": now,
            "options": [
                {
                    "id": f"{PROTOTYPE_ID}-option-{o['order_index']}",
                    "question_id": question_id,
                    "option_text": o["option_text"],
                    "is_correct": o["is_correct"],
                    "order_index": o["order_index"],
                    "created_at": now,
                }
                for o in q["options"]
            ],
        })
    return {
        "id": PROTOTYPE_ID,
        "user_id": user_id,
        "title": generated["title"],
        "description": generated["description"],
        "difficulty": generated["difficulty"],
        "is_public": data.is_public,
        "is_ai_generated": True,
        "is_manual": True,
        "original_prompt": data.prompt,
        "created_at": now,
        "updated_at": now,
        "questions": questions,
    }


def create_manual_quiz(store, user_id: str, data: CreateManualQuizRequest) -> Dict[str, Any]:
    quiz = store.insert("quizzes", [{
        "user_id": user_id,
        "title": data.title,
        "description": data.description,
        "difficulty": data.difficulty,
        "is_public": data.is_public,
        "is_ai_generated": False,
        "is_manual": True,
        "original_prompt": None,
    }])[0]
    logger.info(f"[quizzes] created empty manual quiz {quiz['id']}")
    return quiz


async def publish_manual_quiz(store, settings: Settings, user_id: str,
                              data: PublishManualQuizRequest) -> Dict[str, Any]:
    questions = [q.model_dump() for q in data.questions]
    await ensure_content_approved(
        settings, _review_content(data.title, data.description, questions), data.is_public
    )
    return await run_in_threadpool(_save_quiz, store, user_id, {
        "title": data.title,
        "description": data.description,
        "difficulty": data.difficulty,
        "is_public": data.is_public,
        "is_ai_generated": False,
        "is_manual": True,
        "original_prompt": data.original_prompt,
    }, questions)


async def surprise_prompt() -> str:
    try:
        return await openai_qg.generate_creative_quiz_prompt()
    except AppError as e:
        logger.error(f"[quizzes] surprise prompt failed: {e.message}")
        raise AppError("Failed to generate creative quiz prompt. Please try again.", 500)


# ------------------------------------------------------------
# Reading
# ------------------------------------------------------------
def get_quiz(store, quiz_id: str, user_id: Optional[str]) -> Dict[str, Any]:
    """Quiz with questions (answers included) and its attempt count."""
    quiz = _quiz_row(store, quiz_id)
    if quiz is None:
        raise AppError("Quiz not found", 404)
    if not quiz["is_public"] and quiz["user_id"] != user_id:
        raise AppError("Access denied to this quiz", 403)
    questions = load_questions(store, [quiz_id])[quiz_id]
    return {**quiz, "questions": questions, "attempts": _counts(store, "quiz_attempts", [quiz_id])[quiz_id]}


def get_quiz_preview(store, quiz_id: str, user_id: str) -> Dict[str, Any]:
    quiz = _quiz_row(store, quiz_id)
    if quiz is None:
        raise AppError("Quiz not found", 404)
    if quiz["user_id"] != user_id:
        raise AppError("Access denied to this quiz", 403)
    profiles = store.select("profiles", eq={"id": quiz["user_id"]})
    creator = (
        {"name": profiles[0].get("name"), "avatar_url": profiles[0].get("avatar_url")}
        if profiles else {"name": "Unknown", "avatar_url": None}
    )
    return {**quiz, "creator": creator, "questions": load_questions(store, [quiz_id])[quiz_id]}


def get_user_quizzes_with_stats(store, user_id: str) -> List[Dict[str, Any]]:
    quizzes = store.select("quizzes", eq={"user_id": user_id}, order="created_at", descending=True)
    ids = [q["id"] for q in quizzes]
    question_counts = _counts(store, "questions", ids)
    scores: Dict[str, List[float]] = {}
    for attempt in (store.select("quiz_attempts", in_={"quiz_id": ids}) if ids else []):
        scores.setdefault(attempt["quiz_id"], []).append(attempt.get("percentage") or 0)
    return [
        {
            **quiz,
            "attempts": len(scores.get(quiz["id"], [])),
            "average_score": round1(mean(scores.get(quiz["id"], []))),
            "question_count": question_counts[quiz["id"]],
        }
        for quiz in quizzes
    ]


def _matches_search(quiz: Dict[str, Any], term: str) -> bool:
    term = term.lower()
    return term in (quiz.get("title") or "").lower() or term in (quiz.get("description") or "").lower()


def get_public_quizzes(
    store,
    limit: int = 50,
    offset: int = 0,
    search: Optional[str] = None,
    difficulty: Optional[str] = None,
    quiz_type: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Dict[str, Any]:
    eq: Dict[str, Any] = {"is_public": True}
    if difficulty:
        eq["difficulty"] = difficulty
    if quiz_type:
        eq["is_ai_generated"] = quiz_type == "ai"
    quizzes = store.select("quizzes", eq=eq)
    if search and search.strip():
        quizzes = [q for q in quizzes if _matches_search(q, search.strip())]

    ids = [q["id"] for q in quizzes]
    attempts = _counts(store, "quiz_attempts", ids)
    question_counts = _counts(store, "questions", ids)
    quizzes = [{**q, "attempts": attempts[q["id"]], "question_count": question_counts[q["id"]]} for q in quizzes]

    sort_keys = {
        "popularity": lambda q: q["attempts"],
        "difficulty": lambda q: _DIFFICULTY_RANK.get(q["difficulty"], 1),
        "title": lambda q: (q.get("title") or "").lower(),
        "created_at": lambda q: q.get("created_at") or "",
    }
    quizzes.sort(key=sort_keys.get(sort_by, sort_keys["created_at"]), reverse=sort_order != "asc")

    total = len(quizzes)
    page = quizzes[offset:offset + limit]
    logger.info(f"[quizzes] public listing: {len(page)} of {total}")
    return {
        "quizzes": page,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(page),
            "hasMore": offset + limit < total,
        },
    }


def get_public_stats(store, now: Optional[datetime] = None) -> Dict[str, Any]:
    quizzes = store.select("quizzes", eq={"is_public": True})
    ids = [q["id"] for q in quizzes]
    return public_quiz_stats(
        quizzes,
        sum(_counts(store, "questions", ids).values()),
        sum(_counts(store, "quiz_attempts", ids).values()),
        now or datetime.now(timezone.utc),
    )


def get_quiz_attempts(store, quiz_id: str, owner_id: str) -> List[Dict[str, Any]]:
    quiz = _quiz_row(store, quiz_id)
    if quiz is None:
        raise AppError("Quiz not found", 404)
    if quiz["user_id"] != owner_id:
        raise AppError("Access denied to this quiz's attempts", 403)

    attempts = store.select("quiz_attempts", eq={"quiz_id": quiz_id}, order="completed_at", descending=True)
    user_ids = list({a["user_id"] for a in attempts})
    profiles = {p["id"]: p for p in store.select("profiles", in_={"id": user_ids})} if user_ids else {}
    return [
        {
            "attemptId": a["id"],
            "userId": a["user_id"],
            "userName": profiles.get(a["user_id"], {}).get("name"),
            "userAvatarUrl": profiles.get(a["user_id"], {}).get("avatar_url"),
            "score": a["score"],
            "percentage": a["percentage"],
            "completedAt": a["completed_at"],
        }
        for a in attempts
    ]


# ------------------------------------------------------------
# Updating
# ------------------------------------------------------------
async def update_quiz(store, settings: Settings, quiz_id: str, user_id: str,
                      data: UpdateQuizRequest) -> Dict[str, Any]:
    current = await run_in_threadpool(_owned_quiz, store, quiz_id, user_id)
    values = data.model_dump(exclude_none=True)

    if "title" in values or "description" in values:
        questions = (await run_in_threadpool(load_questions, store, [quiz_id]))[quiz_id]
        public = current["is_public"] or values.get("is_public", current["is_public"])
        await ensure_content_approved(
            settings,
            _review_content(
                values.get("title", current["title"]),
                values.get("description", current.get("description")),
                questions,
            ),
            public,
        )

    if not values:
        return current
    rows = await run_in_threadpool(store.update, "quizzes", values, eq={"id": quiz_id, "user_id": user_id})
    logger.info(f"[quizzes] updated quiz {quiz_id}: {sorted(values)}")
    return rows[0]


def _replace_questions(store, quiz_id: str, user_id: str, values: Dict[str, Any],
                       questions: List[Dict[str, Any]]) -> Dict[str, Any]:
    quiz = store.update("quizzes", values, eq={"id": quiz_id, "user_id": user_id})[0]
    _delete_questions(store, quiz_id)
    saved = _insert_questions(store, quiz_id, questions)
    logger.info(f"[quizzes] replaced questions of quiz {quiz_id} ({len(saved)})")
    return {**quiz, "questions": saved}


async def update_quiz_with_questions(store, settings: Settings, quiz_id: str, user_id: str,
                                     data: UpdateQuizWithQuestionsRequest) -> Dict[str, Any]:
    """Replace all questions; an edited quiz is manual from then on."""
    await run_in_threadpool(_owned_quiz, store, quiz_id, user_id)
    questions = [q.model_dump() for q in data.questions]
    await ensure_content_approved(
        settings, _review_content(data.title, data.description, questions), data.is_public
    )

    return await run_in_threadpool(_replace_questions, store, quiz_id, user_id, {
        "title": data.title,
        "description": data.description,
        "difficulty": data.difficulty,
        "is_public": data.is_public,
        "is_ai_generated": False,
        "is_manual": True,
    }, questions)


def delete_quiz(store, quiz_id: str, user_id: str) -> None:
    _owned_quiz(store, quiz_id, user_id)

    attempt_ids = [a["id"] for a in store.select("quiz_attempts", eq={"quiz_id": quiz_id})]
    if attempt_ids:
        store.delete("quiz_attempt_answers", in_={"attempt_id": attempt_ids})
        store.delete("quiz_attempts", in_={"id": attempt_ids})
    _delete_questions(store, quiz_id)
    store.delete("quizzes", eq={"id": quiz_id, "user_id": user_id})
    logger.info(f"[quizzes] deleted quiz {quiz_id}")


def create_question(store, quiz_id: str, user_id: str, data: QuestionInput) -> Dict[str, Any]:
    _owned_quiz(store, quiz_id, user_id)
    question = _insert_questions(store, quiz_id, [data.model_dump()])[0]
    store.update("quizzes", {"updated_at": utcnow_iso()}, eq={"id": quiz_id})
    return question


# ------------------------------------------------------------
# Taking
# ------------------------------------------------------------
def submit_attempt(store, quiz_id: str, user_id: str, data: SubmitQuizRequest) -> Dict[str, Any]:
    quiz = get_quiz(store, quiz_id, user_id)
    graded = grade_submission(
        quiz["questions"],
        [{"questionId": a.question_id, "optionId": a.option_id} for a in data.answers],
    )

    now = utcnow_iso()
    attempt = store.insert("quiz_attempts", [{
        "user_id": user_id,
        "quiz_id": quiz_id,
        "score": graded["score"],
        "percentage": graded["percentage"],
        "started_at": now,
        "completed_at": now,
    }])[0]
    store.insert("quiz_attempt_answers", [
        {
            "attempt_id": attempt["id"],
            "question_id": r["questionId"],
            "selected_option_id": r["selectedOptionId"],
            "is_correct": r["isCorrect"],
        }
        for r in graded["results"]
    ])
    logger.info(
        f"[quizzes] user={user_id} scored {graded['score']}/{len(graded['results'])} on quiz {quiz_id}"
    )
    return {
        "attemptId": attempt["id"],
        "score": graded["score"],
        "percentage": graded["percentage"],
        "results": graded["results"],
        "completedAt": attempt["completed_at"],
    }


# ------------------------------------------------------------
# AI assistance while editing
# ------------------------------------------------------------
def _context_for(store, quiz_id: Optional[str], user_id: str, context, with_questions: bool) -> Dict[str, Any]:
    if quiz_id:
        quiz = _owned_quiz(store, quiz_id, user_id)
        result = {
            "title": quiz["title"],
            "description": quiz.get("description"),
            "difficulty": quiz["difficulty"],
            "original_prompt": quiz.get("original_prompt") or quiz["title"],
            "existing_questions": [],
        }
        if with_questions:
            result["existing_questions"] = [
                {
                    "question_text": q["question_text"],
                    "options": [
                        {"option_text": o["option_text"], "is_correct": o["is_correct"]} for o in q["options"]
                    ],
                }
                for q in load_questions(store, [quiz_id])[quiz_id]
            ]
        return result
    if context is None:
        raise AppError("Context is required for prototype mode", 400)
    return context.model_dump()


async def generate_questions_for_quiz(store, user_id: str, data: GenerateQuestionsRequest) -> Dict[str, Any]:
    context = await run_in_threadpool(_context_for, store, data.quiz_id, user_id, data.context, True)
    result = await openai_qg.generate_additional_questions(context, data.count)
    logger.info(f"[quizzes] generated {len(result['questions'])} questions for {data.quiz_id or PROTOTYPE_ID}")
    return result


async def enhance_quiz_question(store, user_id: str, data: EnhanceQuestionRequest) -> Dict[str, Any]:
    context = await run_in_threadpool(_context_for, store, data.quiz_id, user_id, data.context, False)
    return await openai_qg.enhance_question(data.question_text, context)


async def generate_options_for_question(store, user_id: str, data: GenerateOptionsRequest) -> Dict[str, Any]:
    if data.quiz_id:
        await run_in_threadpool(_owned_quiz, store, data.quiz_id, user_id)
    return await openai_qg.generate_additional_options(
        data.question_text, [o.model_dump() for o in data.existing_options], data.options_count
    )


async def question_type_suggestions(store, user_id: str, data: QuestionTypeSuggestionsRequest) -> Dict[str, Any]:
    if data.quiz_id:
        await run_in_threadpool(_owned_quiz, store, data.quiz_id, user_id)
    return await openai_qg.suggest_question_types(data.topic, data.difficulty)
