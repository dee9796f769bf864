# backend/quizfoundry/routes/quizzes.py

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from ..core.config import Settings
from ..core.errors import AppError
from ..core.schemas import (
    DIFFICULTIES,
    AdvancedQuizRequest,
    EnhanceQuestionRequest,
    ExpressQuizRequest,
    GenerateOptionsRequest,
    GenerateQuestionsRequest,
    QuestionInput,
    QuestionTypeSuggestionsRequest,
    SubmitQuizRequest,
    UpdateQuizRequest,
    UpdateQuizWithQuestionsRequest,
    envelope,
    parse_body,
)
from ..deps import AuthUser, get_settings_dep, get_store, rate_limit, require_completed_onboarding
from ..services import quiz_service

logger = logging.getLogger("quizfoundry.quizzes")

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])

# Limiters run after onboarding so they key on the user id.
AI_LIMIT = [Depends(require_completed_onboarding), Depends(rate_limit("ai_operations"))]
GENERAL_LIMIT = [Depends(require_completed_onboarding), Depends(rate_limit("general_api"))]


def created(data: Any, message: str) -> JSONResponse:
    return JSONResponse(envelope(data, message), status_code=201)


# ------------------------------------------------------------
# Creation
# ------------------------------------------------------------
@router.post("/create/express", dependencies=AI_LIMIT)
async def create_express(
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
):
    data = parse_body(ExpressQuizRequest, payload)
    quiz = await quiz_service.create_quiz_express(store, user.id, data)
    return created(
        {"quiz": quiz_service.strip_answers(quiz), "mode": "express"},
        "Quiz created successfully in Express Mode",
    )


@router.post("/create/advanced", dependencies=AI_LIMIT)
async def create_advanced(payload: Any = Body(None), user: AuthUser = Depends(require_completed_onboarding)):
    data = parse_body(AdvancedQuizRequest, payload)
    quiz = await quiz_service.create_quiz_advanced(user.id, data)
    return created(
        {"quiz": quiz, "mode": "advanced", "is_manual_mode": True},
        "Quiz created successfully in Advanced Mode (Manual editing enabled)",
    )


@router.post("/surprise-me", dependencies=[
    Depends(require_completed_onboarding), Depends(rate_limit("creative_prompts"))
])
async def surprise_me():
    prompt = await quiz_service.surprise_prompt()
    return envelope({"prompt": prompt}, "Creative quiz prompt generated successfully")


# ------------------------------------------------------------
# Listings
# ------------------------------------------------------------
@router.get("/my", dependencies=GENERAL_LIMIT)
def my_quizzes(user: AuthUser = Depends(require_completed_onboarding), store=Depends(get_store)):
    return envelope({"quizzes": quiz_service.get_user_quizzes_with_stats(store, user.id)})


@router.get("/public")
def public_quizzes(
    limit: int = 50,
    offset: int = 0,
    search: Optional[str] = None,
    difficulty: Optional[str] = None,
    quiz_type: Optional[str] = Query(None, alias="type"),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    store=Depends(get_store),
):
    if limit > 100:
        raise AppError("Limit cannot exceed 100", 400)
    if limit < 1:
        raise AppError("Limit must be at least 1", 400)
    if offset < 0:
        raise AppError("Offset must be non-negative", 400)
    if difficulty is not None and difficulty not in DIFFICULTIES:
        raise AppError("Difficulty must be easy, medium, or hard", 400)
    if quiz_type is not None and quiz_type not in ("ai", "manual"):
        raise AppError("Type must be ai or manual", 400)
    if sort_by not in quiz_service.SORT_FIELDS:
        raise AppError("sortBy must be one of created_at, popularity, difficulty, title", 400)
    if sort_order not in ("asc", "desc"):
        raise AppError("sortOrder must be asc or desc", 400)

    return envelope(quiz_service.get_public_quizzes(
        store, limit, offset, search, difficulty, quiz_type, sort_by, sort_order
    ))


@router.get("/public/stats")
def public_stats(store=Depends(get_store)):
    return envelope(quiz_service.get_public_stats(store))


# ------------------------------------------------------------
# AI assistance
# ------------------------------------------------------------
@router.post("/ai/generate-questions", dependencies=AI_LIMIT)
async def ai_generate_questions(
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
):
    data = parse_body(GenerateQuestionsRequest, payload)
    result = await quiz_service.generate_questions_for_quiz(store, user.id, data)
    return envelope(result, f"Generated {len(result['questions'])} questions successfully")


@router.post("/ai/enhance-question", dependencies=AI_LIMIT)
async def ai_enhance_question(
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
):
    data = parse_body(EnhanceQuestionRequest, payload)
    return envelope(await quiz_service.enhance_quiz_question(store, user.id, data), "Question enhanced successfully")


@router.post("/ai/generate-options", dependencies=AI_LIMIT)
async def ai_generate_options(
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
):
    data = parse_body(GenerateOptionsRequest, payload)
    result = await quiz_service.generate_options_for_question(store, user.id, data)
    return envelope(result, f"Generated {len(result['options'])} options successfully")


@router.post("/ai/question-type-suggestions", dependencies=AI_LIMIT)
async def ai_question_types(
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
):
    data = parse_body(QuestionTypeSuggestionsRequest, payload)
    return envelope(
        await quiz_service.question_type_suggestions(store, user.id, data),
        "Question type suggestions generated successfully",
    )


# ------------------------------------------------------------
# Single quiz
# ------------------------------------------------------------
@router.get("/{quiz_id}/attempts")
def quiz_attempts(quiz_id: str, user: AuthUser = Depends(require_completed_onboarding), store=Depends(get_store)):
    return envelope({"attempts": quiz_service.get_quiz_attempts(store, quiz_id, user.id)})


@router.get("/{quiz_id}/preview")
def quiz_preview(quiz_id: str, user: AuthUser = Depends(require_completed_onboarding), store=Depends(get_store)):
    return envelope({"quiz": quiz_service.get_quiz_preview(store, quiz_id, user.id)})


@router.get("/{quiz_id}")
def get_quiz(quiz_id: str, user: AuthUser = Depends(require_completed_onboarding), store=Depends(get_store)):
    quiz = quiz_service.get_quiz(store, quiz_id, user.id)
    return envelope({"quiz": quiz_service.strip_answers(quiz)})


@router.put("/{quiz_id}")
async def update_quiz(
    quiz_id: str,
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
):
    data = parse_body(UpdateQuizRequest, payload)
    quiz = await quiz_service.update_quiz(store, settings, quiz_id, user.id, data)
    return envelope({"quiz": quiz}, "Quiz updated successfully")


@router.put("/{quiz_id}/full", dependencies=[
    Depends(require_completed_onboarding), Depends(rate_limit("security_validation"))
])
async def update_quiz_full(
    quiz_id: str,
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
):
    data = parse_body(UpdateQuizWithQuestionsRequest, payload)
    quiz = await quiz_service.update_quiz_with_questions(store, settings, quiz_id, user.id, data)
    return envelope({"quiz": quiz}, "Quiz updated successfully")


@router.delete("/{quiz_id}")
def delete_quiz(quiz_id: str, user: AuthUser = Depends(require_completed_onboarding), store=Depends(get_store)):
    quiz_service.delete_quiz(store, quiz_id, user.id)
    return {"success": True, "message": "Quiz deleted successfully"}


@router.post("/{quiz_id}/questions")
def add_question(
    quiz_id: str,
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
):
    data = parse_body(QuestionInput, payload)
    question = quiz_service.create_question(store, quiz_id, user.id, data)
    return created({"question": quiz_service.strip_question_answers(question)}, "Question added successfully")


@router.post("/{quiz_id}/submit", dependencies=GENERAL_LIMIT)
def submit_quiz(
    quiz_id: str,
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
):
    data = parse_body(SubmitQuizRequest, payload)
    return envelope(quiz_service.submit_attempt(store, quiz_id, user.id, data))
