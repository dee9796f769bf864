# backend/quizfoundry/routes/manual_quizzes.py

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from ..core.config import Settings
from ..core.schemas import (
    CreateManualQuizRequest,
    PrototypeQuizRequest,
    PublishManualQuizRequest,
    envelope,
    parse_body,
)
from ..deps import AuthUser, get_settings_dep, get_store, rate_limit, require_completed_onboarding
from ..services import quiz_service

router = APIRouter(prefix="/api/manual-quizzes", tags=["manual-quizzes"])


@router.post("", dependencies=[Depends(require_completed_onboarding), Depends(rate_limit("general_api"))])
def create_manual(
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
):
    data = parse_body(CreateManualQuizRequest, payload)
    quiz = quiz_service.create_manual_quiz(store, user.id, data)
    return JSONResponse(envelope({"quiz": quiz}, "Manual quiz created successfully"), status_code=201)


@router.post("/create-prototype", dependencies=[
    Depends(require_completed_onboarding), Depends(rate_limit("ai_operations"))
])
async def create_prototype(payload: Any = Body(None)):
    data = parse_body(PrototypeQuizRequest, payload)
    prototype = await quiz_service.create_prototype_quiz(data)
    return JSONResponse(
        envelope(
            {"prototype": prototype, "original_prompt": data.prompt},
            "Prototype quiz created successfully for manual editing",
        ),
        status_code=201,
    )


@router.post("/publish", dependencies=[
    Depends(require_completed_onboarding), Depends(rate_limit("security_validation"))
])
async def publish(
    payload: Any = Body(None),
    user: AuthUser = Depends(require_completed_onboarding),
    store=Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
):
    data = parse_body(PublishManualQuizRequest, payload)
    quiz = await quiz_service.publish_manual_quiz(store, settings, user.id, data)
    return JSONResponse(envelope({"quiz": quiz}, "Manual quiz published successfully"), status_code=201)
