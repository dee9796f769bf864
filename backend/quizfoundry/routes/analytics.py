# backend/quizfoundry/routes/analytics.py

from fastapi import APIRouter, Depends

from ..core.errors import AppError
from ..core.schemas import envelope
from ..core.validation import is_uuid
from ..deps import AuthUser, get_store, rate_limit, require_completed_onboarding
from ..services import analytics_service

router = APIRouter(
    prefix="/api/analytics",
    tags=["analytics"],
    dependencies=[Depends(require_completed_onboarding), Depends(rate_limit("general_api"))],
)


@router.get("/quiz/{quiz_id}")
def quiz_analytics(quiz_id: str, user: AuthUser = Depends(require_completed_onboarding), store=Depends(get_store)):
    if not is_uuid(quiz_id):
        raise AppError("Invalid quiz ID format", 400)
    return envelope(
        analytics_service.get_quiz_analytics(store, quiz_id, user.id),
        "Quiz analytics retrieved successfully",
    )


@router.get("/creator")
def creator_analytics(user: AuthUser = Depends(require_completed_onboarding), store=Depends(get_store)):
    return envelope(
        analytics_service.get_creator_analytics(store, user.id),
        "Creator analytics retrieved successfully",
    )


@router.get("/participant")
def participant_analytics(user: AuthUser = Depends(require_completed_onboarding), store=Depends(get_store)):
    return envelope(
        analytics_service.get_participant_analytics(store, user.id),
        "Participant analytics retrieved successfully",
    )


@router.get("/overview")
def overview_analytics(user: AuthUser = Depends(require_completed_onboarding), store=Depends(get_store)):
    return envelope(
        analytics_service.get_overview_analytics(store, user.id),
        "Overview analytics retrieved successfully",
    )
