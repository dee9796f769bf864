# backend/quizfoundry/routes/onboarding.py

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..core.schemas import CompleteOnboardingRequest, UpdateOnboardingRequest, envelope, parse_body
from ..deps import AuthUser, authenticate, get_store
from ..services import onboarding_service

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


@router.get("/progress")
def progress(user: AuthUser = Depends(authenticate), store=Depends(get_store)):
    return envelope(onboarding_service.get_onboarding_progress(store, user.id))


@router.post("/update")
def update(payload: Any = Body(None), user: AuthUser = Depends(authenticate), store=Depends(get_store)):
    data = parse_body(UpdateOnboardingRequest, payload, message="Invalid input data")
    result = onboarding_service.update_onboarding_progress(store, user.id, data)
    return envelope(result, "Onboarding progress updated successfully")


@router.post("/complete")
def complete(payload: Any = Body(None), user: AuthUser = Depends(authenticate), store=Depends(get_store)):
    data = parse_body(CompleteOnboardingRequest, payload, message="Invalid input data")
    profile = onboarding_service.complete_onboarding(store, user.id, data)
    return envelope({"user": profile}, "Onboarding completed successfully")
