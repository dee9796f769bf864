# backend/quizfoundry/services/onboarding_service.py

import logging
from typing import Any, Dict, Optional

from ..core.errors import AppError
from ..core.schemas import CompleteOnboardingRequest, UpdateOnboardingRequest
from ..core.store import utcnow_iso

logger = logging.getLogger("quizfoundry.onboarding")

PROGRESS = "onboarding_progress"
FINAL_STEP = 2


def get_onboarding_progress(store, user_id: str) -> Optional[Dict[str, Any]]:
    rows = store.select(PROGRESS, eq={"user_id": user_id})
    return rows[0] if rows else None


def is_onboarding_complete(store, user_id: str) -> bool:
    progress = get_onboarding_progress(store, user_id)
    return bool(progress and progress.get("is_complete"))


def _upsert(store, user_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
    if get_onboarding_progress(store, user_id) is None:
        return store.insert(PROGRESS, [{"user_id": user_id, "started_at": utcnow_iso(), **values}])[0]
    return store.update(PROGRESS, values, eq={"user_id": user_id})[0]


def update_onboarding_progress(store, user_id: str, data: UpdateOnboardingRequest) -> Dict[str, Any]:
    is_complete = bool(data.is_complete)
    progress = _upsert(store, user_id, {
        "flow_type": data.flow_type,
        "current_step": data.current_step,
        "is_complete": is_complete,
        "completed_at": utcnow_iso() if is_complete else None,
    })

    # Partial profile data captured along the way
    if data.onboarding_data:
        profile_values = data.onboarding_data.model_dump(exclude_none=True)
        if profile_values:
            store.update("profiles", profile_values, eq={"id": user_id})

    logger.info(f"[onboarding] user={user_id} step={data.current_step} complete={is_complete}")
    return progress


def complete_onboarding(store, user_id: str, data: CompleteOnboardingRequest) -> Dict[str, Any]:
    rows = store.update("profiles", {"name": data.name, "role": data.role}, eq={"id": user_id})
    if not rows:
        raise AppError("User not found", 404)

    _upsert(store, user_id, {
        "flow_type": "default",
        "current_step": FINAL_STEP,
        "is_complete": True,
        "completed_at": utcnow_iso(),
    })
    logger.info(f"[onboarding] user={user_id} completed onboarding")
    return {**rows[0], "is_onboarding_complete": True}
