# backend/quizfoundry/routes/meta.py

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from ..core.schemas import HealthResponse, MetaResponse

health_router = APIRouter(tags=["meta"])
router = APIRouter(prefix="/api/meta", tags=["meta"])


@health_router.get("/health", response_model=HealthResponse)
def health(request: Request):
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - request.app.state.started_at,
    }


@router.get("/test", response_model=MetaResponse)
def meta_test():
    return {"message": "Hello from QuizFoundry!", "success": True}
