# backend/quizfoundry/deps.py

import logging
from typing import Callable, Optional

from fastapi import Depends, Request
from pydantic import BaseModel

from .core.config import Settings
from .core.errors import AppError
from .core.security import decode_access_token
from .services import onboarding_service

logger = logging.getLogger("quizfoundry.auth")


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None


# ------------------------------------------------------------
# App-scoped objects
# ------------------------------------------------------------
def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request):
    return request.app.state.store


# ------------------------------------------------------------
# Authentication
# ------------------------------------------------------------
def authenticate(request: Request, settings: Settings = Depends(get_settings_dep)) -> AuthUser:
    header = request.headers.get("authorization", "")
    if not header.startswith("Bearer "):
        raise AppError("Access token required", 401)

    claims = decode_access_token(header.split(" ", 1)[1].strip(), settings.jwt_secret)
    user = AuthUser(id=claims["sub"], email=claims.get("email"))
    request.state.user_id = user.id
    return user


def require_completed_onboarding(
    user: AuthUser = Depends(authenticate), store=Depends(get_store)
) -> AuthUser:
    if not onboarding_service.is_onboarding_complete(store, user.id):
        raise AppError("Onboarding must be completed to access this resource", 403)
    return user


# ------------------------------------------------------------
# Rate limiting
# ------------------------------------------------------------
def client_key(request: Request) -> str:
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return user_id
    return request.client.host if request.client else "anonymous"


def rate_limit(name: str) -> Callable[[Request], None]:
    """Dependency applying the named limiter; list it after authenticate to key by user."""

    def _limit(request: Request) -> None:
        settings: Settings = request.app.state.settings
        if settings.rate_limits_disabled:
            return
        limiter = request.app.state.limiters[name]
        key = client_key(request)
        try:
            limiter.hit(key)
        except AppError:
            logger.warning(f"[ratelimit] {name} exceeded for {key} on {request.url.path}")
            raise

    return _limit
