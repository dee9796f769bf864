# backend/quizfoundry/routes/auth.py

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from ..core.config import Settings
from ..core.errors import AppError
from ..core.schemas import LoginRequest, LogoutRequest, RefreshRequest, SignupRequest, envelope, parse_body
from ..deps import AuthUser, authenticate, get_settings_dep, get_store, rate_limit
from ..services import session_service, user_service

logger = logging.getLogger("quizfoundry.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _client(request: Request):
    return request.headers.get("user-agent"), request.client.host if request.client else None


@router.post("/register", dependencies=[Depends(rate_limit("auth_operations"))])
def register(
    request: Request,
    payload: Any = Body(None),
    store=Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
):
    data = parse_body(SignupRequest, payload)
    result = user_service.signup_user(store, settings, data, *_client(request))
    return JSONResponse(envelope(result, "User created successfully"), status_code=201)


@router.post("/login", dependencies=[Depends(rate_limit("auth_operations"))])
def login(
    request: Request,
    payload: Any = Body(None),
    store=Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
):
    data = parse_body(LoginRequest, payload, message="Invalid input data")
    return envelope(user_service.login_user(store, settings, data, *_client(request)), "Login successful")


@router.post("/refresh", dependencies=[Depends(rate_limit("auth_operations"))])
def refresh(
    payload: Any = Body(None),
    store=Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
):
    data = parse_body(RefreshRequest, payload)
    return envelope(user_service.refresh_login(store, settings, data.refresh_token), "Session refreshed")


@router.post("/logout")
def logout(payload: Any = Body(None), user: AuthUser = Depends(authenticate), store=Depends(get_store)):
    data = parse_body(LogoutRequest, payload)
    if data.all_sessions:
        session_service.invalidate_all_user_sessions(store, user.id)
    elif data.refresh_token:
        session_service.invalidate_session_by_refresh_token(store, data.refresh_token, user.id)
    logger.info(f"[auth] user={user.id} logged out (all_sessions={data.all_sessions})")
    return envelope(None, "Logged out successfully")


@router.get("/sessions")
def sessions(user: AuthUser = Depends(authenticate), store=Depends(get_store)):
    return envelope([session_service.public_view(s) for s in session_service.get_user_sessions(store, user.id)])


@router.post("/google-profile")
def google_profile(user: AuthUser = Depends(authenticate), store=Depends(get_store)):
    if not user.email:
        raise AppError("User not authenticated", 401)
    profile = user_service.ensure_external_profile(store, user.id, user.email)
    return envelope({"user": profile}, "User profile ready")
