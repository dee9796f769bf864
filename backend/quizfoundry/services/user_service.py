# backend/quizfoundry/services/user_service.py

import logging, uuid
from typing import Any, Dict, List, Optional

from ..core.config import Settings
from ..core.errors import AppError, StoreError
from ..core.schemas import LoginRequest, SignupRequest
from ..core.security import create_access_token, hash_password, verify_password
from . import onboarding_service, session_service

logger = logging.getLogger("quizfoundry.users")

AVATAR_BUCKET = "avatars"
AVATAR_TYPES = {"image/jpeg": "jpg", "image/png": "png", "image/gif": "gif", "image/webp": "webp"}
AVATAR_MAX_BYTES = 5 * 1024 * 1024
AVATAR_MIN_BYTES = 100


# ------------------------------------------------------------
# Profiles
# ------------------------------------------------------------
def get_all_users(store) -> List[Dict[str, Any]]:
    return store.select("profiles", order="created_at", descending=True)


def get_user_by_id(store, user_id: str) -> Optional[Dict[str, Any]]:
    rows = store.select("profiles", eq={"id": user_id})
    return rows[0] if rows else None


def with_onboarding_flag(store, profile: Dict[str, Any]) -> Dict[str, Any]:
    progress = onboarding_service.get_onboarding_progress(store, profile["id"])
    return {**profile, "is_onboarding_complete": bool(progress and progress.get("is_complete"))}


def create_user_profile(store, user_id: str, name: Optional[str] = None,
                        role: Optional[str] = None, avatar_url: Optional[str] = None) -> Dict[str, Any]:
    try:
        return store.insert("profiles", [{
            "id": user_id, "name": name, "role": role, "avatar_url": avatar_url, "bio": None,
        }])[0]
    except StoreError as e:
        raise AppError(f"Failed to create user profile: {e.message}", 400)


def update_user_profile(store, user_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
    if not values:
        user = get_user_by_id(store, user_id)
        if user is None:
            raise AppError("User not found", 404)
        return user
    rows = store.update("profiles", values, eq={"id": user_id})
    if not rows:
        raise AppError("User not found", 404)
    logger.info(f"[users] updated profile {user_id}: {sorted(values)}")
    return rows[0]


def ensure_external_profile(store, user_id: str, email: str) -> Dict[str, Any]:
    """Profile for a user authenticated elsewhere (e.g. OAuth); created on first sight."""
    profile = get_user_by_id(store, user_id)
    if profile is None:
        profile = create_user_profile(store, user_id, name=email.split("@")[0])
        logger.info(f"[users] created profile for external user {user_id}")
    return with_onboarding_flag(store, profile)


# ------------------------------------------------------------
# Signup / login
# ------------------------------------------------------------
def _login_response(store, settings: Settings, auth_user: Dict[str, Any], profile: Dict[str, Any],
                    user_agent: Optional[str], ip_address: Optional[str]) -> Dict[str, Any]:
    session = session_service.create_session(store, auth_user["id"], user_agent, ip_address)
    token = create_access_token(
        auth_user["id"], auth_user["email"], settings.jwt_secret, settings.access_token_ttl_seconds
    )
    return {
        "user": with_onboarding_flag(store, profile),
        "session": {
            "access_token": token["access_token"],
            "refresh_token": session["refresh_token"],
            "expires_at": token["expires_at"],
        },
    }


def signup_user(store, settings: Settings, data: SignupRequest,
                user_agent: Optional[str] = None, ip_address: Optional[str] = None) -> Dict[str, Any]:
    if store.select("auth_users", eq={"email": data.email}):
        raise AppError("Failed to create user: A user with this email address has already been registered", 400)

    auth_user = store.insert("auth_users", [{
        "email": data.email,
        "password_hash": hash_password(data.password),
        "provider": "email",
    }])[0]

    try:
        profile = create_user_profile(store, auth_user["id"], name=data.name)
    except AppError as e:
        store.delete("auth_users", eq={"id": auth_user["id"]})
        raise AppError(e.message, 500)

    logger.info(f"[users] registered user {auth_user['id']}")
    return _login_response(store, settings, auth_user, profile, user_agent, ip_address)


def login_user(store, settings: Settings, data: LoginRequest,
               user_agent: Optional[str] = None, ip_address: Optional[str] = None) -> Dict[str, Any]:
    rows = store.select("auth_users", eq={"email": data.email})
    if not rows or not verify_password(rows[0]["password_hash"], data.password):
        logger.warning(f"[users] failed login for {data.email}")
        raise AppError("Invalid email or password", 401)
    auth_user = rows[0]

    profile = get_user_by_id(store, auth_user["id"])
    if profile is None:
        raise AppError("User profile not found", 404)
    return _login_response(store, settings, auth_user, profile, user_agent, ip_address)


def refresh_login(store, settings: Settings, refresh_token: str) -> Dict[str, Any]:
    session = session_service.refresh_session(store, refresh_token)
    if session is None:
        raise AppError("Invalid or expired session", 401)
    rows = store.select("auth_users", eq={"id": session["user_id"]})
    if not rows:
        session_service.invalidate_session(store, session["session_token"])
        raise AppError("Invalid or expired session", 401)
    token = create_access_token(
        rows[0]["id"], rows[0]["email"], settings.jwt_secret, settings.access_token_ttl_seconds
    )
    return {
        "access_token": token["access_token"],
        "refresh_token": session["refresh_token"],
        "expires_at": token["expires_at"],
    }


# ------------------------------------------------------------
# Avatars
# ------------------------------------------------------------
def upload_user_avatar(store, user_id: str, content: bytes, content_type: str) -> Dict[str, Any]:
    if not content_type.startswith("image/"):
        raise AppError("Only image files are allowed", 400)
    if content_type not in AVATAR_TYPES:
        raise AppError("Unsupported image type. Please use JPEG, PNG, GIF, or WebP", 400)
    if len(content) == 0:
        raise AppError("Uploaded file is empty", 400)
    if len(content) > AVATAR_MAX_BYTES:
        raise AppError("File too large. Maximum size is 5MB", 400)
    if len(content) < AVATAR_MIN_BYTES:
        raise AppError("Invalid image file", 400)

    path = f"{user_id}/{uuid.uuid4()}.{AVATAR_TYPES[content_type]}"
    url = store.upload(AVATAR_BUCKET, path, content, content_type)
    profile = update_user_profile(store, user_id, {"avatar_url": url})
    logger.info(f"[users] stored avatar for {user_id} ({len(content)} bytes)")
    return {"avatar_url": url, "user": profile}
