# backend/quizfoundry/core/security.py

import secrets, time
from typing import Any, Dict

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import AppError

ALGORITHM = "HS256"


# ------------------------------------------------------------
# Passwords
# ------------------------------------------------------------
def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


# ------------------------------------------------------------
# Tokens
# ------------------------------------------------------------
def new_opaque_token() -> str:
    """128 hex characters (64 random bytes), used for session and refresh tokens."""
    return secrets.token_hex(64)


def create_access_token(user_id: str, email: str, secret: str, ttl_seconds: int) -> Dict[str, Any]:
    if not secret:
        raise AppError("JWT secret not configured", 500)
    issued = int(time.time())
    expires_at = issued + ttl_seconds
    token = jwt.encode(
        {"sub": user_id, "email": email, "iat": issued, "exp": expires_at},
        secret,
        algorithm=ALGORITHM,
    )
    return {"access_token": token, "expires_at": expires_at}


def decode_access_token(token: str, secret: str) -> Dict[str, Any]:
    if not secret:
        raise AppError("JWT secret not configured", 500)
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM], options={"verify_aud": False})
    except jwt.PyJWTError:
        raise AppError("Invalid access token", 401)
    if not claims.get("sub"):
        raise AppError("Invalid access token", 401)
    return claims
