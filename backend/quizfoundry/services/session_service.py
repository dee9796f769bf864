# backend/quizfoundry/services/session_service.py

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..core.security import new_opaque_token
from ..core.store import parse_ts, utcnow_iso

logger = logging.getLogger("quizfoundry.sessions")

SESSION_DURATION = timedelta(days=30)
SESSIONS = "user_sessions"


def _expiry(now: Optional[datetime] = None) -> str:
    return ((now or datetime.now(timezone.utc)) + SESSION_DURATION).isoformat()


def _is_expired(session: Dict[str, Any], now: datetime) -> bool:
    return parse_ts(session["expires_at"]) < now


def create_session(
    store, user_id: str, user_agent: Optional[str] = None, ip_address: Optional[str] = None
) -> Dict[str, Any]:
    """Open a 30-day session for the user, then drop their expired or inactive ones."""
    session = store.insert(SESSIONS, [{
        "user_id": user_id,
        "session_token": new_opaque_token(),
        "refresh_token": new_opaque_token(),
        "expires_at": _expiry(),
        "user_agent": user_agent,
        "ip_address": ip_address,
        "is_active": True,
    }])[0]
    cleanup_user_expired_sessions(store, user_id)
    logger.info(f"[sessions] created session for user={user_id}")
    return session


def _find(store, column: str, token: str) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    rows = store.select(SESSIONS, eq={column: token, "is_active": True})
    return rows[0] if rows else None


def validate_session(store, session_token: str, column: str = "session_token") -> Optional[Dict[str, Any]]:
    """Return the active, unexpired session for the token, or None. Expired sessions are deactivated."""
    session = _find(store, column, session_token)
    if session is None:
        return None
    if _is_expired(session, datetime.now(timezone.utc)):
        invalidate_session(store, session["session_token"])
        return None
    store.update(SESSIONS, {"updated_at": utcnow_iso()}, eq={"id": session["id"]})
    return session


def refresh_session(store, refresh_token: str) -> Optional[Dict[str, Any]]:
    session = validate_session(store, refresh_token, column="refresh_token")
    if session is None:
        return None
    updated = store.update(
        SESSIONS, {"expires_at": _expiry(), "updated_at": utcnow_iso()}, eq={"id": session["id"]}
    )
    return updated[0] if updated else None


def invalidate_session(store, session_token: str) -> None:
    store.update(SESSIONS, {"is_active": False, "updated_at": utcnow_iso()},
                 eq={"session_token": session_token})


def invalidate_session_by_refresh_token(store, refresh_token: str, user_id: str) -> int:
    """Deactivate the user's session holding this refresh token; other users' sessions are untouched."""
    rows = store.update(SESSIONS, {"is_active": False, "updated_at": utcnow_iso()},
                        eq={"refresh_token": refresh_token, "user_id": user_id})
    return len(rows)


def invalidate_all_user_sessions(store, user_id: str) -> None:
    store.update(SESSIONS, {"is_active": False, "updated_at": utcnow_iso()}, eq={"user_id": user_id})
    logger.info(f"[sessions] invalidated all sessions for user={user_id}")


def _stale_ids(sessions: List[Dict[str, Any]], now: datetime) -> List[str]:
    return [s["id"] for s in sessions if not s.get("is_active") or _is_expired(s, now)]


def cleanup_user_expired_sessions(store, user_id: str) -> int:
    stale = _stale_ids(store.select(SESSIONS, eq={"user_id": user_id}), datetime.now(timezone.utc))
    return store.delete(SESSIONS, in_={"id": stale}) if stale else 0


def cleanup_all_expired_sessions(store) -> int:
    stale = _stale_ids(store.select(SESSIONS), datetime.now(timezone.utc))
    removed = store.delete(SESSIONS, in_={"id": stale}) if stale else 0
    logger.info(f"[sessions] purged {removed} expired or inactive sessions")
    return removed


def get_user_sessions(store, user_id: str) -> List[Dict[str, Any]]:
    return store.select(
        SESSIONS, eq={"user_id": user_id, "is_active": True}, order="updated_at", descending=True
    )


def public_view(session: Dict[str, Any]) -> Dict[str, Any]:
    """Session metadata without its secrets."""
    return {k: v for k, v in session.items() if k not in ("session_token", "refresh_token")}
