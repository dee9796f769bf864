# backend/quizfoundry/routes/__init__.py
"""HTTP routers, in the order they are mounted."""

from . import analytics, auth, manual_quizzes, meta, onboarding, quizzes, users

ROUTERS = (
    meta.health_router,
    meta.router,
    auth.router,
    users.router,
    onboarding.router,
    quizzes.router,
    manual_quizzes.router,
    analytics.router,
)

__all__ = ["ROUTERS"]
