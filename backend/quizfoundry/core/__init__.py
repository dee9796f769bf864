# backend/quizfoundry/core/__init__.py
"""
Core package for QuizFoundry.
Only exposes the error types and settings shared across layers.
"""

from .config import Settings, get_settings
from .errors import (
    AIGenerationError,
    AppError,
    ContentRefusalError,
    InvalidResponseError,
    StoreError,
)

__all__ = [
    "Settings",
    "get_settings",
    "AppError",
    "AIGenerationError",
    "ContentRefusalError",
    "InvalidResponseError",
    "StoreError",
]
