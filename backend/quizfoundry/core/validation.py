# backend/quizfoundry/core/validation.py

import re
from dataclasses import dataclass, field
from typing import Any, List

# ------------------------------------------------------------
# Password rules
# ------------------------------------------------------------
@dataclass(frozen=True)
class PasswordRequirements:
    min_length: int = 6
    require_uppercase: bool = False
    require_lowercase: bool = False
    require_numbers: bool = False


@dataclass
class PasswordValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


DEFAULT_PASSWORD_REQUIREMENTS = PasswordRequirements()


def validate_password(
    password: str,
    requirements: PasswordRequirements = DEFAULT_PASSWORD_REQUIREMENTS,
) -> PasswordValidationResult:
    """Check a password against the requirements, collecting every failure."""
    errors: List[str] = []

    if len(password) < requirements.min_length:
        errors.append(f"Password must be at least {requirements.min_length} characters")
    if requirements.require_uppercase and not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if requirements.require_lowercase and not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if requirements.require_numbers and not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")

    return PasswordValidationResult(is_valid=not errors, errors=errors)


def get_password_requirements(
    requirements: PasswordRequirements = DEFAULT_PASSWORD_REQUIREMENTS,
) -> List[str]:
    reqs = [f"At least {requirements.min_length} characters"]
    if requirements.require_uppercase:
        reqs.append("At least one uppercase letter")
    if requirements.require_lowercase:
        reqs.append("At least one lowercase letter")
    if requirements.require_numbers:
        reqs.append("At least one number")
    return reqs


# ------------------------------------------------------------
# Input sanitisation
# ------------------------------------------------------------
_SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)


def sanitize_value(value: str) -> str:
    """Trim whitespace and strip script tags, javascript: URLs and inline handlers."""
    cleaned = _SCRIPT_TAG.sub("", value.strip())
    cleaned = _JS_PROTOCOL.sub("", cleaned)
    return _EVENT_HANDLER.sub("", cleaned)


def sanitize_payload(obj: Any) -> Any:
    if isinstance(obj, str):
        return sanitize_value(obj)
    if isinstance(obj, dict):
        return {k: sanitize_payload(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [sanitize_payload(v) for v in obj]
    return obj


# ------------------------------------------------------------
# Identifiers
# ------------------------------------------------------------
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def is_email(value: Any) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.match(value))
