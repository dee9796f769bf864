# backend/quizfoundry/core/errors.py

from typing import Any, Dict, Optional


class AppError(Exception):
    """Error carrying an HTTP status; rendered as {"success": false, "error": ...}."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Any = None,
        code: Optional[str] = None,
        validation_result: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details
        self.code = code
        self.validation_result = validation_result

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "error": self.message}
        if self.validation_result:
            payload["validation_result"] = self.validation_result
        if self.details:
            payload["details"] = self.details
        if self.code:
            payload["code"] = self.code
        return payload


# ------------------------------------------------------------
# AI errors
# ------------------------------------------------------------
class AIGenerationError(AppError):
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message, 500, code="AI_GENERATION_ERROR")
        self.retryable = retryable


class ContentRefusalError(AppError):
    def __init__(self, message: str, reasoning: str):
        super().__init__(message, 400, code="CONTENT_REFUSED")
        self.reasoning = reasoning


class InvalidResponseError(AppError):
    def __init__(self, message: str, raw_response: Optional[str] = None):
        super().__init__(message, 500, code="INVALID_AI_RESPONSE")
        self.raw_response = raw_response


# ------------------------------------------------------------
# Persistence errors
# ------------------------------------------------------------
class StoreError(AppError):
    def __init__(self, message: str):
        super().__init__(message, 500, code="STORE_ERROR")
