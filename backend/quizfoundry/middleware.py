# backend/quizfoundry/middleware.py

import json, logging, time

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .core.validation import sanitize_payload

logger = logging.getLogger("quizfoundry.http")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "Cross-Origin-Opener-Policy": "same-origin",
}

# JSON bodies larger than this are rejected with 413 before parsing.
MAX_JSON_BODY_BYTES = 100 * 1024


# Middleware to log requests
class LogRequestMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class SanitizeInputMiddleware:
    """Rewrites JSON request bodies through sanitize_payload before routing."""

    def __init__(self, app: ASGIApp):
        self.app = app

    @staticmethod
    def _is_json(scope: Scope) -> bool:
        for name, value in scope.get("headers") or []:
            if name == b"content-type":
                return value.split(b";")[0].strip().lower() == b"application/json"
        return False

    @staticmethod
    def _declared_length(scope: Scope) -> int:
        for name, value in scope.get("headers") or []:
            if name == b"content-length" and value.isdigit():
                return int(value)
        return 0

    @staticmethod
    async def _too_large(scope: Scope, receive: Receive, send: Send) -> None:
        logger.warning(f"[http] rejected oversized JSON body on {scope.get('path')}")
        response = JSONResponse(status_code=413, content={"success": False, "error": "Request body too large"})
        await response(scope, receive, send)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self._is_json(scope):
            await self.app(scope, receive, send)
            return

        if self._declared_length(scope) > MAX_JSON_BODY_BYTES:
            await self._too_large(scope, receive, send)
            return

        chunks = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > MAX_JSON_BODY_BYTES:
                await self._too_large(scope, receive, send)
                return
            chunks.append(chunk)
            more_body = message.get("more_body", False)
        body = b"".join(chunks)

        if body:
            try:
                body = json.dumps(sanitize_payload(json.loads(body))).encode("utf-8")
            except ValueError:
                logger.debug(f"non-JSON body on {scope.get('path')}; passed through unchanged")

        headers = [(k, v) for k, v in scope["headers"] if k != b"content-length"]
        headers.append((b"content-length", str(len(body)).encode("latin-1")))
        scope = {**scope, "headers": headers}

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if replayed:
                return await receive()
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}

        await self.app(scope, replay, send)
