# backend/quizfoundry/app.py

import logging, time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import Settings, get_settings
from .core.errors import AppError
from .core import openai_qg
from .core.ratelimits import build_limiters
from .core.schemas import error_messages
from .core.store import create_store
from .middleware import LogRequestMiddleware, SanitizeInputMiddleware, SecurityHeadersMiddleware
from .routes import ROUTERS
from .services import session_service

logger = logging.getLogger("quizfoundry")


# ------------------------------------------------------------
# Lifespan
# ------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.openai_api_key:
        openai_qg.configure_openai(settings.openai_api_key, settings.openai_model)
    else:
        logger.warning("OPENAI_API_KEY is not set; AI features will fail until it is configured")
    removed = session_service.cleanup_all_expired_sessions(app.state.store)
    logger.info(f"QuizFoundry started on port {settings.port} ({settings.environment}); purged {removed} sessions")
    yield
    logger.info("QuizFoundry shutting down")


# ------------------------------------------------------------
# Exception handlers
# ------------------------------------------------------------
def _user_id(request: Request) -> str:
    return getattr(request.state, "user_id", None) or "anonymous"


async def app_error_handler(request: Request, exc: AppError):
    logger.warning(
        f"[ERROR] {request.method} {request.url.path} ({exc.status_code}): {exc.message} user={_user_id(request)}"
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.warning(f"[ERROR] {request.method} {request.url.path}: validation error {errors}")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "; ".join(error_messages(errors)),
            "details": jsonable_encoder(errors),
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"[ERROR] {request.method} {request.url.path}: unhandled exception user={_user_id(request)}",
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal Server Error"})


# ------------------------------------------------------------
# Factory
# ------------------------------------------------------------
def create_app(settings: Settings | None = None, store=None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(title="QuizFoundry API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store if store is not None else create_store(settings)
    app.state.limiters = build_limiters()
    app.state.started_at = time.monotonic()

    app.add_middleware(SanitizeInputMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(LogRequestMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    for router in ROUTERS:
        app.include_router(router)

    if settings.rate_limits_disabled:
        logger.warning("Rate limits are disabled (SKIP_RATE_LIMITS in development)")
    return app


app = create_app()
