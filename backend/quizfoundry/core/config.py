# backend/quizfoundry/core/config.py

import os, logging
from functools import lru_cache
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger("quizfoundry.config")

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Process configuration, read from the environment (and .env)."""

    port: int = 2003
    secret_key: str = Field(min_length=1)
    jwt_secret: str = ""
    access_token_ttl_seconds: int = Field(default=3600, gt=0)
    frontend_url: Optional[str] = None
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    environment: str = "development"
    log_level: str = "INFO"

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    store_backend: str = "memory"

    bypass_checks: bool = False
    skip_rate_limits: bool = False

    @field_validator("store_backend")
    @classmethod
    def _known_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "supabase"):
            raise ValueError("STORE_BACKEND must be 'memory' or 'supabase'")
        return v

    @model_validator(mode="after")
    def _fill_defaults(self) -> "Settings":
        if not self.jwt_secret:
            self.jwt_secret = self.secret_key
        if self.store_backend == "supabase" and not (
            self.supabase_url and self.supabase_service_role_key
        ):
            raise ValueError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the supabase store"
            )
        return self

    @property
    def allowed_origins(self) -> List[str]:
        origins = list(self.cors_origins)
        if self.frontend_url and self.frontend_url not in origins:
            origins.insert(0, self.frontend_url)
        return origins

    @property
    def rate_limits_disabled(self) -> bool:
        return self.environment == "development" and self.skip_rate_limits


def settings_from_env(environ: Mapping[str, str]) -> Settings:
    """Build Settings from an environment mapping. Raises ValidationError."""
    values = {
        "secret_key": environ.get("SECRET_KEY", ""),
        "jwt_secret": environ.get("JWT_SECRET") or environ.get("SUPABASE_JWT_SECRET", ""),
        "frontend_url": environ.get("FRONTEND_URL") or None,
        "environment": environ.get("ENVIRONMENT") or environ.get("NODE_ENV") or "development",
        "log_level": environ.get("LOG_LEVEL", "INFO").upper(),
        "openai_api_key": environ.get("OPENAI_API_KEY", ""),
        "supabase_url": environ.get("SUPABASE_URL") or None,
        "supabase_service_role_key": environ.get("SUPABASE_SERVICE_ROLE_KEY") or None,
        "bypass_checks": environ.get("BYPASS_CHECKS", "").lower() in _TRUTHY,
        "skip_rate_limits": environ.get("SKIP_RATE_LIMITS", "").lower() in _TRUTHY,
    }
    if environ.get("PORT"):
        values["port"] = environ["PORT"]
    if environ.get("ACCESS_TOKEN_TTL_SECONDS"):
        values["access_token_ttl_seconds"] = environ["ACCESS_TOKEN_TTL_SECONDS"]
    if environ.get("OPENAI_MODEL"):
        values["openai_model"] = environ["OPENAI_MODEL"]
    if environ.get("CORS_ORIGINS"):
        values["cors_origins"] = [o.strip() for o in environ["CORS_ORIGINS"].split(",") if o.strip()]
    values["store_backend"] = environ.get("STORE_BACKEND") or (
        "supabase" if values["supabase_url"] else "memory"
    )
    return Settings(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process; exit with status 1 on invalid environment."""
    load_dotenv()
    try:
        return settings_from_env(os.environ)
    except ValidationError as e:
        logger.error(f"[!] Found invalid environment variables: {e.errors()}")
        raise SystemExit(1)
