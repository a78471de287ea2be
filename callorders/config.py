"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = Field(default=4000, gt=0)
    log_level: str = "INFO"

    # Database
    database_url: str
    database_pool_size: int = 10
    database_max_overflow: int = 5

    # Redis (readiness check + optional per-call webhook lock)
    redis_url: str = "redis://localhost:6379/0"

    # Vapi
    vapi_api_key: str = Field(min_length=10)
    vapi_phone_number_id: str = Field(min_length=3)
    vapi_assistant_id: str = Field(min_length=3)
    vapi_base_url: str = "https://api.vapi.ai"

    # Vapi webhook auth: configured as a bearer token on the Vapi side
    vapi_webhook_bearer: str = Field(min_length=10)

    # Staff auth (Supabase-issued access tokens, HS256)
    supabase_jwt_secret: str = ""
    supabase_jwt_audience: str = "authenticated"

    # Dashboard
    public_dashboard_origin: Optional[str] = None

    # Sentry
    sentry_dsn: str = ""

    # Diagnostics
    debug_webhook_capture_enabled: bool = False
    debug_webhook_capture_size: int = Field(default=20, ge=1, le=500)

    # Serialize webhook processing per provider call id (Redis lock)
    webhook_call_lock_enabled: bool = False

    @field_validator("public_dashboard_origin")
    @classmethod
    def _validate_origin(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("PUBLIC_DASHBOARD_ORIGIN must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("vapi_base_url")
    @classmethod
    def _strip_base_url(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
