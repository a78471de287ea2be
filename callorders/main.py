"""
callorders - Vapi voice-ordering backend.
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from callorders.api.health import VERSION
from callorders.api.router import api_router
from callorders.api.webhooks import debug_router
from callorders.config import get_settings
from callorders.database import dispose_engine
from callorders.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("callorders")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("callorders starting up (env=%s)", settings.app_env)

    if not settings.supabase_jwt_secret:
        logger.warning(
            "SUPABASE_JWT_SECRET not set - staff endpoints will reject every token."
        )
    if settings.debug_webhook_capture_enabled:
        logger.warning("Webhook capture enabled - GET /debug/last-webhook is exposed.")

    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.app_env,
            )
            logger.info("Sentry initialized")
        except Exception as e:
            logger.warning("Sentry initialization failed: %s", str(e))

    yield

    logger.info("callorders shutting down")
    await dispose_engine()
    if settings.webhook_call_lock_enabled:
        from callorders.utils.redis_client import close_redis
        await close_redis()


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPException details in the {"error": ...} shape the dashboard expects."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "internal_error"})


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="callorders",
        description="Vapi voice-ordering backend: outbound calls, webhook reconciliation, orders",
        version=VERSION,
        lifespan=lifespan,
    )

    allowed_origins = ["http://localhost:3000"]
    if settings.public_dashboard_origin:
        allowed_origins.append(settings.public_dashboard_origin)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "X-Correlation-ID",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Added after CORS so it runs on every request
    application.add_middleware(CorrelationIdMiddleware)

    application.add_exception_handler(HTTPException, http_exception_handler)
    application.add_exception_handler(Exception, unhandled_exception_handler)

    application.include_router(api_router)
    if settings.debug_webhook_capture_enabled:
        application.include_router(debug_router)

    return application


app = create_app()
