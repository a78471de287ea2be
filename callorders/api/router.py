"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter

from callorders.api.calls import router as calls_router
from callorders.api.health import router as health_router
from callorders.api.webhooks import router as webhooks_router

api_router = APIRouter()
api_router.include_router(webhooks_router)
api_router.include_router(calls_router)
api_router.include_router(health_router)
