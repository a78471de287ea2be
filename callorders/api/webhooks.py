"""
Vapi webhook endpoint.

Vapi authenticates with a static bearer secret, retries on any non-2xx, and
may deliver the same event several times or out of order.
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from callorders.config import get_settings
from callorders.database import get_db
from callorders.services.webhook_ingestion import WebhookIngestionService
from callorders.utils.debug_capture import get_webhook_capture
from callorders.utils.webhook_auth import compute_payload_hash

logger = logging.getLogger(__name__)
router = APIRouter(tags=["webhooks"])
debug_router = APIRouter(tags=["debug"])


@router.post("/webhooks/vapi")
async def vapi_webhook(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
):
    body = await request.body()
    try:
        payload = json.loads(body) if body else {}
    except ValueError:
        # Unparseable bodies carry no call id; let ingestion reject them after auth
        payload = None

    logger.debug("Vapi webhook received (sha256=%s)", compute_payload_hash(body)[:16])

    service = WebhookIngestionService(db, get_settings(), capture=get_webhook_capture())
    result = await service.ingest(payload, authorization)
    return JSONResponse(status_code=result.http_status, content=result.to_body())


@debug_router.get("/debug/last-webhook")
async def last_webhook():
    """Most recently received webhook payload (local inspection only)."""
    capture = get_webhook_capture()
    entry = capture.latest() if capture is not None else None
    if entry is None:
        return JSONResponse(status_code=404, content={"error": "no_webhook_seen"})
    return entry
