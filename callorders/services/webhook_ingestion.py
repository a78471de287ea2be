"""
Vapi webhook ingestion - authenticate, normalize, reconcile, persist.

The flow for one delivery:
    1. Bearer check (no side effects on failure)
    2. Normalize (no side effects when the call id is missing)
    3. Resolve or create the call
    4. Reconcile status
    5. Persist status + raw payload (always, even when the status is unchanged)
    6. Upsert the order when one is present

Steps 5 and 6 commit separately. An order failure after step 5 leaves the
status write in place and is reported so the provider retries the delivery.
A failed step 5 only aborts the delivery when it carried a status change.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from callorders.config import Settings
from callorders.services.call_store import CallStore
from callorders.services.errors import (
    MissingIdentifierError,
    OrderSaveError,
    StorageError,
)
from callorders.services.event_normalizer import NormalizedEvent, normalize_event
from callorders.services.status_reconciler import is_regression, reconcile_status
from callorders.utils.debug_capture import WebhookCapture
from callorders.utils.webhook_auth import verify_bearer

logger = logging.getLogger(__name__)

ERROR_HTTP_STATUS = {
    "unauthorized": 401,
    "missing_identifier": 400,
    "storage_error": 500,
    "order_save_failed": 500,
}


@dataclass
class IngestResult:
    ok: bool
    call_id: Optional[str] = None
    order_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def http_status(self) -> int:
        if self.ok:
            return 200
        return ERROR_HTTP_STATUS.get(self.error, 500)

    def to_body(self) -> dict:
        if not self.ok:
            return {"error": self.error}
        body = {"ok": True, "callId": self.call_id}
        if self.order_id is not None:
            body["orderId"] = self.order_id
        return body

    @classmethod
    def failure(cls, error: str, call_id: Optional[str] = None) -> "IngestResult":
        return cls(ok=False, error=error, call_id=call_id)


class WebhookIngestionService:
    """One instance per request; holds that request's session."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        capture: Optional[WebhookCapture] = None,
    ):
        self.store = CallStore(session)
        self.settings = settings
        self.capture = capture

    async def ingest(self, raw_payload: Any, authorization: Optional[str]) -> IngestResult:
        if self.capture is not None:
            self.capture.record(raw_payload)

        if not verify_bearer(authorization, self.settings.vapi_webhook_bearer):
            logger.warning("Rejected Vapi webhook with invalid bearer")
            return IngestResult.failure("unauthorized")

        try:
            event = normalize_event(raw_payload)
        except MissingIdentifierError:
            logger.warning("Vapi webhook without a call id - ignoring")
            return IngestResult.failure("missing_identifier")

        if not self.settings.webhook_call_lock_enabled:
            return await self._process(event, raw_payload)

        from callorders.utils.locks import LockTimeoutError, call_lock
        try:
            async with call_lock(event.provider_call_id):
                return await self._process(event, raw_payload)
        except LockTimeoutError as e:
            logger.warning(
                "%s - processing without lock", str(e),
                extra={"vapi_call_id": event.provider_call_id},
            )
        return await self._process(event, raw_payload)

    async def _process(self, event: NormalizedEvent, raw_payload: Any) -> IngestResult:
        raw = raw_payload if isinstance(raw_payload, dict) else None

        try:
            call, created = await self.store.resolve(event.provider_call_id, raw)
        except StorageError:
            logger.error(
                "Could not resolve call for vapi_call_id=%s", event.provider_call_id,
                exc_info=True,
                extra={"vapi_call_id": event.provider_call_id},
            )
            return IngestResult.failure("storage_error")

        call_id = str(call.id)
        current = call.status
        next_status = reconcile_status(current, event.status_hint)

        if is_regression(current, next_status):
            logger.info(
                "Applying backward status hint %s -> %s", current, next_status,
                extra={"call_id": call_id, "vapi_call_id": event.provider_call_id},
            )

        try:
            await self.store.update_status(call.id, next_status, raw)
        except StorageError:
            if next_status != current:
                logger.error(
                    "Failed to persist status %s for call %s", next_status, call_id,
                    exc_info=True,
                    extra={"call_id": call_id, "status": next_status},
                )
                return IngestResult.failure("storage_error", call_id=call_id)
            # Status unchanged: only raw and last_event_at were lost
            logger.error(
                "Failed to update raw payload for call %s", call_id,
                exc_info=True,
                extra={"call_id": call_id, "status": current},
            )

        logger.info(
            "Vapi event applied: %s -> %s%s",
            current, next_status, " (new inbound call)" if created else "",
            extra={
                "call_id": call_id,
                "vapi_call_id": event.provider_call_id,
                "status": next_status,
            },
        )

        if event.order_payload is None:
            return IngestResult(ok=True, call_id=call_id)

        try:
            order = await self.store.upsert_order(call.id, event.order_payload, raw)
        except OrderSaveError:
            return IngestResult.failure("order_save_failed", call_id=call_id)
        except StorageError:
            logger.error("Order for call %s saved but could not be read back", call_id, exc_info=True)
            return IngestResult.failure("storage_error", call_id=call_id)

        logger.info(
            "Order %s saved for call %s", order.id, call_id,
            extra={"call_id": call_id, "status": "completed"},
        )
        return IngestResult(ok=True, call_id=call_id, order_id=str(order.id))
