"""
Outbound call initiation - record the call, ask Vapi to dial, record the outcome.

The call row is inserted as "queued" before Vapi is contacted so every attempt
is traceable, and its id travels to Vapi as metadata.callId.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from callorders.services.call_store import CallStore
from callorders.services.errors import StorageError, VapiError
from callorders.services.vapi import VapiClient

logger = logging.getLogger(__name__)


@dataclass
class OutboundCallResult:
    call_id: str
    vapi_call_id: Optional[str] = None
    status: str = "dialing"
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.vapi_call_id is not None


async def place_outbound_call(
    store: CallStore,
    vapi: VapiClient,
    created_by: Optional[str],
    customer_phone: str,
    customer_name: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> OutboundCallResult:
    """
    Insert a queued call and dial it.

    Raises StorageError when the initial insert fails. A Vapi failure marks the
    call failed/dial_failed and is returned, not raised. A failed
    post-placement update is logged only.
    """
    call = await store.create_outbound(
        created_by=created_by,
        customer_phone=customer_phone,
        customer_name=customer_name,
        metadata=metadata,
    )
    call_id = str(call.id)

    try:
        vapi_call_id = await vapi.create_call(
            customer_phone=customer_phone,
            customer_name=customer_name,
            metadata={**(metadata or {}), "callId": call_id},
        )
    except VapiError as e:
        message = str(e) or "unknown"
        logger.warning(
            "Outbound call %s could not be placed: %s", call_id, message,
            extra={"call_id": call_id, "direction": "outbound", "error_code": "dial_failed"},
        )
        try:
            await store.mark_dial_failed(call.id, message)
        except StorageError:
            logger.error("Could not mark call %s dial_failed", call_id)
        return OutboundCallResult(call_id=call_id, status="failed", error_message=message)

    try:
        await store.mark_dialing(call.id, vapi_call_id)
    except StorageError:
        logger.error(
            "Failed to attach vapi_call_id %s to call %s", vapi_call_id, call_id,
            extra={"call_id": call_id, "vapi_call_id": vapi_call_id},
        )

    logger.info(
        "Outbound call %s dialing", call_id,
        extra={"call_id": call_id, "vapi_call_id": vapi_call_id, "direction": "outbound", "status": "dialing"},
    )
    return OutboundCallResult(call_id=call_id, vapi_call_id=vapi_call_id)
