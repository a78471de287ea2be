"""
Staff-facing call and order endpoints.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from callorders.api.auth import get_current_staff
from callorders.config import get_settings
from callorders.database import get_db
from callorders.schemas.api_responses import (
    CallListResponse,
    CallSummary,
    CreateCallRequest,
    CreateCallResponse,
    OrderListResponse,
    OrderSummary,
)
from callorders.services.call_store import CallStore
from callorders.services.errors import StorageError
from callorders.services.outbound_calls import place_outbound_call
from callorders.services.vapi import VapiClient

logger = logging.getLogger(__name__)
router = APIRouter(tags=["calls"])

RECENT_LIMIT = 50


def get_vapi_client() -> VapiClient:
    return VapiClient.from_settings(get_settings())


@router.post("/calls", response_model=CreateCallResponse)
async def create_call(
    body: CreateCallRequest,
    staff_id: str = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
    vapi: VapiClient = Depends(get_vapi_client),
):
    """Place an outbound call on behalf of a staff member."""
    store = CallStore(db)
    try:
        result = await place_outbound_call(
            store,
            vapi,
            created_by=staff_id,
            customer_phone=body.customerPhone,
            customer_name=body.customerName,
            metadata=body.metadata,
        )
    except StorageError:
        raise HTTPException(status_code=500, detail="failed_to_create_call")

    if not result.ok:
        return JSONResponse(
            status_code=502,
            content={
                "error": "vapi_create_call_failed",
                "message": result.error_message,
                "callId": result.call_id,
            },
        )

    return CreateCallResponse(callId=result.call_id, vapiCallId=result.vapi_call_id)


@router.get("/calls", response_model=CallListResponse)
async def list_calls(
    staff_id: str = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    try:
        calls = await CallStore(db).list_recent_calls(RECENT_LIMIT)
    except StorageError:
        raise HTTPException(status_code=500, detail="failed_to_list_calls")

    return CallListResponse(
        calls=[
            CallSummary(
                id=str(c.id),
                vapi_call_id=c.vapi_call_id,
                direction=c.direction,
                status=c.status,
                customer_name=c.customer_name,
                customer_phone=c.customer_phone,
                error_code=c.error_code,
                error_message=c.error_message,
                last_event_at=c.last_event_at,
                created_at=c.created_at,
            )
            for c in calls
        ]
    )


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    staff_id: str = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    try:
        orders = await CallStore(db).list_recent_orders(RECENT_LIMIT)
    except StorageError:
        raise HTTPException(status_code=500, detail="failed_to_list_orders")

    return OrderListResponse(
        orders=[
            OrderSummary(
                id=str(o.id),
                call_id=str(o.call_id),
                status=o.status,
                customer_name=o.customer_name,
                customer_phone=o.customer_phone,
                total_cents=o.total_cents,
                payload=o.payload or {},
                created_at=o.created_at,
            )
            for o in orders
        ]
    )
