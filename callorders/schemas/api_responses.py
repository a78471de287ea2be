"""
Request/response schemas for the call and order endpoints.
Field names follow the dashboard's camelCase wire format.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateCallRequest(BaseModel):
    customerPhone: str = Field(min_length=7)
    customerName: Optional[str] = Field(default=None, min_length=1)
    metadata: Optional[dict[str, Any]] = None


class CreateCallResponse(BaseModel):
    callId: str
    vapiCallId: str
    status: str = "dialing"


class CallSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    vapi_call_id: Optional[str] = None
    direction: str
    status: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    last_event_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class OrderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    call_id: str
    status: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    total_cents: Optional[int] = None
    payload: dict[str, Any] = {}
    created_at: Optional[datetime] = None


class CallListResponse(BaseModel):
    calls: list[CallSummary]


class OrderListResponse(BaseModel):
    orders: list[OrderSummary]
