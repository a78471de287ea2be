"""
Call model - one outbound or inbound voice interaction placed through Vapi.
Lifecycle: queued → dialing → in_progress → processing → completed.
Terminal states: completed, failed (failed is reachable from any state).
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from callorders.database import Base


class Call(Base):
    __tablename__ = "calls"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Join key for inbound webhook events. Unknown until Vapi accepts an outbound call.
    vapi_call_id: Mapped[Optional[str]] = mapped_column(String(128), unique=True)

    direction: Mapped[str] = mapped_column(String(10), nullable=False)  # outbound, inbound
    status: Mapped[str] = mapped_column(String(20), default="queued", nullable=False)

    # Customer
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    customer_phone: Mapped[Optional[str]] = mapped_column(String(32))

    # Failure details (only set when status == failed)
    error_code: Mapped[Optional[str]] = mapped_column(String(50))
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    # Diagnostics
    last_event_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    raw: Mapped[Optional[dict]] = mapped_column(JSONB)
    call_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSONB, default=dict)

    # Staff principal that placed the call; null for inbound calls
    created_by: Mapped[Optional[str]] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_calls_status", "status"),
        Index("ix_calls_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Call {self.id} {self.direction} status={self.status}>"
