"""
Call record store - sole owner of persisted Call and Order rows.

Every public method is its own unit of work (single-row read or write followed
by commit). Nothing here spans a multi-row transaction: a status write that
already committed stays committed even if a later order write fails.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from callorders.models.call import Call
from callorders.models.order import Order
from callorders.services.errors import OrderSaveError, StorageError

logger = logging.getLogger(__name__)

ORDER_SAVE_ERROR_CODE = "parse_error"
ORDER_SAVE_ERROR_MESSAGE = "Order present but failed to save"
DIAL_FAILED_ERROR_CODE = "dial_failed"

_DB_ERRORS = (SQLAlchemyError, OSError)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_uuid(value) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _text_or_none(value) -> Optional[str]:
    """Strings pass through, numbers are stringified, anything else is dropped."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def order_row_values(order_payload: dict) -> dict:
    """Columns copied out of the extracted order object."""
    customer = order_payload.get("customer")
    if not isinstance(customer, dict):
        customer = {}

    total = order_payload.get("total_cents")
    if isinstance(total, bool):
        total = None
    elif isinstance(total, float):
        total = int(total) if total.is_integer() else None
    elif not isinstance(total, int):
        total = None

    return {
        "customer_name": _text_or_none(customer.get("name")),
        "customer_phone": _text_or_none(customer.get("phone")),
        "total_cents": total,
    }


class CallStore:
    """
    Persistence for calls and their orders, bound to one AsyncSession.

    Writes are Core UPDATE/INSERT statements, so reads use populate_existing
    to never hand back a stale identity-map row.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _rollback_quietly(self) -> None:
        try:
            await self._session.rollback()
        except _DB_ERRORS as e:
            logger.error("Rollback failed: %s", str(e))

    def _dialect_name(self) -> str:
        bind = self._session.bind
        return bind.dialect.name if bind is not None else ""

    # === LOOKUPS ===

    async def find_by_provider_id(self, provider_call_id: str) -> Optional[Call]:
        """Exact-match lookup on the Vapi call id."""
        try:
            result = await self._session.execute(
                select(Call)
                .where(Call.vapi_call_id == provider_call_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except _DB_ERRORS as e:
            logger.error("Call lookup failed for vapi_call_id=%s: %s", provider_call_id, str(e))
            await self._rollback_quietly()
            raise StorageError("call lookup failed") from e

    async def get_call(self, call_id) -> Optional[Call]:
        try:
            return await self._session.get(Call, _to_uuid(call_id), populate_existing=True)
        except _DB_ERRORS as e:
            await self._rollback_quietly()
            raise StorageError("call lookup failed") from e

    async def list_recent_calls(self, limit: int = 50) -> Sequence[Call]:
        try:
            result = await self._session.execute(
                select(Call)
                .order_by(Call.created_at.desc())
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return result.scalars().all()
        except _DB_ERRORS as e:
            await self._rollback_quietly()
            raise StorageError("call listing failed") from e

    async def list_recent_orders(self, limit: int = 50) -> Sequence[Order]:
        try:
            result = await self._session.execute(
                select(Order)
                .order_by(Order.created_at.desc())
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return result.scalars().all()
        except _DB_ERRORS as e:
            await self._rollback_quietly()
            raise StorageError("order listing failed") from e

    # === INBOUND ===

    async def create_inbound(self, provider_call_id: str, raw: Optional[dict]) -> Call:
        """
        Insert an inbound call first seen through a webhook.
        Raises IntegrityError untouched when another request won the insert,
        so resolve() can re-fetch instead of failing.
        """
        call = Call(
            direction="inbound",
            status="dialing",
            vapi_call_id=provider_call_id,
            created_by=None,
            last_event_at=_now(),
            raw=raw,
        )
        self._session.add(call)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._rollback_quietly()
            raise
        except _DB_ERRORS as e:
            logger.error("Failed to insert inbound call %s: %s", provider_call_id, str(e))
            await self._rollback_quietly()
            raise StorageError("inbound call insert failed") from e

        logger.info(
            "Inbound call created for vapi_call_id=%s",
            provider_call_id,
            extra={"call_id": str(call.id), "vapi_call_id": provider_call_id},
        )
        return call

    async def resolve(self, provider_call_id: str, raw: Optional[dict]) -> tuple[Call, bool]:
        """
        Find the call for *provider_call_id*, creating an inbound one if unseen.
        Returns (call, created). Losing a concurrent insert race is treated as
        the existing-call path.
        """
        existing = await self.find_by_provider_id(provider_call_id)
        if existing is not None:
            return existing, False

        try:
            return await self.create_inbound(provider_call_id, raw), True
        except IntegrityError:
            logger.info(
                "Concurrent insert for vapi_call_id=%s - re-fetching",
                provider_call_id,
            )

        winner = await self.find_by_provider_id(provider_call_id)
        if winner is None:
            raise StorageError("call vanished after unique-constraint conflict")
        return winner, False

    # === STATUS ===

    async def update_status(
        self,
        call_id,
        next_status: str,
        raw: Optional[dict],
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Write status, raw payload and last_event_at. Error fields only when given."""
        values: dict = {
            "status": next_status,
            "raw": raw,
            "last_event_at": _now(),
        }
        if error_code is not None:
            values["error_code"] = error_code
        if error_message is not None:
            values["error_message"] = error_message

        await self._write_call(call_id, values, "status update")

    async def mark_status(
        self,
        call_id,
        status: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Status-only write that leaves the stored raw payload alone."""
        values: dict = {"status": status, "last_event_at": _now()}
        if error_code is not None:
            values["error_code"] = error_code
        if error_message is not None:
            values["error_message"] = error_message
        await self._write_call(call_id, values, "status mark")

    async def _write_call(self, call_id, values: dict, action: str) -> None:
        values["updated_at"] = _now()
        try:
            await self._session.execute(
                update(Call)
                .where(Call.id == _to_uuid(call_id))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self._session.commit()
        except _DB_ERRORS as e:
            logger.error("Call %s failed for %s: %s", action, call_id, str(e))
            await self._rollback_quietly()
            raise StorageError(f"call {action} failed") from e

    # === ORDERS ===

    async def upsert_order(self, call_id, order_payload: dict, raw: Optional[dict]) -> Order:
        """
        Insert or replace the single order for *call_id*, then mark the call completed.
        On failure the call is marked failed/parse_error and OrderSaveError is raised.
        """
        call_uuid = _to_uuid(call_id)
        try:
            order_id = await self._write_order(call_uuid, order_payload, raw)
            await self._session.commit()
        except _DB_ERRORS as e:
            logger.error(
                "Failed to upsert order for call %s: %s", call_id, str(e),
                extra={"call_id": str(call_id), "error_code": ORDER_SAVE_ERROR_CODE},
            )
            await self._rollback_quietly()
            try:
                await self.mark_status(
                    call_uuid,
                    "failed",
                    error_code=ORDER_SAVE_ERROR_CODE,
                    error_message=ORDER_SAVE_ERROR_MESSAGE,
                )
            except StorageError:
                logger.error("Could not mark call %s failed after order save error", call_id)
            raise OrderSaveError(ORDER_SAVE_ERROR_MESSAGE, call_id=str(call_id)) from e

        try:
            await self.mark_status(call_uuid, "completed")
        except StorageError:
            # Order is saved; the next delivery of the event will retry this write
            logger.error("Order saved but call %s could not be marked completed", call_id)

        try:
            result = await self._session.execute(
                select(Order)
                .where(Order.id == order_id)
                .execution_options(populate_existing=True)
            )
            order = result.scalar_one_or_none()
        except _DB_ERRORS as e:
            await self._rollback_quietly()
            raise StorageError("order reload failed") from e
        if order is None:
            raise OrderSaveError(ORDER_SAVE_ERROR_MESSAGE, call_id=str(call_id))
        return order

    async def _write_order(self, call_uuid: uuid.UUID, order_payload: dict, raw: Optional[dict]) -> uuid.UUID:
        values = {
            "status": "completed",
            "payload": order_payload,
            "raw": raw,
            **order_row_values(order_payload),
        }
        now = _now()
        dialect = self._dialect_name()

        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert as dialect_insert
            else:
                from sqlalchemy.dialects.sqlite import insert as dialect_insert

            stmt = dialect_insert(Order).values(
                id=uuid.uuid4(), call_id=call_uuid, created_at=now, updated_at=now, **values
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[Order.call_id],
                set_={**values, "updated_at": now},
            ).returning(Order.id)
            result = await self._session.execute(stmt)
            return result.scalar_one()

        # Portable fallback for dialects without ON CONFLICT
        result = await self._session.execute(select(Order).where(Order.call_id == call_uuid))
        order = result.scalar_one_or_none()
        if order is None:
            order = Order(call_id=call_uuid, **values)
            self._session.add(order)
        else:
            for key, value in values.items():
                setattr(order, key, value)
        await self._session.flush()
        return order.id

    # === OUTBOUND ===

    async def create_outbound(
        self,
        created_by: Optional[str],
        customer_phone: str,
        customer_name: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Call:
        """Insert a queued outbound call before asking Vapi to dial."""
        call = Call(
            direction="outbound",
            status="queued",
            created_by=created_by,
            customer_name=customer_name,
            customer_phone=customer_phone,
            call_metadata=metadata or {},
        )
        self._session.add(call)
        try:
            await self._session.commit()
        except _DB_ERRORS as e:
            logger.error("Failed to insert outbound call: %s", str(e))
            await self._rollback_quietly()
            raise StorageError("outbound call insert failed") from e
        return call

    async def mark_dialing(self, call_id, provider_call_id: str) -> None:
        """Attach the Vapi call id once placement succeeded."""
        await self._write_call(
            call_id,
            {"status": "dialing", "vapi_call_id": provider_call_id, "last_event_at": _now()},
            "post-placement update",
        )

    async def mark_dial_failed(self, call_id, message: str) -> None:
        await self.mark_status(
            call_id,
            "failed",
            error_code=DIAL_FAILED_ERROR_CODE,
            error_message=message,
        )
