"""
Vapi webhook payload normalizer.

Vapi moves fields around depending on assistant/server configuration, so every
value is looked up through an ordered list of accessors; the first present,
non-null value wins. The event-name field is canonicalised (lowercase, any of
". - _ whitespace" collapsed to "_") before a single table lookup.

Pure functions only - nothing here touches storage.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from callorders.services.errors import MissingIdentifierError

logger = logging.getLogger(__name__)

STATUS_TOKENS = frozenset(
    {"queued", "dialing", "in_progress", "processing", "completed", "failed"}
)

# Canonical event name -> status hint
EVENT_STATUS_TABLE: dict[str, str] = {
    "call_connected": "in_progress",
    "connected": "in_progress",
    "call_started": "dialing",
    "call_ended": "processing",
    "call_failed": "failed",
    "end_of_call_report": "processing",
}

_SEPARATORS = re.compile(r"[.\-_\s]+")

Accessor = Callable[[dict], Any]


def _path(*keys: str) -> Accessor:
    """Build an accessor that walks nested dicts and returns None on any gap."""
    def accessor(payload: dict) -> Any:
        node: Any = payload
        for key in keys:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        return node
    accessor.__name__ = ".".join(keys)
    return accessor


CALL_ID_ACCESSORS: tuple[Accessor, ...] = (
    _path("call", "id"),
    _path("callId"),
    _path("id"),
    _path("data", "call", "id"),
    _path("data", "callId"),
    _path("message", "call", "id"),
)

STATUS_ACCESSORS: tuple[Accessor, ...] = (
    _path("status"),
    _path("message", "status"),
)

EVENT_TYPE_ACCESSORS: tuple[Accessor, ...] = (
    _path("type"),
    _path("message", "type"),
    _path("event"),
)

ORDER_ACCESSORS: tuple[Accessor, ...] = (
    _path("order"),
    _path("data", "order"),
    _path("artifact", "order"),
)


@dataclass(frozen=True)
class NormalizedEvent:
    provider_call_id: str
    status_hint: Optional[str] = None
    order_payload: Optional[dict] = None


def first_present(payload: Any, accessors: tuple[Accessor, ...]) -> Any:
    """Return the first non-null value produced by *accessors*, or None."""
    if not isinstance(payload, dict):
        return None
    for accessor in accessors:
        value = accessor(payload)
        if value is not None:
            return value
    return None


def canonical_event_name(name: str) -> str:
    """'call.started', 'Call-Started' and 'call_started' all become 'call_started'."""
    return _SEPARATORS.sub("_", name.strip().lower()).strip("_")


def extract_provider_call_id(payload: Any) -> Optional[str]:
    value = first_present(payload, CALL_ID_ACCESSORS)
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    value = str(value).strip()
    return value or None


def extract_status_hint(payload: Any) -> Optional[str]:
    """
    Explicit status field first (only if it is a known token), then the
    event-name table. None means the event implies no status change.
    """
    status = first_present(payload, STATUS_ACCESSORS)
    if isinstance(status, str) and status in STATUS_TOKENS:
        return status

    event_type = first_present(payload, EVENT_TYPE_ACCESSORS)
    if isinstance(event_type, str):
        return EVENT_STATUS_TABLE.get(canonical_event_name(event_type))
    return None


def extract_order_payload(payload: Any) -> Optional[dict]:
    order = first_present(payload, ORDER_ACCESSORS)
    if isinstance(order, dict):
        return order
    if order is not None:
        logger.warning("Ignoring non-object order payload of type %s", type(order).__name__)
    return None


def normalize_event(payload: Any) -> NormalizedEvent:
    """
    Reduce a raw Vapi webhook payload to (provider_call_id, status_hint, order_payload).
    Raises MissingIdentifierError when no call id is present anywhere.
    """
    provider_call_id = extract_provider_call_id(payload)
    if not provider_call_id:
        raise MissingIdentifierError("missing_vapi_call_id")

    return NormalizedEvent(
        provider_call_id=provider_call_id,
        status_hint=extract_status_hint(payload),
        order_payload=extract_order_payload(payload),
    )
