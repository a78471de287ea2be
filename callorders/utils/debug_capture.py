"""
In-memory capture of recent webhook payloads for the debug endpoint.

Process-wide and bounded; nothing is persisted. Only wired up when
DEBUG_WEBHOOK_CAPTURE_ENABLED is set.
"""
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional

from callorders.config import get_settings

DEFAULT_CAPTURE_SIZE = 20


class WebhookCapture:
    """Bounded ring of the most recent (timestamp, payload) pairs."""

    def __init__(self, size: int = DEFAULT_CAPTURE_SIZE):
        self._entries: deque = deque(maxlen=size)
        self._lock = threading.Lock()

    def record(self, payload: Any) -> None:
        entry = {
            "received_at": datetime.now(timezone.utc).isoformat(),
            "payload": payload,
        }
        with self._lock:
            self._entries.append(entry)

    def latest(self) -> Optional[dict]:
        with self._lock:
            return self._entries[-1] if self._entries else None

    def recent(self) -> list[dict]:
        """Newest first."""
        with self._lock:
            return list(reversed(self._entries))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_capture: Optional[WebhookCapture] = None


def get_webhook_capture() -> Optional[WebhookCapture]:
    """Shared capture buffer, or None when capture is disabled."""
    global _capture
    settings = get_settings()
    if not settings.debug_webhook_capture_enabled:
        return None
    if _capture is None:
        _capture = WebhookCapture(size=settings.debug_webhook_capture_size)
    return _capture


def reset_webhook_capture() -> None:
    global _capture
    _capture = None
