"""
Call status reconciliation.

    queued → dialing → in_progress → processing → completed
                 failed (from anywhere, including completed)

Vapi delivers events out of order and retries them, so the rule has to be
idempotent. Explicit hints are trusted and applied as-is, with one exception:
a late "dialing" may only move a call out of "queued", never rewind it.
"""
from typing import Optional

STATUS_ORDER = ("queued", "dialing", "in_progress", "processing", "completed")


def reconcile_status(current: str, hint: Optional[str]) -> str:
    """Return the status a call should have after an event carrying *hint*."""
    if hint is None:
        return current
    if hint == "failed":
        return "failed"
    # TODO: confirm against recorded Vapi traces whether other hints also need a rewind guard
    if hint == "dialing" and current != "queued":
        return current
    return hint


def is_regression(current: str, nxt: str) -> bool:
    """True when *nxt* sits earlier in the forward chain than *current*."""
    if current not in STATUS_ORDER or nxt not in STATUS_ORDER:
        return False
    return STATUS_ORDER.index(nxt) < STATUS_ORDER.index(current)
