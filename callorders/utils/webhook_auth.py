"""
Webhook authentication - Vapi sends the shared secret as a bearer token.
"""
import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def verify_bearer(authorization: Optional[str], expected_secret: str) -> bool:
    """
    True when *authorization* is exactly "Bearer <expected_secret>".
    Comparison is constant-time; an empty configured secret never matches.
    """
    if not authorization or not expected_secret:
        return False
    expected = f"{BEARER_PREFIX}{expected_secret}"
    return hmac.compare_digest(authorization.encode("utf-8"), expected.encode("utf-8"))


def compute_payload_hash(body: bytes) -> str:
    """SHA-256 of the raw payload, for log correlation of retried deliveries."""
    return hashlib.sha256(body).hexdigest()
