"""
Domain exceptions shared by the webhook ingestion path and the outbound call flow.
"""
from typing import Optional


class CallOrdersError(Exception):
    """Base class for all callorders domain errors."""


class MissingIdentifierError(CallOrdersError):
    """Webhook payload carries no Vapi call id at any known location."""


class StorageError(CallOrdersError):
    """Backing store failed on a lookup or write."""


class OrderSaveError(CallOrdersError):
    """Order upsert failed after the call status was already advanced."""

    def __init__(self, message: str, call_id: Optional[str] = None):
        super().__init__(message)
        self.call_id = call_id


class VapiError(CallOrdersError):
    """Vapi rejected the request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
