"""
Vapi call-placement client - REST API.

Auth: Bearer token via VAPI_API_KEY.
Docs: https://docs.vapi.ai/api-reference/calls/create
All calls have 10-second timeout.
"""
import logging
from typing import Optional

import httpx

from callorders.services.errors import VapiError

logger = logging.getLogger(__name__)

TIMEOUT = 10.0


class VapiClient:
    """Places outbound calls through a configured Vapi assistant and phone line."""

    def __init__(
        self,
        api_key: str,
        assistant_id: str,
        phone_number_id: str,
        base_url: str = "https://api.vapi.ai",
    ):
        self.assistant_id = assistant_id
        self.phone_number_id = phone_number_id
        self.base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @classmethod
    def from_settings(cls, settings) -> "VapiClient":
        return cls(
            api_key=settings.vapi_api_key,
            assistant_id=settings.vapi_assistant_id,
            phone_number_id=settings.vapi_phone_number_id,
            base_url=settings.vapi_base_url,
        )

    async def create_call(
        self,
        customer_phone: str,
        customer_name: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> str:
        """
        Ask Vapi to dial *customer_phone*. Returns the Vapi call id.
        Raises VapiError on transport failure, non-2xx status, or a response without an id.
        """
        customer = {"number": customer_phone}
        if customer_name:
            customer["name"] = customer_name

        payload = {
            "assistantId": self.assistant_id,
            "phoneNumberId": self.phone_number_id,
            "customer": customer,
            "metadata": metadata or {},
        }

        try:
            async with httpx.AsyncClient(timeout=TIMEOUT) as client:
                response = await client.post(
                    f"{self.base_url}/call",
                    headers=self._headers,
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error("Vapi create-call rejected: %d %s", status_code, e.response.text[:200])
            raise VapiError(
                f"Vapi create-call failed: {status_code} {e.response.text}",
                status_code=status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error("Vapi create-call transport error: %s", str(e))
            raise VapiError(f"Vapi create-call failed: {e}") from e
        except ValueError as e:
            raise VapiError("Vapi create-call returned invalid JSON") from e

        call_id = data.get("id") if isinstance(data, dict) else None
        if not call_id:
            raise VapiError("Vapi create-call response has no call id")

        logger.info("Vapi call created: %s", call_id, extra={"vapi_call_id": call_id, "provider": "vapi"})
        return str(call_id)
