"""
Replay a sequence of Vapi webhook events against a running server.

Usage:
    python scripts/simulate_webhook.py --bearer "$VAPI_WEBHOOK_BEARER"
    python scripts/simulate_webhook.py --scenario out_of_order
    python scripts/simulate_webhook.py --call-id call_abc123 --scenario duplicate
"""
import argparse
import asyncio
import logging
import uuid

import httpx

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:4000"


def sample_order() -> dict:
    return {
        "customer": {"name": "Jane Doe", "phone": "+15125559876"},
        "items": [
            {"name": "Large pepperoni pizza", "quantity": 1, "price_cents": 1899},
            {"name": "Garlic knots", "quantity": 2, "price_cents": 499},
        ],
        "total_cents": 2897,
    }


def build_events(call_id: str, scenario: str) -> list[dict]:
    started = {"type": "call.started", "call": {"id": call_id}}
    connected = {"type": "call-connected", "call": {"id": call_id}}
    ended = {"type": "call_ended", "call": {"id": call_id}}
    report = {
        "message": {"type": "end-of-call-report", "call": {"id": call_id}},
        "artifact": {"order": sample_order()},
    }

    if scenario == "happy":
        return [started, connected, ended, report]
    if scenario == "out_of_order":
        return [connected, started, report, ended]
    if scenario == "duplicate":
        return [started, connected, connected, report, report]
    if scenario == "failed":
        return [started, {"type": "call.failed", "callId": call_id}]
    raise ValueError(f"Unknown scenario: {scenario}")


async def send_event(client: httpx.AsyncClient, event: dict, bearer: str) -> httpx.Response:
    resp = await client.post(
        f"{BASE_URL}/webhooks/vapi",
        json=event,
        headers={"Authorization": f"Bearer {bearer}"},
    )
    logger.info("%s -> %s %s", event.get("type") or event.get("message", {}).get("type"), resp.status_code, resp.text)
    return resp


async def main():
    global BASE_URL
    parser = argparse.ArgumentParser(description="Simulate Vapi webhook deliveries")
    parser.add_argument("--scenario", default="happy", choices=["happy", "out_of_order", "duplicate", "failed"])
    parser.add_argument("--call-id", default=None)
    parser.add_argument("--bearer", default="local-webhook-secret")
    parser.add_argument("--base-url", default=BASE_URL)
    args = parser.parse_args()

    BASE_URL = args.base_url.rstrip("/")
    call_id = args.call_id or f"sim_{uuid.uuid4().hex[:12]}"
    logger.info("Simulating %s scenario for vapi call %s...", args.scenario, call_id)

    async with httpx.AsyncClient(timeout=30) as client:
        for event in build_events(call_id, args.scenario):
            await send_event(client, event, args.bearer)


if __name__ == "__main__":
    asyncio.run(main())
