"""
Tests for callorders/utils - logging, webhook auth, debug capture, locks.
"""
import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from callorders.utils.debug_capture import (
    WebhookCapture,
    get_webhook_capture,
    reset_webhook_capture,
)
from callorders.utils.locks import LockTimeoutError, call_lock, lock_key
from callorders.utils.logging import (
    StructuredJsonFormatter,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from callorders.utils.webhook_auth import compute_payload_hash, verify_bearer


# ---------------------------------------------------------------------------
# Webhook bearer check
# ---------------------------------------------------------------------------


class TestVerifyBearer:
    def test_valid(self):
        """Matching bearer token is accepted."""
        assert verify_bearer("Bearer s3cret-value", "s3cret-value") is True

    def test_wrong_secret(self):
        assert verify_bearer("Bearer other", "s3cret-value") is False

    def test_missing_header(self):
        """No Authorization header is rejected."""
        assert verify_bearer(None, "s3cret-value") is False
        assert verify_bearer("", "s3cret-value") is False

    def test_missing_prefix(self):
        """Bare secret without Bearer prefix is rejected."""
        assert verify_bearer("s3cret-value", "s3cret-value") is False

    def test_empty_configured_secret_never_matches(self):
        """Empty configured secret never authenticates."""
        assert verify_bearer("Bearer ", "") is False

    def test_payload_hash_is_sha256(self):
        assert len(compute_payload_hash(b"{}")) == 64
        assert compute_payload_hash(b"a") == compute_payload_hash(b"a")


# ---------------------------------------------------------------------------
# Structured logging
# ---------------------------------------------------------------------------


class TestStructuredLogging:
    def _record(self, **extra):
        record = logging.LogRecord(
            name="callorders.test", level=logging.INFO, pathname=__file__,
            lineno=1, msg="hello %s", args=("world",), exc_info=None,
        )
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_formats_json_with_message(self):
        """Formatter emits one JSON object per record."""
        line = StructuredJsonFormatter().format(self._record())
        data = json.loads(line)
        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["module"] == "callorders.test"

    def test_includes_call_extras(self):
        """Call context extras are promoted to top-level keys."""
        line = StructuredJsonFormatter().format(
            self._record(call_id="c1", vapi_call_id="v1", status="dialing")
        )
        data = json.loads(line)
        assert data["call_id"] == "c1"
        assert data["vapi_call_id"] == "v1"
        assert data["status"] == "dialing"
        assert "error_code" not in data

    def test_correlation_id_roundtrip(self):
        cid = generate_correlation_id()
        assert len(cid) == 32
        set_correlation_id(cid)
        assert get_correlation_id() == cid
        data = json.loads(StructuredJsonFormatter().format(self._record()))
        assert data["correlation_id"] == cid


# ---------------------------------------------------------------------------
# Debug capture
# ---------------------------------------------------------------------------


class TestWebhookCapture:
    def test_empty(self):
        capture = WebhookCapture(size=3)
        assert capture.latest() is None
        assert capture.recent() == []

    def test_bounded(self):
        """Capture keeps only the newest N payloads."""
        capture = WebhookCapture(size=3)
        for i in range(5):
            capture.record({"n": i})

        assert len(capture) == 3
        assert capture.latest()["payload"] == {"n": 4}
        assert [e["payload"]["n"] for e in capture.recent()] == [4, 3, 2]

    def test_clear(self):
        capture = WebhookCapture(size=3)
        capture.record({})
        capture.clear()
        assert capture.latest() is None

    def test_disabled_returns_none(self):
        """No capture buffer exists while capture is disabled."""
        reset_webhook_capture()
        settings = MagicMock(debug_webhook_capture_enabled=False)
        with patch("callorders.utils.debug_capture.get_settings", return_value=settings):
            assert get_webhook_capture() is None

    def test_enabled_returns_shared_buffer(self):
        """Enabled capture is a process-wide singleton."""
        reset_webhook_capture()
        settings = MagicMock(debug_webhook_capture_enabled=True, debug_webhook_capture_size=2)
        with patch("callorders.utils.debug_capture.get_settings", return_value=settings):
            first = get_webhook_capture()
            second = get_webhook_capture()
        assert first is second
        reset_webhook_capture()


# ---------------------------------------------------------------------------
# Redis call lock
# ---------------------------------------------------------------------------


class TestCallLock:
    async def test_acquire_and_release(self, mock_redis):
        """Lock is set with NX and released by compare-and-delete."""
        async with call_lock("vapi_1"):
            pass

        mock_redis.set.assert_awaited_once()
        args, kwargs = mock_redis.set.call_args
        assert args[0] == lock_key("vapi_1")
        assert kwargs == {"nx": True, "ex": 30}
        mock_redis.eval.assert_awaited_once()

    async def test_timeout_raises(self, mock_redis):
        """Held lock raises LockTimeoutError after the wait."""
        mock_redis.set = AsyncMock(return_value=None)
        with patch("callorders.utils.locks.LOCK_POLL_INTERVAL", 0.01):
            with pytest.raises(LockTimeoutError):
                async with call_lock("vapi_1", wait=0.03):
                    pass
        mock_redis.eval.assert_not_awaited()

    async def test_redis_down_proceeds_without_lock(self, mock_redis):
        """Redis outage does not block processing."""
        mock_redis.set = AsyncMock(side_effect=RedisConnectionError("refused"))
        mock_redis.eval = AsyncMock(side_effect=RedisConnectionError("refused"))
        entered = False
        async with call_lock("vapi_1"):
            entered = True
        assert entered is True
