"""
Redis distributed locks - serialises webhook processing per Vapi call id.
Uses Redis SET NX with TTL for automatic expiration.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

LOCK_TTL_SECONDS = 30
LOCK_WAIT_SECONDS = 5
LOCK_POLL_INTERVAL = 0.1

_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout."""


def lock_key(vapi_call_id: str) -> str:
    return f"callorders:lock:call:{vapi_call_id}"


@asynccontextmanager
async def call_lock(
    vapi_call_id: str,
    ttl: int = LOCK_TTL_SECONDS,
    wait: float = LOCK_WAIT_SECONDS,
):
    """
    Hold a distributed lock for one Vapi call id.

    Usage:
        async with call_lock(vapi_call_id):
            # reconcile safely
    """
    key = lock_key(vapi_call_id)
    value = uuid.uuid4().hex

    acquired = await _acquire_lock(key, value, ttl, wait)
    if not acquired:
        raise LockTimeoutError(f"Could not acquire lock for call {vapi_call_id} within {wait}s")
    try:
        yield
    finally:
        await _release_lock(key, value)


async def _acquire_lock(key: str, value: str, ttl: int, wait: float) -> bool:
    """Try to acquire a Redis lock with polling."""
    try:
        from callorders.utils.redis_client import get_redis
        redis = await get_redis()

        was_set = await redis.set(key, value, nx=True, ex=ttl)
        if was_set:
            return True

        elapsed = 0.0
        while elapsed < wait:
            await asyncio.sleep(LOCK_POLL_INTERVAL)
            elapsed += LOCK_POLL_INTERVAL
            was_set = await redis.set(key, value, nx=True, ex=ttl)
            if was_set:
                return True

        logger.warning("Lock acquisition timed out for %s", key)
        return False
    except (RedisError, OSError) as e:
        # Redis outage must not block webhook processing
        logger.warning("Redis lock error for %s: %s. Proceeding without lock.", key, str(e))
        return True


async def _release_lock(key: str, value: str) -> None:
    """Release only if we still own it (compare-and-delete)."""
    try:
        from callorders.utils.redis_client import get_redis
        redis = await get_redis()
        await redis.eval(_RELEASE_SCRIPT, 1, key, value)
    except (RedisError, OSError) as e:
        logger.warning("Redis lock release error for %s: %s", key, str(e))
