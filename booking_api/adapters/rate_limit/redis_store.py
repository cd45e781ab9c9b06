"""Redis-backed sliding-window store.

A single Lua script records the attempt and reads the resulting count in one
round trip, so concurrent requests for the same key cannot both observe a
free slot (no check-then-write race across workers or instances).
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import redis
import redis.asyncio as aioredis

from booking_api.adapters.rate_limit.base import AbstractSlidingWindowStore, WindowCount
from booking_api.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


# KEYS[1]  sorted set of attempts for one (policy, identifier) pair
# ARGV[1]  now in ms, ARGV[2] window in ms, ARGV[3] unique member for this attempt
# Returns {count_in_window, oldest_score_ms}
SLIDING_WINDOW_SCRIPT = """
    local key = KEYS[1]
    local now_ms = tonumber(ARGV[1])
    local window_ms = tonumber(ARGV[2])
    local member = ARGV[3]

    redis.call('ZREMRANGEBYSCORE', key, '-inf', now_ms - window_ms)
    redis.call('ZADD', key, now_ms, member)

    local count = redis.call('ZCARD', key)
    local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')

    redis.call('PEXPIRE', key, window_ms)

    return {count, tonumber(oldest[2])}
"""


class RedisSlidingWindowStore(AbstractSlidingWindowStore):
    """Sliding log kept in Redis sorted sets (score = attempt time in ms)."""

    def __init__(self, client: Any) -> None:
        """Initialize the store.

        Args:
            client: A ``redis.asyncio.Redis`` instance (or compatible object
                exposing ``register_script`` and ``aclose``).
        """
        self._client = client
        self._script = client.register_script(SLIDING_WINDOW_SCRIPT)

    @classmethod
    def from_url(
        cls, url: str, *, token: str | None = None, timeout_seconds: float = 1.0
    ) -> "RedisSlidingWindowStore":
        client = aioredis.from_url(
            url,
            password=token,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            decode_responses=True,
        )
        return cls(client)

    async def record(self, key: str, *, window_seconds: int, now: float) -> WindowCount:
        now_ms = int(now * 1000)
        window_ms = window_seconds * 1000
        member = f"{now_ms}-{uuid.uuid4().hex}"

        try:
            count, oldest_ms = await self._script(
                keys=[key], args=[now_ms, window_ms, member]
            )
        except redis.RedisError as exc:
            raise StoreUnavailableError(
                code="rate_limit_store_unavailable",
                message="Rate limit store request failed",
                details={"store": "redis", "hint": type(exc).__name__},
            ) from exc

        return WindowCount(count=int(count), oldest_at=int(oldest_ms) / 1000)

    async def aclose(self) -> None:
        await self._client.aclose()
