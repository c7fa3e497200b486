"""Redis async client for the idempotency markers.

Timeouts are short so an unreachable Redis degrades dedup instead of
stalling event handling.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from listmirror.common.logging import get_logger
from listmirror.common.settings import get_settings

log = get_logger(__name__)

_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis client."""
    global _client
    if _client is None:
        settings = get_settings()
        client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.redis_timeout_seconds,
            socket_timeout=settings.redis_timeout_seconds,
            health_check_interval=30,
        )
        await client.ping()
        _client = client
        log.info("redis_connected", url=settings.redis_url)
    return _client


async def close_redis() -> None:
    """Close the Redis connection."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        log.info("redis_closed")
