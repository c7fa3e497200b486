"""Redis-based idempotency markers for label events.

A marker ``label:{did}:{label}:{neg}`` means that exact event was already
reconciled.  Redis being unreachable is never fatal: lookups report "not
processed" and writes are skipped, both with a warning.
"""

from __future__ import annotations

from redis.exceptions import RedisError

from listmirror.common.logging import get_logger
from listmirror.common.redis_client import get_redis
from listmirror.common.settings import get_settings

log = get_logger(__name__)

DEDUP_PREFIX = "label:"
MARKER_VALUE = "1"


def dedup_key(did: str, label: str, neg: bool) -> str:
    """Redis key for one (subject, label, negation) triple."""
    return f"{DEDUP_PREFIX}{did}:{label}:{str(neg).lower()}"


async def has_processed(did: str, label: str, neg: bool) -> bool:
    """Return True if this event was already applied (skip), False otherwise."""
    try:
        redis = await get_redis()
        exists = await redis.exists(dedup_key(did, label, neg))
        return bool(exists)
    except (RedisError, OSError) as exc:
        log.warning("dedup_check_failed", did=did, label=label, neg=neg, error=str(exc))
        return False


async def mark_processed(did: str, label: str, neg: bool) -> None:
    """Record that this event was applied, expiring after the dedup TTL."""
    settings = get_settings()
    try:
        redis = await get_redis()
        await redis.set(dedup_key(did, label, neg), MARKER_VALUE, ex=settings.dedup_ttl_seconds)
    except (RedisError, OSError) as exc:
        log.warning("dedup_mark_failed", did=did, label=label, neg=neg, error=str(exc))


async def clear_processed(did: str, label: str, neg: bool) -> None:
    """Drop the marker for the opposite negation of this event."""
    try:
        redis = await get_redis()
        await redis.delete(dedup_key(did, label, not neg))
    except (RedisError, OSError) as exc:
        log.warning("dedup_clear_failed", did=did, label=label, neg=neg, error=str(exc))
