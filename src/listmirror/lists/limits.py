"""Concurrency gate for outbound repository writes."""

from __future__ import annotations

import asyncio
from typing import Any

from listmirror.common.logging import get_logger

log = get_logger(__name__)

DEFAULT_MAX_CONCURRENT = 5


class MutationLimiter:
    """At most ``max_concurrent`` mutations in flight; the rest wait their turn.

    Use as ``async with limiter: ...``.
    """

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def __aenter__(self) -> MutationLimiter:
        if self._semaphore.locked():
            log.debug("mutation_limiter_waiting", max_concurrent=self.max_concurrent)
        await self._semaphore.acquire()
        self._in_flight += 1
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self._in_flight -= 1
        self._semaphore.release()
