"""Reconnecting subscription to the labeler's websocket firehose."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import httpx
import websockets

from listmirror.common.logging import get_logger
from listmirror.common.models import LabelEvent
from listmirror.firehose.decoder import FirehoseErrorFrame, decode_frame

log = get_logger(__name__)

INITIAL_RECONNECT_DELAY = 1.0
MAX_RECONNECT_DELAY = 60.0

EventCallback = Callable[[LabelEvent], Awaitable[Any]]


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class FirehoseClient:
    """Keeps one websocket subscription alive and hands decoded events to ``on_event``.

    Transport errors and closes always lead to a reconnect after
    ``min(initial_delay * 2**attempt, max_delay)`` seconds; the attempt
    counter resets once a connection opens.  Each event is handled in its
    own task, so handlers run concurrently and one failure cannot affect
    another.  ``stop()`` is terminal.
    """

    def __init__(
        self,
        url: str,
        on_event: EventCallback,
        *,
        initial_delay: float = INITIAL_RECONNECT_DELAY,
        max_delay: float = MAX_RECONNECT_DELAY,
        resume_cursor: bool = True,
        connect: Callable[[str], Any] = websockets.connect,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.url = url
        self.on_event = on_event
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.resume_cursor = resume_cursor
        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self.last_seq: int | None = None
        self._connect = connect
        self._sleep = sleep
        self._ws: Any = None
        self._task: asyncio.Task | None = None
        self._stopped = False
        self._inflight: set[asyncio.Task] = set()

    # -- Public API ----------------------------------------------------------

    def reconnect_delay(self, attempt: int) -> float:
        return min(self.initial_delay * (2**attempt), self.max_delay)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def start(self) -> None:
        """Begin the connect/reconnect loop in the background."""
        if self._stopped:
            log.warning("firehose_start_after_stop")
            return
        if self._task is not None and not self._task.done():
            log.debug("firehose_already_running", state=self.state.value)
            return
        self._task = asyncio.create_task(self._run(), name="firehose")

    async def stop(self) -> None:
        """Close the socket and cancel any pending reconnect.

        Event handlers already running are left to finish; see ``drain``.
        """
        if self._stopped:
            return
        self._stopped = True
        self.state = ConnectionState.STOPPED

        ws = self._ws
        if ws is not None:
            log.info("firehose_closing")
            try:
                await ws.close()
            except Exception as exc:
                log.debug("firehose_close_failed", error=str(exc))

        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._ws = None
        log.info("firehose_stopped", inflight=self.inflight)

    async def drain(self, timeout: float) -> int:
        """Wait up to ``timeout`` seconds for in-flight handlers; return how many remain."""
        if not self._inflight:
            return 0
        _done, pending = await asyncio.wait(set(self._inflight), timeout=timeout)
        if pending:
            log.warning("firehose_drain_timeout", pending=len(pending), timeout=timeout)
        return len(pending)

    # -- Connection loop -----------------------------------------------------

    def _next_delay(self) -> float:
        delay = self.reconnect_delay(self.attempts)
        self.attempts += 1
        return delay

    def _connect_url(self) -> str:
        if self.resume_cursor and self.last_seq is not None:
            return str(httpx.URL(self.url).copy_merge_params({"cursor": str(self.last_seq)}))
        return self.url

    async def _run(self) -> None:
        while not self._stopped:
            self.state = ConnectionState.CONNECTING
            url = self._connect_url()
            log.info("firehose_connecting", url=url, attempt=self.attempts)
            try:
                async with self._connect(url) as ws:
                    self._ws = ws
                    self.state = ConnectionState.CONNECTED
                    self.attempts = 0
                    log.info("firehose_connected", url=url)
                    async for frame in ws:
                        self._on_frame(frame)
                log.warning(
                    "firehose_connection_closed",
                    code=getattr(ws, "close_code", None),
                    reason=getattr(ws, "close_reason", None),
                )
            except FirehoseErrorFrame as exc:
                log.error("firehose_error_frame", error=exc.error, message=exc.message)
                if self.last_seq is not None:
                    # a rejected cursor would be rejected again on every reconnect
                    log.warning("firehose_cursor_dropped", cursor=self.last_seq)
                    self.last_seq = None
            except Exception as exc:
                log.error(
                    "firehose_connection_error",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            finally:
                self._ws = None

            if self._stopped:
                break

            self.state = ConnectionState.DISCONNECTED
            delay = self._next_delay()
            self.state = ConnectionState.RECONNECTING
            log.info("firehose_reconnect_scheduled", delay=delay, attempt=self.attempts)
            await self._sleep(delay)

        self.state = ConnectionState.STOPPED

    def _on_frame(self, frame: bytes | str) -> None:
        for event in decode_frame(frame):
            if event.seq is not None and (self.last_seq is None or event.seq > self.last_seq):
                self.last_seq = event.seq
            task = asyncio.create_task(self.on_event(event))
            self._inflight.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("firehose_event_task_failed", error=str(exc), error_type=type(exc).__name__)
