"""Tests for the reconnecting firehose client."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager

import libipld

from listmirror.firehose.client import ConnectionState, FirehoseClient

URL = "wss://labeler.example.com/xrpc/com.atproto.label.subscribeLabels"


class FakeSocket:
    """Yields ``frames`` then either ends cleanly, raises ``error``, or waits for close()."""

    def __init__(self, frames=(), *, error: Exception | None = None, hold_open: bool = False):
        self.frames = list(frames)
        self.error = error
        self.hold_open = hold_open
        self.close_code = 1000
        self.close_reason = ""
        self.closed = asyncio.Event()

    async def close(self):
        self.closed.set()

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for frame in self.frames:
            yield frame
        if self.error is not None:
            raise self.error
        if self.hold_open:
            await self.closed.wait()


def scripted_connect(*outcomes):
    """connect() stand-in: each call consumes the next outcome (exception or FakeSocket)."""
    remaining = list(outcomes)
    urls: list[str] = []

    @asynccontextmanager
    async def connect(url):
        urls.append(url)
        outcome = remaining.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        yield outcome

    connect.urls = urls
    return connect


def recording_sleep(client_ref: list, stop_after: int):
    delays: list[float] = []

    async def sleep(delay):
        delays.append(delay)
        if len(delays) >= stop_after:
            client_ref[0]._stopped = True

    sleep.delays = delays
    return sleep


def _label_frame(uri="did:plc:abc", seq=1) -> str:
    return json.dumps({"seq": seq, "labels": [{"uri": uri, "val": "maga-trump"}]})


def _make_client(connect, stop_after, on_event=None, **kwargs):
    ref: list = []
    sleep = recording_sleep(ref, stop_after)

    async def _noop(event):
        return None

    client = FirehoseClient(URL, on_event or _noop, connect=connect, sleep=sleep, **kwargs)
    ref.append(client)
    return client, sleep


# ---------------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------------


def test_reconnect_delay_sequence_capped():
    client = FirehoseClient(URL, lambda e: None)
    delays = [client.reconnect_delay(n) for n in range(9)]
    assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 60.0, 60.0, 60.0]


async def test_consecutive_failures_double_the_delay():
    connect = scripted_connect(*(OSError("refused") for _ in range(4)))
    client, sleep = _make_client(connect, stop_after=4)

    await client._run()

    assert sleep.delays == [1.0, 2.0, 4.0, 8.0]
    assert len(connect.urls) == 4
    assert client.state is ConnectionState.STOPPED


async def test_successful_open_resets_backoff():
    connect = scripted_connect(
        OSError("refused"),
        OSError("refused"),
        FakeSocket(),
        OSError("refused"),
    )
    client, sleep = _make_client(connect, stop_after=4)

    await client._run()

    assert sleep.delays == [1.0, 2.0, 1.0, 2.0]


async def test_abnormal_close_triggers_reconnect():
    connect = scripted_connect(
        FakeSocket([_label_frame()], error=ConnectionResetError("reset")),
        FakeSocket(),
    )
    client, sleep = _make_client(connect, stop_after=2)

    await client._run()

    assert len(connect.urls) == 2
    assert sleep.delays == [1.0, 1.0]


# ---------------------------------------------------------------------------
# Frames and dispatch
# ---------------------------------------------------------------------------


async def test_bad_frame_does_not_stop_stream():
    received = []

    async def on_event(event):
        received.append(event.uri)

    connect = scripted_connect(FakeSocket([b"\xff\xfe\x00garbage", _label_frame("did:plc:ok")]))
    client, _sleep = _make_client(connect, stop_after=1, on_event=on_event)

    await client._run()
    await client.drain(1.0)

    assert received == ["did:plc:ok"]


async def test_handler_failure_isolated_per_event():
    received = []

    async def on_event(event):
        if event.uri == "did:plc:bad":
            raise RuntimeError("boom")
        received.append(event.uri)

    frame = json.dumps(
        {
            "seq": 1,
            "labels": [
                {"uri": "did:plc:bad", "val": "maga-trump"},
                {"uri": "did:plc:good", "val": "maga-trump"},
            ],
        }
    )
    connect = scripted_connect(FakeSocket([frame]))
    client, _sleep = _make_client(connect, stop_after=1, on_event=on_event)

    await client._run()
    await client.drain(1.0)

    assert received == ["did:plc:good"]
    assert client.inflight == 0


async def test_reconnect_resumes_from_last_seq():
    connect = scripted_connect(
        FakeSocket([_label_frame(seq=41), _label_frame(seq=42)]),
        FakeSocket(),
    )
    client, _sleep = _make_client(connect, stop_after=2)

    await client._run()

    assert connect.urls[0] == URL
    assert connect.urls[1] == f"{URL}?cursor=42"
    assert client.last_seq == 42


async def test_resume_cursor_disabled():
    connect = scripted_connect(FakeSocket([_label_frame(seq=9)]), FakeSocket())
    client, _sleep = _make_client(connect, stop_after=2, resume_cursor=False)

    await client._run()

    assert connect.urls == [URL, URL]


async def test_error_frame_drops_resume_cursor():
    future_cursor = libipld.encode_dag_cbor({"op": -1}) + libipld.encode_dag_cbor(
        {"error": "FutureCursor", "message": "Cursor in the future."}
    )
    connect = scripted_connect(
        FakeSocket([_label_frame(seq=500)]),
        FakeSocket([future_cursor]),
        FakeSocket(),
    )
    client, sleep = _make_client(connect, stop_after=3)

    await client._run()

    assert connect.urls == [URL, f"{URL}?cursor=500", URL]
    assert client.last_seq is None
    # each connection opened, so the backoff never grows
    assert sleep.delays == [1.0, 1.0, 1.0]


# ---------------------------------------------------------------------------
# start / stop
# ---------------------------------------------------------------------------


async def test_start_is_idempotent_and_stop_closes_socket():
    socket = FakeSocket(hold_open=True)
    connect = scripted_connect(socket)
    client, sleep = _make_client(connect, stop_after=99)

    await client.start()
    await client.start()
    for _ in range(5):
        await asyncio.sleep(0)

    assert client.state is ConnectionState.CONNECTED
    assert len(connect.urls) == 1

    await client.stop()

    assert socket.closed.is_set()
    assert client.state is ConnectionState.STOPPED
    assert sleep.delays == []


async def test_stop_cancels_pending_reconnect():
    connect = scripted_connect(OSError("refused"))
    gate = asyncio.Event()

    async def blocking_sleep(delay):
        await gate.wait()

    client = FirehoseClient(URL, lambda e: None, connect=connect, sleep=blocking_sleep)
    await client.start()
    for _ in range(5):
        await asyncio.sleep(0)
    assert client.state is ConnectionState.RECONNECTING

    await client.stop()

    assert client.state is ConnectionState.STOPPED
    assert client._task.done()
    assert len(connect.urls) == 1


async def test_start_after_stop_is_ignored():
    connect = scripted_connect()
    client = FirehoseClient(URL, lambda e: None, connect=connect)
    await client.stop()
    await client.start()

    assert client._task is None
    assert client.state is ConnectionState.STOPPED


async def test_stop_leaves_inflight_handlers_running():
    release = asyncio.Event()
    finished = []

    async def on_event(event):
        await release.wait()
        finished.append(event.uri)

    socket = FakeSocket([_label_frame()], hold_open=True)
    connect = scripted_connect(socket)
    client, _sleep = _make_client(connect, stop_after=99, on_event=on_event)

    await client.start()
    for _ in range(5):
        await asyncio.sleep(0)
    assert client.inflight == 1

    await client.stop()
    assert client.inflight == 1

    release.set()
    assert await client.drain(1.0) == 0
    assert finished == ["did:plc:abc"]


async def test_drain_times_out():
    async def on_event(event):
        await asyncio.Event().wait()

    connect = scripted_connect(FakeSocket([_label_frame()]))
    client, _sleep = _make_client(connect, stop_after=1, on_event=on_event)

    await client._run()

    assert await client.drain(0.01) == 1

    for task in list(client._inflight):
        task.cancel()
