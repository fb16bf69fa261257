"""Shared fixtures: an in-memory stand-in for the WebSocket transport."""

import asyncio

import pytest
import websockets.asyncio.client
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

_END = object()
_DROP = object()


class FakeWebSocket:
    """Minimal ClientConnection: records sends, replays fed frames."""

    def __init__(self):
        self.sent: list[str] = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, data):
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(data)

    async def close(self, code=1000, reason=""):
        self.closed = True
        self._incoming.put_nowait(_END)

    def feed(self, message):
        """Deliver an inbound frame."""
        self._incoming.put_nowait(message)

    def drop(self):
        """Simulate the server vanishing."""
        self._incoming.put_nowait(_DROP)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is _END:
            raise StopAsyncIteration
        if item is _DROP:
            self.closed = True
            raise ConnectionClosedError(None, None)
        return item


class FakeTransport:
    """Replaces ``websockets.asyncio.client.connect``.

    Clear ``gate`` to hold handshakes open; set ``error`` to make them fail.
    """

    def __init__(self):
        self.sockets: list[FakeWebSocket] = []
        self.calls: list[tuple[str, dict]] = []
        self.gate = asyncio.Event()
        self.gate.set()
        self.error: Exception | None = None

    @property
    def ws(self) -> FakeWebSocket:
        return self.sockets[-1]

    async def connect(self, url, **kwargs):
        self.calls.append((url, kwargs))
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws


@pytest.fixture
def transport(monkeypatch):
    fake = FakeTransport()
    monkeypatch.setattr(websockets.asyncio.client, "connect", fake.connect)
    return fake


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settle():
    """Await to let background tasks (receive loop, listeners) run."""
    return _settle
