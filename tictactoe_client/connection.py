# =============================================================================
# Tic-Tac-Toe Client -- Connection Manager
# =============================================================================
#
# Owns the single WebSocket to the game relay: connect, queued send, close.
# No heartbeat and no automatic reconnect; a dropped socket is reported as
# ConnectionState.ERROR and left for the caller to act on.
# =============================================================================

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Callable

import websockets
import websockets.asyncio.client
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from ._logging import logger
from .constants import CONNECTION_TIMEOUT, MAX_MESSAGE_SIZE, WS_CLOSE_NORMAL
from .errors import AlreadyConnectedError, ConnectionFailedError
from .types import ConnectionState


class ConnectionManager:
    """Manages exactly one WebSocket connection.

    Frames sent while the handshake is in flight are queued and flushed in
    submission order, exactly once, as soon as the socket opens. Frames sent
    with no socket at all are dropped: the protocol has no delivery
    guarantee, so there is nothing to retry.

    Args:
        on_message: Called with each inbound frame, in delivery order.
        on_state_change: Called on every transport state change.
        open_timeout: Seconds allowed for the opening handshake.
    """

    def __init__(
        self,
        *,
        on_message: Callable[[str | bytes], Any] | None = None,
        on_state_change: Callable[[ConnectionState], Any] | None = None,
        open_timeout: float = CONNECTION_TIMEOUT,
    ) -> None:
        self._on_message = on_message
        self._on_state_change = on_state_change
        self._open_timeout = open_timeout

        # State
        self._ws: websockets.asyncio.client.ClientConnection | None = None
        self._url: str | None = None
        self._state = ConnectionState.DISCONNECTED
        self._pending: deque[str] = deque()
        self._closing = False
        # Bumped by close() so a handshake that finishes late knows it lost
        self._generation = 0

        self._recv_task: asyncio.Task[None] | None = None

    # -- Properties -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and self._state == ConnectionState.CONNECTED

    @property
    def url(self) -> str | None:
        return self._url

    @property
    def pending(self) -> int:
        """Frames queued while the handshake is in flight."""
        return len(self._pending)

    # -- Connect / Close ------------------------------------------------------

    async def connect(self, url: str) -> None:
        """Open the WebSocket and flush frames queued while connecting.

        Raises:
            AlreadyConnectedError: A connection is already open or opening.
            ConnectionFailedError: The handshake failed or timed out.
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            raise AlreadyConnectedError(f"Already {self._state.value} to {self._url}")

        self._url = url
        self._closing = False
        generation = self._generation
        self._set_state(ConnectionState.CONNECTING)

        try:
            ws = await websockets.asyncio.client.connect(
                url,
                max_size=MAX_MESSAGE_SIZE,
                open_timeout=self._open_timeout,
                ping_interval=None,  # no client-side liveness probing
            )
        except Exception as exc:
            if generation != self._generation:
                return  # closed while connecting
            self._pending.clear()
            self._set_state(ConnectionState.ERROR)
            raise ConnectionFailedError(f"Failed to connect to {url}: {exc}") from exc

        if generation != self._generation:
            logger.debug("Handshake finished after close(), dropping socket")
            await _close_quietly(ws)
            return

        self._ws = ws
        logger.info("Connected to %s", url)

        # Flush queued frames before anything else can reach the socket.
        # send() keeps queueing while the state is still CONNECTING.
        while self._pending:
            frame = self._pending.popleft()
            try:
                await ws.send(frame)
            except ConnectionClosed:
                logger.debug("Socket closed while flushing queued frames")
                self._pending.clear()
                break
            if generation != self._generation:
                return

        self._set_state(ConnectionState.CONNECTED)
        self._recv_task = asyncio.create_task(self._recv_loop(ws))

    async def close(self) -> None:
        """Tear down the connection and release callbacks. Idempotent."""
        self._generation += 1
        self._closing = True
        self._pending.clear()
        self._on_message = None
        self._on_state_change = None

        task = self._recv_task
        self._recv_task = None
        # close() may be reached from a message callback inside the loop itself
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        if self._ws is not None:
            ws = self._ws
            self._ws = None
            await _close_quietly(ws)
            logger.info("Closed connection to %s", self._url)

        self._set_state(ConnectionState.DISCONNECTED)

    # -- Send -----------------------------------------------------------------

    async def send(self, frame: str) -> bool:
        """Send a text frame.

        Returns True if the frame was sent or queued for the pending
        handshake, False if there is no connection to send on.
        """
        if self._state == ConnectionState.CONNECTING:
            self._pending.append(frame)
            logger.debug("Queued frame until connected (%d pending)", len(self._pending))
            return True

        if self._ws is None or self._state != ConnectionState.CONNECTED:
            logger.debug("Send dropped: not connected")
            return False

        try:
            await self._ws.send(frame)
            return True
        except ConnectionClosed:
            logger.debug("Send failed: connection closed")
            return False

    # -- Internal: receive loop -----------------------------------------------

    async def _recv_loop(self, ws: websockets.asyncio.client.ClientConnection) -> None:
        """Forward frames until the socket ends, then report the loss."""
        try:
            async for message in ws:
                if not self._on_message:
                    continue
                try:
                    self._on_message(message)
                except Exception as exc:
                    logger.error("Message handler error: %s", exc)
        except asyncio.CancelledError:
            return
        except ConnectionClosedError as exc:
            logger.debug("WebSocket closed with error: %s", exc)

        if self._closing:
            return

        logger.warning("Connection to %s lost", self._url)
        self._ws = None
        self._recv_task = None
        self._set_state(ConnectionState.ERROR)

    # -- State management -----------------------------------------------------

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state == self._state:
            return
        old = self._state
        self._state = new_state
        logger.debug("State: %s -> %s", old.value, new_state.value)
        if self._on_state_change:
            self._on_state_change(new_state)


async def _close_quietly(ws: websockets.asyncio.client.ClientConnection) -> None:
    try:
        await ws.close(WS_CLOSE_NORMAL, "Client disconnect")
    except ConnectionClosed:
        pass
