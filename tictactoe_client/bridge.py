# =============================================================================
# Tic-Tac-Toe Client -- Protocol Bridge
# =============================================================================
#
# Primary public API. Glues ConnectionManager, MessageCodec and the session
# reducer together; the only layer with side effects.
# =============================================================================

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Awaitable, Callable

from ._logging import logger
from .config import ClientConfig
from .connection import ConnectionManager
from .errors import ConnectionFailedError, DecodeError, SessionLostError
from .protocol import MessageCodec
from .state import initial_session, reduce
from .types import (
    Action,
    ConnectionState,
    GameStatus,
    Intent,
    MakeMove,
    ResetSession,
    Session,
    SessionError,
    SetError,
    SetStatus,
    StartGame,
)

# Type alias for session listeners
SessionListener = Callable[[Session], Any]
AsyncSessionListener = Callable[[Session], Awaitable[Any]]


class ProtocolBridge:
    """Tic-tac-toe client session.

    Holds the current :class:`~tictactoe_client.types.Session`, applies
    inbound frames to it in arrival order, and turns user intents into
    outbound frames. Game rules stay with the server: moves are forwarded
    without any local legality check.

    Args:
        url: Server URL. Defaults to ``$TICTACTOE_WS_URL`` or the local
            development server.
        config: Full client settings; *url* overrides ``config.url``.

    Example::

        async with ProtocolBridge("ws://localhost:8081/ws") as client:
            await client.start_game()
            async for session in client:
                print(session.status, session.board)
    """

    def __init__(self, url: str | None = None, *, config: ClientConfig | None = None) -> None:
        config = config or ClientConfig()
        self._config = replace(config, url=url) if url else config

        self._codec = MessageCodec()
        self._session = initial_session()
        self._listeners: list[SessionListener | AsyncSessionListener] = []
        self._updates: asyncio.Queue[Session | None] = asyncio.Queue(
            maxsize=self._config.queue_size
        )
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._connection = self._new_connection()

    def _new_connection(self) -> ConnectionManager:
        return ConnectionManager(
            on_message=self._on_raw_message,
            on_state_change=self._on_state_change,
            open_timeout=self._config.open_timeout,
        )

    # -- Context manager ------------------------------------------------------

    async def __aenter__(self) -> ProtocolBridge:
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # -- Async iterator -------------------------------------------------------

    def __aiter__(self) -> ProtocolBridge:
        return self

    async def __anext__(self) -> Session:
        session = await self._updates.get()
        if session is None:
            raise StopAsyncIteration
        return session

    # -- Properties -----------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection.state

    @property
    def url(self) -> str:
        return self._config.url

    # -- Connect / Close / Reset ----------------------------------------------

    async def connect(self) -> bool:
        """Open the connection.

        A failed handshake is reported through ``session.error`` rather
        than raised.

        Returns:
            True if the connection is open.

        Raises:
            AlreadyConnectedError: This client already owns a connection.
            SessionLostError: The previous connection was lost; call
                :meth:`reset` to start a new session.
        """
        if self._session.error == SessionError.CONNECTION_LOST:
            raise SessionLostError("Connection lost; reset() the session before reconnecting")
        try:
            await self._connection.connect(self._config.url)
        except ConnectionFailedError as exc:
            logger.warning("%s", exc)
            self.dispatch(SetError(SessionError.CONNECTION_FAILED))
            return False
        return self._connection.is_connected

    async def close(self) -> None:
        """Close the connection and end async iteration."""
        await self._discard_connection()
        for task in self._background_tasks:
            task.cancel()
        self._background_tasks.clear()
        self._enqueue(None)

    async def _discard_connection(self) -> None:
        # A closed manager has released its callbacks; start clean
        await self._connection.close()
        self._connection = self._new_connection()

    async def reset(self, *, reconnect: bool = True) -> bool:
        """Discard the session and start over from NOT_CONNECTED.

        This is the only way to recover from ``CONNECTION_LOST``.

        Returns:
            True if reconnected (or if *reconnect* is False).
        """
        logger.info("Resetting session (reconnect=%s)", reconnect)
        await self._discard_connection()
        self.dispatch(ResetSession())
        if not reconnect:
            return True
        return await self.connect()

    # -- Intents --------------------------------------------------------------

    async def start_game(self) -> bool:
        """Ask the server to match this client into a game."""
        return await self._send(StartGame())

    async def make_move(self, index: int) -> bool:
        """Submit a move for cell *index* (0..8, row-major).

        The server decides whether the move is legal and answers with a
        ``GAME_MOVE`` update or an error.

        Returns:
            False if no game has been assigned yet or the frame could not
            be sent.
        """
        session = self._session
        if session.game_id is None or session.player_symbol is None:
            logger.warning("No game assigned yet, dropping move to cell %s", index)
            return False
        return await self._send(MakeMove(session.game_id, index, session.player_symbol))

    async def _send(self, intent: Intent) -> bool:
        frame = self._codec.encode(intent)
        ok = await self._connection.send(frame)
        if not ok:
            logger.warning("Dropped %s: not connected", type(intent).__name__)
        return ok

    # -- Session updates ------------------------------------------------------

    def dispatch(self, action: Action) -> Session:
        """Apply *action* to the session and notify listeners on change."""
        session = reduce(self._session, action)
        if session == self._session:
            return session
        self._session = session
        self._invoke_listeners(session)
        self._enqueue(session)
        return session

    def on_change(
        self, fn: SessionListener | AsyncSessionListener
    ) -> SessionListener | AsyncSessionListener:
        """Register a listener called with each new Session.

        Usable as a decorator::

            @client.on_change
            def render(session):
                ...
        """
        self._listeners.append(fn)
        return fn

    def off_change(self, fn: SessionListener | AsyncSessionListener) -> None:
        try:
            self._listeners.remove(fn)
        except ValueError:
            pass

    def _invoke_listeners(self, session: Session) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(session)
                if asyncio.iscoroutine(result):
                    self._fire_task(result)
            except Exception as exc:
                logger.error("Session listener error: %s", exc)

    def _enqueue(self, item: Session | None) -> None:
        # Drop oldest to make room
        try:
            self._updates.put_nowait(item)
        except asyncio.QueueFull:
            try:
                self._updates.get_nowait()
                self._updates.put_nowait(item)
            except (asyncio.QueueEmpty, asyncio.QueueFull):
                pass

    def _fire_task(self, coro: Any) -> None:
        """Schedule a coroutine with a strong reference to prevent GC."""
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    # -- Internal: transport callbacks ----------------------------------------

    def _on_raw_message(self, data: str | bytes) -> None:
        try:
            action = self._codec.decode(data)
        except DecodeError as exc:
            logger.warning("Malformed frame: %s", exc)
            self.dispatch(SetError(SessionError.DECODE_FAILED))
            return
        if action is not None:
            self.dispatch(action)

    def _on_state_change(self, state: ConnectionState) -> None:
        if state == ConnectionState.CONNECTED:
            self.dispatch(SetStatus(GameStatus.CONNECTED))
        elif state == ConnectionState.ERROR:
            # A failed handshake is reported by connect(); only a drop after
            # the session was connected counts as lost
            if self._session.status != GameStatus.NOT_CONNECTED:
                logger.warning("Connection lost during %s", self._session.status.value)
                self.dispatch(SetError(SessionError.CONNECTION_LOST))
