"""Python client for the relayed two-player tic-tac-toe server.

Usage::

    from tictactoe_client import connect

    async with connect("ws://localhost:8081/ws") as client:
        await client.start_game()
        async for session in client:
            print(session.status, session.board)
            if session.is_my_turn:
                await client.make_move(4)

The server owns the rules: it assigns symbols, judges moves, and declares
the winner. The client keeps an ordered, read-only view of what the server
reported in :attr:`ProtocolBridge.session`.
"""

from ._version import __version__
from .bridge import ProtocolBridge
from .config import ClientConfig, resolve_url
from .connection import ConnectionManager
from .errors import (
    AlreadyConnectedError,
    ConnectionFailedError,
    DecodeError,
    SessionLostError,
    TicTacToeError,
)
from .protocol import MessageCodec
from .state import initial_session, reduce, replay
from .types import (
    Cell,
    ConnectionState,
    GameStatus,
    Session,
    SessionError,
    Symbol,
    Winner,
)


def connect(url: str | None = None, **kwargs) -> ProtocolBridge:
    """Create a tic-tac-toe client.

    Use as an async context manager. Keyword arguments are forwarded to
    :class:`ProtocolBridge`.

    Args:
        url: Server URL. Defaults to ``$TICTACTOE_WS_URL``, then
            ``ws://localhost:8081/ws``.
        **kwargs: Passed to :class:`ProtocolBridge`.

    Returns:
        A :class:`ProtocolBridge` instance.
    """
    return ProtocolBridge(url, **kwargs)


__all__ = [
    "__version__",
    "connect",
    "ProtocolBridge",
    "ConnectionManager",
    "MessageCodec",
    "ClientConfig",
    "resolve_url",
    "initial_session",
    "reduce",
    "replay",
    "Session",
    "SessionError",
    "GameStatus",
    "ConnectionState",
    "Cell",
    "Symbol",
    "Winner",
    "TicTacToeError",
    "AlreadyConnectedError",
    "ConnectionFailedError",
    "DecodeError",
    "SessionLostError",
]
