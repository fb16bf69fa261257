# =============================================================================
# Tic-Tac-Toe Client -- Error Types
# =============================================================================


class TicTacToeError(Exception):
    """Base exception for all client errors."""


class AlreadyConnectedError(TicTacToeError):
    """``connect()`` called while a connection is already owned or opening."""


class ConnectionFailedError(TicTacToeError):
    """The WebSocket opening handshake failed."""


class SessionLostError(TicTacToeError):
    """``connect()`` called on a session whose connection was lost; ``reset()`` first."""


class DecodeError(TicTacToeError):
    """Inbound frame is malformed (bad JSON, wrong shape, invalid fields)."""

    def __init__(self, message: str, frame: str | bytes | None = None) -> None:
        self.frame = frame
        super().__init__(message)
