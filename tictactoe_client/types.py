# =============================================================================
# Tic-Tac-Toe Client -- Type Definitions
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .constants import BOARD_SIZE


class Cell(str, Enum):
    """Content of one board square. Empty is ``null`` on the wire."""

    X = "X"
    O = "O"  # noqa: E741
    EMPTY = " "


class Symbol(str, Enum):
    """A player's mark, used for ``player_symbol`` and ``current_turn``."""

    X = "X"
    O = "O"  # noqa: E741


class Winner(str, Enum):
    X = "X"
    O = "O"  # noqa: E741
    DRAW = "DRAW"


class GameStatus(str, Enum):
    """Session lifecycle, declared in transition order.

    NOT_CONNECTED -> CONNECTED -> WAITING_FOR_OPPONENT -> IN_PROGRESS ->
    COMPLETED. Only an explicit reset goes back to NOT_CONNECTED.
    """

    NOT_CONNECTED = "NOT_CONNECTED"
    CONNECTED = "CONNECTED"
    WAITING_FOR_OPPONENT = "WAITING_FOR_OPPONENT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = list(GameStatus)


class ConnectionState(str, Enum):
    """WebSocket transport lifecycle.

    DISCONNECTED -> CONNECTING -> CONNECTED. ERROR means the handshake failed
    or the socket went away without the client closing it.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class SessionError:
    """Client-side values for ``Session.error``.

    Peer-reported errors are arbitrary strings and are stored verbatim.
    """

    CONNECTION_LOST = "CONNECTION_LOST"
    CONNECTION_FAILED = "CONNECTION_FAILED"
    DECODE_FAILED = "DECODE_FAILED"
    BOARD_REVERTED = "BOARD_REVERTED"


Board = tuple[Cell, ...]

EMPTY_BOARD: Board = (Cell.EMPTY,) * BOARD_SIZE


@dataclass(frozen=True, slots=True)
class Session:
    """Client-side view of one game.

    Attributes:
        status: Where the session is in the game lifecycle.
        game_id: Assigned by the peer once a match is formed.
        player_symbol: This client's mark, assigned by the peer.
        board: Nine cells, row-major.
        current_turn: Whose move the peer expects next.
        winner: Set when the peer reports the game completed.
        error: Overlay signal for presentation, independent of ``status``.
        player_id: Client identity bookkeeping, not part of the game.
        opponent_id: The other player, when the peer reports one.
    """

    status: GameStatus = GameStatus.NOT_CONNECTED
    game_id: str | None = None
    player_symbol: Symbol | None = None
    board: Board = EMPTY_BOARD
    current_turn: Symbol | None = None
    winner: Winner | None = None
    error: str | None = None
    player_id: str | None = None
    opponent_id: str | None = None

    @property
    def is_my_turn(self) -> bool:
        return (
            self.status == GameStatus.IN_PROGRESS
            and self.player_symbol is not None
            and self.player_symbol == self.current_turn
        )

    @property
    def is_over(self) -> bool:
        return self.status == GameStatus.COMPLETED


# -- Actions (inputs to the reducer) -------------------------------------------


@dataclass(frozen=True, slots=True)
class SetStatus:
    status: GameStatus


@dataclass(frozen=True, slots=True)
class SetPlayerId:
    player_id: str


@dataclass(frozen=True, slots=True)
class UpdateGameState:
    """Full snapshot from a ``GAME_STATE`` frame."""

    status: GameStatus
    game_id: str | None
    player_symbol: Symbol | None
    board: Board
    current_turn: Symbol | None
    winner: Winner | None = None
    error: str | None = None
    opponent_id: str | None = None


@dataclass(frozen=True, slots=True)
class GameMove:
    """Incremental update from a ``GAME_MOVE`` frame."""

    board: Board
    current_turn: Symbol
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SetError:
    error: str | None


@dataclass(frozen=True, slots=True)
class ResetSession:
    pass


Action = Union[SetStatus, SetPlayerId, UpdateGameState, GameMove, SetError, ResetSession]


# -- Intents (outbound, emitted by presentation) -------------------------------


@dataclass(frozen=True, slots=True)
class StartGame:
    pass


@dataclass(frozen=True, slots=True)
class MakeMove:
    game_id: str
    index: int
    symbol: Symbol

    def __post_init__(self) -> None:
        if isinstance(self.index, bool) or not 0 <= self.index < BOARD_SIZE:
            raise ValueError(f"Cell index must be 0..{BOARD_SIZE - 1}, got {self.index!r}")


Intent = Union[StartGame, MakeMove]
