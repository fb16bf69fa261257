# =============================================================================
# Tic-Tac-Toe Client -- Wire Protocol Codec
# =============================================================================
#
# Frames are JSON text tagged with a "type" field:
#
# Outgoing (client -> server):
#   {"type": "START_GAME", "payload": {}}
#   {"type": "MAKE_MOVE",  "payload": {"gameId", "index", "symbol"}}
#
# Incoming (server -> client), fields at top level or under "payload":
#   GAME_STATE  full snapshot  -> UpdateGameState
#   GAME_MOVE   board + turn   -> GameMove
#   anything else              -> ignored
# =============================================================================

from __future__ import annotations

from typing import Any

import orjson

from ._logging import logger
from .constants import (
    BOARD_SIZE,
    BOARD_WIDTH,
    FRAME_GAME_MOVE,
    FRAME_GAME_STATE,
    FRAME_MAKE_MOVE,
    FRAME_START_GAME,
    MAX_MESSAGE_SIZE,
)
from .errors import DecodeError
from .types import (
    Action,
    Board,
    Cell,
    EMPTY_BOARD,
    GameMove,
    GameStatus,
    Intent,
    MakeMove,
    StartGame,
    Symbol,
    UpdateGameState,
    Winner,
)

_EMPTY_CELL_VALUES = (None, "", " ")


class MessageCodec:
    """Encode outbound intents and decode inbound frames into actions.

    Decoding is strict about the frames it recognises and lenient about the
    ones it does not: an unknown ``type`` decodes to ``None`` so newer
    servers can add frame types without breaking older clients.
    """

    def __init__(self) -> None:
        self._decoders = {
            FRAME_GAME_STATE: self._decode_game_state,
            FRAME_GAME_MOVE: self._decode_game_move,
        }

    def encode(self, intent: Intent) -> str:
        if isinstance(intent, StartGame):
            message = {"type": FRAME_START_GAME, "payload": {}}
        elif isinstance(intent, MakeMove):
            message = {
                "type": FRAME_MAKE_MOVE,
                "payload": {
                    "gameId": intent.game_id,
                    "index": intent.index,
                    "symbol": intent.symbol.value,
                },
            }
        else:
            raise TypeError(f"Cannot encode {type(intent).__name__}")
        return orjson.dumps(message).decode()

    def decode(self, data: str | bytes) -> Action | None:
        """Decode one inbound frame.

        Returns the action to dispatch, or ``None`` for frame types this
        client does not handle.

        Raises:
            DecodeError: The frame is not a JSON object, or a recognised
                frame carries invalid fields.
        """
        size = len(data.encode()) if isinstance(data, str) else len(data)
        if size > MAX_MESSAGE_SIZE:
            raise DecodeError(f"Frame exceeds max size ({size} bytes)", data)

        try:
            parsed = orjson.loads(data)
        except orjson.JSONDecodeError as exc:
            raise DecodeError(f"Invalid JSON: {exc}", data) from exc

        if not isinstance(parsed, dict):
            raise DecodeError("Frame is not a JSON object", data)

        frame_type = parsed.get("type")
        if frame_type is not None and not isinstance(frame_type, str):
            raise DecodeError(f"Frame type must be a string, got {type(frame_type).__name__}", data)
        decoder = self._decoders.get(frame_type)
        if decoder is None:
            logger.debug("Ignoring frame with type %r", frame_type)
            return None

        # Accept both {"type", ...fields} and {"type", "payload": {...fields}}
        body = parsed.get("payload")
        if not isinstance(body, dict):
            body = parsed

        try:
            return decoder(body)
        except (KeyError, ValueError, TypeError) as exc:
            raise DecodeError(f"Invalid {frame_type} frame: {exc}", data) from exc

    # -- Frame decoders --------------------------------------------------------

    def _decode_game_state(self, body: dict[str, Any]) -> UpdateGameState:
        board = body.get("board")
        status = GameStatus(body["status"])
        winner = _optional(Winner, body.get("winner"))
        if winner is not None and status != GameStatus.COMPLETED:
            raise ValueError(f"winner reported while {status.value}")
        return UpdateGameState(
            status=status,
            game_id=_optional_str(body.get("gameId"), "gameId"),
            player_symbol=_optional(Symbol, body.get("playerSymbol")),
            board=EMPTY_BOARD if board is None else _parse_board(board),
            current_turn=_optional(Symbol, body.get("currentTurn")),
            winner=winner,
            error=_optional_str(body.get("error"), "error"),
            opponent_id=_optional_str(body.get("opponentId"), "opponentId"),
        )

    def _decode_game_move(self, body: dict[str, Any]) -> GameMove:
        return GameMove(
            board=_parse_board(body["board"]),
            current_turn=Symbol(body["currentTurn"]),
            error=_optional_str(body.get("error"), "error"),
        )


# -- Field helpers -----------------------------------------------------------


def _optional(enum_type: type, value: Any) -> Any:
    return None if value is None else enum_type(value)


def _optional_str(value: Any, name: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise TypeError(f"{name} must be a string or null")


def _parse_board(raw: Any) -> Board:
    """Validate a board given flat (9 cells) or as 3 rows of 3."""
    if not isinstance(raw, list):
        raise TypeError("board must be a list")
    if len(raw) == BOARD_WIDTH and all(isinstance(row, list) for row in raw):
        if any(len(row) != BOARD_WIDTH for row in raw):
            raise ValueError("board rows must have 3 cells")
        raw = [cell for row in raw for cell in row]
    if len(raw) != BOARD_SIZE:
        raise ValueError(f"board must have {BOARD_SIZE} cells, got {len(raw)}")

    board = tuple(Cell.EMPTY if cell in _EMPTY_CELL_VALUES else Cell(cell) for cell in raw)

    # X moves first, so X leads O by at most one
    lead = board.count(Cell.X) - board.count(Cell.O)
    if lead not in (0, 1):
        raise ValueError(f"impossible board: X leads O by {lead}")
    return board
