# =============================================================================
# Tic-Tac-Toe Client -- Session State Machine
# =============================================================================
#
# Pure reducer: (Session, Action) -> Session. Never raises, never logs, never
# touches the network. ProtocolBridge is the only caller with side effects.
# =============================================================================

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable

from .types import (
    Action,
    Cell,
    GameMove,
    GameStatus,
    ResetSession,
    Session,
    SessionError,
    SetError,
    SetPlayerId,
    SetStatus,
    UpdateGameState,
)


def initial_session() -> Session:
    return Session()


def _set_status(session: Session, action: SetStatus) -> Session:
    # Status only moves forward; going back requires ResetSession
    if action.status.rank < session.status.rank:
        return session
    return replace(session, status=action.status)


def _set_player_id(session: Session, action: SetPlayerId) -> Session:
    return replace(session, player_id=action.player_id)


def _update_game_state(session: Session, action: UpdateGameState) -> Session:
    # Authoritative resync: every snapshot field overwrites, absent ones clear
    return replace(
        session,
        status=action.status,
        game_id=action.game_id,
        player_symbol=action.player_symbol,
        board=action.board,
        current_turn=action.current_turn,
        winner=action.winner if action.status == GameStatus.COMPLETED else None,
        error=action.error,
        opponent_id=action.opponent_id,
    )


def _game_move(session: Session, action: GameMove) -> Session:
    # Marks are permanent until reset; a board that erases one is rejected
    if any(
        old != Cell.EMPTY and new == Cell.EMPTY for old, new in zip(session.board, action.board)
    ):
        return replace(session, error=SessionError.BOARD_REVERTED)
    return replace(
        session,
        board=action.board,
        current_turn=action.current_turn,
        error=action.error,
    )


def _set_error(session: Session, action: SetError) -> Session:
    return replace(session, error=action.error)


def _reset(session: Session, action: ResetSession) -> Session:
    return initial_session()


_REDUCERS: dict[type, Callable[[Session, Action], Session]] = {
    SetStatus: _set_status,
    SetPlayerId: _set_player_id,
    UpdateGameState: _update_game_state,
    GameMove: _game_move,
    SetError: _set_error,
    ResetSession: _reset,
}


def reduce(session: Session, action: Action) -> Session:
    """Apply one action. Unknown actions return *session* unchanged."""
    reducer = _REDUCERS.get(type(action))
    if reducer is None:
        return session
    return reducer(session, action)


def replay(actions: Iterable[Action], session: Session | None = None) -> Session:
    """Fold an ordered action log over *session* (default: a fresh one)."""
    current = session if session is not None else initial_session()
    for action in actions:
        current = reduce(current, action)
    return current
