"""Tests for ProtocolBridge wired to an in-memory transport."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from tictactoe_client import connect
from tictactoe_client.bridge import ProtocolBridge
from tictactoe_client.errors import AlreadyConnectedError, SessionLostError
from tictactoe_client.types import (
    EMPTY_BOARD,
    Cell,
    ConnectionState,
    GameStatus,
    SessionError,
    Symbol,
)

URL = "ws://test/ws"
X, O, _ = Cell.X, Cell.O, Cell.EMPTY

GAME_STATE = json.dumps(
    {
        "type": "GAME_STATE",
        "status": "IN_PROGRESS",
        "gameId": "g1",
        "playerSymbol": "X",
        "board": ["X", None, None, None, None, None, None, None, None],
        "currentTurn": "O",
        "error": None,
    }
)
GAME_MOVE = json.dumps(
    {
        "type": "GAME_MOVE",
        "board": ["X", None, None, None, "O", None, None, None, None],
        "currentTurn": "X",
    }
)


@pytest_asyncio.fixture
async def client(transport):
    c = ProtocolBridge(URL)
    await c.connect()
    yield c
    await c.close()


@pytest.fixture
def offline_client():
    """Client with a mocked connection manager, as if connected."""
    c = ProtocolBridge(URL)
    c._connection = MagicMock()
    c._connection.send = AsyncMock(return_value=True)
    c._connection.close = AsyncMock()
    return c


class TestConnect:
    @pytest.mark.asyncio
    async def test_connected_status(self, client):
        assert client.session.status == GameStatus.CONNECTED
        assert client.session.board == EMPTY_BOARD
        assert client.connection_state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_second_connect_raises(self, client):
        with pytest.raises(AlreadyConnectedError):
            await client.connect()

    @pytest.mark.asyncio
    async def test_handshake_failure_sets_error(self, transport):
        transport.error = OSError("refused")
        c = ProtocolBridge(URL)
        assert await c.connect() is False
        assert c.session.status == GameStatus.NOT_CONNECTED
        assert c.session.error == SessionError.CONNECTION_FAILED

    @pytest.mark.asyncio
    async def test_context_manager(self, transport):
        async with connect(URL) as c:
            assert c.session.status == GameStatus.CONNECTED
        assert c.connection_state == ConnectionState.DISCONNECTED
        assert transport.ws.closed is True


class TestInbound:
    @pytest.mark.asyncio
    async def test_game_state_snapshot(self, client, transport, settle):
        transport.ws.feed(GAME_STATE)
        await settle()
        session = client.session
        assert session.status == GameStatus.IN_PROGRESS
        assert session.game_id == "g1"
        assert session.player_symbol == Symbol.X
        assert session.board == (X, _, _, _, _, _, _, _, _)
        assert session.current_turn == Symbol.O
        assert session.winner is None
        assert session.error is None

    @pytest.mark.asyncio
    async def test_game_move_preserves_identity(self, client, transport, settle):
        transport.ws.feed(GAME_STATE)
        transport.ws.feed(GAME_MOVE)
        await settle()
        session = client.session
        assert session.game_id == "g1"
        assert session.player_symbol == Symbol.X
        assert session.status == GameStatus.IN_PROGRESS
        assert session.board == (X, _, _, _, O, _, _, _, _)
        assert session.current_turn == Symbol.X

    @pytest.mark.asyncio
    async def test_unknown_frame_changes_nothing(self, client, transport, settle):
        before = client.session
        calls = []
        client.on_change(calls.append)
        transport.ws.feed(json.dumps({"type": "CHAT", "text": "gg"}))
        await settle()
        assert client.session is before
        assert calls == []

    @pytest.mark.asyncio
    async def test_malformed_frame_sets_decode_error(self, client, transport, settle):
        transport.ws.feed(GAME_STATE)
        await settle()
        before = client.session
        transport.ws.feed("{not json")
        await settle()
        after = client.session
        assert after.error == SessionError.DECODE_FAILED
        assert after.status == before.status
        assert after.game_id == before.game_id
        assert after.board == before.board
        assert after.current_turn == before.current_turn

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "frame",
        [
            "{not json",
            "[1, 2]",
            json.dumps({"type": ["GAME_STATE"]}),
            json.dumps({"type": {"x": 1}}),
            json.dumps({"type": "GAME_STATE", "status": "PAUSED"}),
            json.dumps({"type": "GAME_MOVE", "board": ["O"] + [None] * 8, "currentTurn": "X"}),
            json.dumps({"type": "GAME_STATE", "status": "IN_PROGRESS", "winner": "X"}),
        ],
    )
    async def test_decode_failures_set_error_and_keep_receiving(
        self, client, transport, settle, frame
    ):
        transport.ws.feed(frame)
        await settle()
        assert client.session.error == SessionError.DECODE_FAILED
        assert client.connection_state == ConnectionState.CONNECTED

        transport.ws.feed(GAME_STATE)
        await settle()
        assert client.session.game_id == "g1"
        assert client.session.error is None

    @pytest.mark.asyncio
    async def test_erased_mark_rejected(self, client, transport, settle):
        transport.ws.feed(GAME_STATE)
        await settle()
        transport.ws.feed(
            json.dumps(
                {
                    "type": "GAME_MOVE",
                    "board": [None, None, None, None, "X", "O", None, None, None],
                    "currentTurn": "X",
                }
            )
        )
        await settle()
        assert client.session.board == (X, _, _, _, _, _, _, _, _)
        assert client.session.error == SessionError.BOARD_REVERTED

    @pytest.mark.asyncio
    async def test_peer_error_surfaces_with_update(self, client, transport, settle):
        transport.ws.feed(GAME_STATE)
        transport.ws.feed(
            json.dumps(
                {
                    "type": "GAME_MOVE",
                    "board": ["X", None, None, None, None, None, None, None, None],
                    "currentTurn": "O",
                    "error": "NOT_YOUR_TURN",
                }
            )
        )
        await settle()
        assert client.session.error == "NOT_YOUR_TURN"
        assert client.session.current_turn == Symbol.O

    @pytest.mark.asyncio
    async def test_repeated_snapshot_notifies_once(self, client, transport, settle):
        calls = []
        client.on_change(calls.append)
        transport.ws.feed(GAME_STATE)
        transport.ws.feed(GAME_STATE)
        await settle()
        assert len(calls) == 1


class TestOutbound:
    @pytest.mark.asyncio
    async def test_start_game_frame(self, client, transport):
        assert await client.start_game() is True
        assert json.loads(transport.ws.sent[0]) == {"type": "START_GAME", "payload": {}}

    @pytest.mark.asyncio
    async def test_start_game_while_connecting_is_flushed(self, transport):
        transport.gate.clear()
        c = ProtocolBridge(URL)
        task = asyncio.create_task(c.connect())
        await asyncio.sleep(0)
        assert await c.start_game() is True
        transport.gate.set()
        assert await task is True
        assert [json.loads(f)["type"] for f in transport.ws.sent] == ["START_GAME"]
        await c.close()

    @pytest.mark.asyncio
    async def test_start_game_offline_dropped(self, transport):
        c = ProtocolBridge(URL)
        assert await c.start_game() is False

    @pytest.mark.asyncio
    async def test_make_move_frame(self, client, transport, settle):
        transport.ws.feed(GAME_STATE)
        await settle()
        assert await client.make_move(4) is True
        assert json.loads(transport.ws.sent[-1]) == {
            "type": "MAKE_MOVE",
            "payload": {"gameId": "g1", "index": 4, "symbol": "X"},
        }

    @pytest.mark.asyncio
    async def test_make_move_not_checked_locally(self, client, transport, settle):
        # Occupied cell, opponent's turn: still forwarded, server decides
        transport.ws.feed(GAME_STATE)
        await settle()
        assert await client.make_move(0) is True
        assert json.loads(transport.ws.sent[-1])["payload"]["index"] == 0

    @pytest.mark.asyncio
    async def test_make_move_without_game(self, client, transport):
        assert await client.make_move(4) is False
        assert transport.ws.sent == []

    @pytest.mark.asyncio
    async def test_make_move_bad_index(self, client, transport, settle):
        transport.ws.feed(GAME_STATE)
        await settle()
        with pytest.raises(ValueError):
            await client.make_move(9)

    @pytest.mark.asyncio
    async def test_sends_through_connection(self, offline_client):
        await offline_client.start_game()
        offline_client._connection.send.assert_called_once_with(
            '{"type":"START_GAME","payload":{}}'
        )


class TestConnectionLoss:
    @pytest.mark.asyncio
    async def test_drop_sets_connection_lost(self, client, transport, settle):
        transport.ws.feed(GAME_STATE)
        await settle()
        before = client.session
        transport.ws.drop()
        await settle()
        after = client.session
        assert after.error == SessionError.CONNECTION_LOST
        assert after.status == GameStatus.IN_PROGRESS
        assert after.board == before.board
        assert after.current_turn == before.current_turn

    @pytest.mark.asyncio
    async def test_connect_after_loss_requires_reset(self, client, transport, settle):
        transport.ws.feed(GAME_STATE)
        await settle()
        transport.ws.drop()
        await settle()
        with pytest.raises(SessionLostError):
            await client.connect()
        assert len(transport.calls) == 1
        assert await client.reset() is True
        assert client.session.status == GameStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_no_automatic_reconnect(self, client, transport, settle):
        transport.ws.drop()
        await settle()
        assert len(transport.calls) == 1
        assert client.connection_state == ConnectionState.ERROR


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_reconnects_fresh(self, client, transport, settle):
        transport.ws.feed(GAME_STATE)
        await settle()
        old_ws = transport.ws
        old_ws.drop()
        await settle()

        assert await client.reset() is True
        assert old_ws.closed is True
        assert len(transport.sockets) == 2
        assert client.session.status == GameStatus.CONNECTED
        assert client.session.error is None
        assert client.session.game_id is None
        assert client.session.board == EMPTY_BOARD

    @pytest.mark.asyncio
    async def test_reset_without_reconnect(self, client, transport):
        assert await client.reset(reconnect=False) is True
        assert client.session.status == GameStatus.NOT_CONNECTED
        assert client.connection_state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_old_socket_ignored_after_reset(self, client, transport, settle):
        old_ws = transport.ws
        await client.reset()
        old_ws.feed(GAME_STATE)
        await settle()
        assert client.session.game_id is None


class TestObservers:
    @pytest.mark.asyncio
    async def test_listener_errors_are_contained(self, client, transport, settle):
        seen = []

        @client.on_change
        def broken(session):
            raise RuntimeError("render failed")

        client.on_change(seen.append)
        transport.ws.feed(GAME_STATE)
        await settle()
        assert len(seen) == 1
        assert client.session.game_id == "g1"

    @pytest.mark.asyncio
    async def test_async_listener(self, client, transport, settle):
        seen = []

        async def listener(session):
            seen.append(session.status)

        client.on_change(listener)
        transport.ws.feed(GAME_STATE)
        await settle()
        assert seen == [GameStatus.IN_PROGRESS]

    @pytest.mark.asyncio
    async def test_off_change(self, client, transport, settle):
        seen = []
        client.on_change(seen.append)
        client.off_change(seen.append)
        client.off_change(seen.append)
        transport.ws.feed(GAME_STATE)
        await settle()
        assert seen == []

    @pytest.mark.asyncio
    async def test_iteration_yields_updates_until_close(self, transport, settle):
        c = ProtocolBridge(URL)
        await c.connect()
        transport.ws.feed(GAME_STATE)
        transport.ws.feed(GAME_MOVE)
        await settle()
        await c.close()

        statuses = [session.status async for session in c]
        assert statuses == [
            GameStatus.CONNECTED,
            GameStatus.IN_PROGRESS,
            GameStatus.IN_PROGRESS,
        ]
