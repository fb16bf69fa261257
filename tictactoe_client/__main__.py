"""Terminal front end for the tic-tac-toe client.

    python -m tictactoe_client --url ws://localhost:8081/ws

Redraws the board after every session change and reads commands from stdin:
``start``, a cell number ``0``-``8`` (or ``move N``), ``reset``, ``quit``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from . import connect
from .bridge import ProtocolBridge
from .config import ClientConfig
from .constants import BOARD_WIDTH
from .types import Cell, Session

HELP = "Commands: start | 0-8 | move N | reset | quit"


def render(session: Session) -> str:
    """Draw the board, numbering empty cells so they can be picked."""
    rows = []
    for start in range(0, len(session.board), BOARD_WIDTH):
        row = session.board[start : start + BOARD_WIDTH]
        rows.append(
            " "
            + " | ".join(
                str(start + i) if cell == Cell.EMPTY else cell.value
                for i, cell in enumerate(row)
            )
        )
    lines = ["", "\n---+---+---\n".join(rows), ""]

    status = f"[{session.status.value}]"
    if session.player_symbol:
        status += f" you: {session.player_symbol.value}"
    if session.current_turn and not session.is_over:
        status += " (your move)" if session.is_my_turn else f" waiting for {session.current_turn.value}"
    if session.winner:
        status += f" winner: {session.winner.value}"
    lines.append(status)

    if session.error:
        lines.append(f"!! {session.error} (type 'reset' to start over)")
    return "\n".join(lines)


async def handle_command(client: ProtocolBridge, line: str) -> bool:
    """Run one command. Returns False when the user asked to quit."""
    words = line.split()
    if not words:
        return True

    command = words[0].lower()
    if command in ("quit", "exit", "q"):
        return False
    if command == "start":
        await client.start_game()
    elif command == "reset":
        await client.reset()
    elif command == "move" and len(words) == 2 and words[1].isdigit():
        await _move(client, int(words[1]))
    elif command.isdigit():
        await _move(client, int(command))
    else:
        print(HELP)
    return True


async def _move(client: ProtocolBridge, index: int) -> None:
    try:
        await client.make_move(index)
    except ValueError as exc:
        print(exc)


async def main(url: str | None) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    lines: asyncio.Queue[str] = asyncio.Queue()
    loop.add_reader(sys.stdin, lambda: lines.put_nowait(sys.stdin.readline()))

    client = connect(config=ClientConfig.from_env(url))
    client.on_change(lambda session: print(render(session), flush=True))

    try:
        async with client:
            print(f"Server: {client.url}")
            print(render(client.session))
            print(HELP)

            stop_wait = asyncio.ensure_future(stop.wait())
            try:
                while True:
                    next_line = asyncio.ensure_future(lines.get())
                    done, _ = await asyncio.wait(
                        {next_line, stop_wait}, return_when=asyncio.FIRST_COMPLETED
                    )
                    if stop_wait in done:
                        next_line.cancel()
                        break
                    line = next_line.result()
                    if not line:  # EOF
                        break
                    if not await handle_command(client, line):
                        break
            finally:
                stop_wait.cancel()
    finally:
        loop.remove_reader(sys.stdin)


def cli() -> None:
    parser = argparse.ArgumentParser(description="Play tic-tac-toe against a remote opponent")
    parser.add_argument("--url", default=None, help="Server URL (default: $TICTACTOE_WS_URL)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main(args.url))


if __name__ == "__main__":
    cli()
