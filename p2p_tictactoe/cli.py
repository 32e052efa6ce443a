"""
p2p-tictactoe CLI.

Usage:
    p2p-tictactoe play             Play interactively from this terminal
    p2p-tictactoe serve            Run the HTTP/WebSocket front-end
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from enum import StrEnum

from p2p_tictactoe.config import Settings, load_dotenv_if_present, load_settings
from p2p_tictactoe.core import events
from p2p_tictactoe.core.events import SessionEvent
from p2p_tictactoe.presentation import ROW_LABELS, ConsolePresenter, render_board
from p2p_tictactoe.runtime import Runtime, build_runtime, start_runtime, stop_runtime

logger = logging.getLogger(__name__)


class CommandError(ValueError):
    pass


class LocalCommand(StrEnum):
    help = "help"
    status = "status"
    quit = "quit"


COMMANDS: tuple[tuple[str, str], ...] = (
    ("help", "prints help."),
    ("peers", "writes <index>: <peer_id> for all active peers."),
    ("start <peer_index>", "sends peer with index <peer_index> (or a peer id) an offer to play."),
    ("y[es] / n[o]", "accepts or declines a game proposal."),
    ("turn <A|B|C> <1|2|3>", "places your mark and sends the turn to the opponent."),
    ("status", "shows the session state and board."),
    ("reset", "abandons the current game."),
    ("quit", "exits."),
)


def help_text() -> str:
    lines = ["Available commands: "]
    lines.extend(f"{name:24} - {desc}" for name, desc in COMMANDS)
    return "\n".join(lines)


def parse_coords(args: list[str]) -> tuple[int, int]:
    """Convert `<A|B|C> <1|2|3>` into zero-based (row, col)."""

    if len(args) != 2:
        raise CommandError("Invalid number of arguments. Expected: 2.")

    letter, number = args[0].upper(), args[1]
    if len(letter) != 1 or letter not in ROW_LABELS:
        raise CommandError("Invalid row, use format 'turn <A|B|C> <1|2|3>'")
    if number not in {"1", "2", "3"}:
        raise CommandError("Value is not valid, use value 1-3.")
    return ROW_LABELS.index(letter), int(number) - 1


def parse_command(line: str) -> SessionEvent | LocalCommand | None:
    """Map one input line to a session intent or a local-only command.

    Blank lines give None; anything unrecognized raises `CommandError`.
    """

    parts = line.strip().split()
    if not parts:
        return None

    cmd, args = parts[0].lower(), parts[1:]
    if cmd in {"help", "status", "quit"}:
        return LocalCommand(cmd)
    if cmd == "peers":
        return events.list_peers()
    if cmd == "start":
        if len(args) != 1:
            raise CommandError("Usage: start <peer_index>")
        return events.initiate(args[0])
    if cmd in {"y", "yes"}:
        return events.answer(True)
    if cmd in {"n", "no"}:
        return events.answer(False)
    if cmd == "turn":
        row, col = parse_coords(args)
        return events.move(row, col)
    if cmd == "reset":
        return events.reset()
    raise CommandError(f"Unknown command '{cmd}', type 'help' for the list")


def status_text(rt: Runtime) -> str:
    view = rt.session.snapshot()
    return "\n".join(
        [
            f"peer id: {view.local_id}",
            f"phase: {view.phase.value}  opponent: {view.opponent_id or '-'}  turn: {view.turn_owner.value}",
            render_board(view.board),
        ]
    )


async def read_commands(rt: Runtime, presenter: ConsolePresenter) -> None:
    """Feed stdin lines into the router's intent queue until EOF or `quit`."""

    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            logger.debug("stdin closed")
            return
        try:
            cmd = parse_command(line)
        except CommandError as e:
            await presenter.on_error(str(e))
            continue

        if cmd is None:
            continue
        if cmd == LocalCommand.quit:
            return
        if cmd == LocalCommand.help:
            presenter.write(help_text())
        elif cmd == LocalCommand.status:
            presenter.write(status_text(rt))
        else:
            await rt.router.submit(cmd)


async def play(settings: Settings) -> None:
    presenter = ConsolePresenter()
    rt = build_runtime(settings=settings, presenter=presenter)
    await start_runtime(rt)
    presenter.write(f"Your peer id: {settings.peer_id}")
    presenter.write(help_text())
    try:
        await read_commands(rt, presenter)
    finally:
        await stop_runtime(rt)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Two-player TicTacToe over Redis pub/sub",
        prog="p2p-tictactoe",
    )
    parser.add_argument("--peer-id", help="Local peer identity (default: $TICTACTOE_PEER_ID or generated)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("play", help="Play interactively from this terminal")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP/WebSocket front-end")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    load_dotenv_if_present()
    settings = load_settings(peer_id=args.peer_id)
    logging.basicConfig(level=settings.log_level)

    if args.command == "play":
        asyncio.run(play(settings))
    elif args.command == "serve":
        import uvicorn

        # The app builds its own settings at startup; keep the chosen identity.
        os.environ["TICTACTOE_PEER_ID"] = settings.peer_id
        uvicorn.run("p2p_tictactoe.main:app", host=args.host, port=args.port)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
