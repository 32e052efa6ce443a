from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import Protocol, TextIO

from p2p_tictactoe.api.models import GameOutcome
from p2p_tictactoe.fsm import Notice

Grid = Sequence[Sequence[str]]

ROW_LABELS = "ABC"


class Presenter(Protocol):
    """Callback surface the router reports to."""

    async def on_peer_list(self, peers: list[str]) -> None: ...

    async def on_invite_proposal(self, peer_id: str) -> None: ...

    async def on_game_started(self, board: Grid) -> None: ...

    async def on_opponent_declined(self, peer_id: str | None) -> None: ...

    async def on_turn_applied(self, board: Grid) -> None: ...

    async def on_game_over(self, outcome: GameOutcome) -> None: ...

    async def on_error(self, message: str) -> None: ...


async def dispatch_notice(presenter: Presenter, notice: Notice) -> None:
    p = notice.payload
    if notice.kind == "invite_proposal":
        await presenter.on_invite_proposal(p["peer_id"])
    elif notice.kind == "game_started":
        await presenter.on_game_started(p["board"])
    elif notice.kind == "opponent_declined":
        await presenter.on_opponent_declined(p.get("peer_id"))
    elif notice.kind == "turn_applied":
        await presenter.on_turn_applied(p["board"])
    elif notice.kind == "game_over":
        await presenter.on_game_over(p["outcome"])
    else:
        raise ValueError(f"Unknown notice kind: {notice.kind}")


def render_board(board: Grid) -> str:
    lines = ["  1   2   3"]
    for idx, row in enumerate(board):
        if idx:
            lines.append("  ---------")
        lines.append(f"{ROW_LABELS[idx]} " + " | ".join(row))
    return "\n".join(lines)


_GAME_OVER_TEXT = {
    GameOutcome.local: "Congrats, you win!",
    GameOutcome.opponent: "You lose, game over!",
    GameOutcome.none: "Draw, game over!",
}


class ConsolePresenter:
    """Plain-text rendering for the interactive CLI."""

    def __init__(self, *, out: TextIO | None = None) -> None:
        self.out = out or sys.stdout

    def write(self, text: str) -> None:
        print(text, file=self.out, flush=True)

    async def on_peer_list(self, peers: list[str]) -> None:
        self.write(f"Discovered {len(peers)} peers.")
        for i, peer in enumerate(peers):
            self.write(f"{i}: {peer}")

    async def on_invite_proposal(self, peer_id: str) -> None:
        self.write(f"<{peer_id}>: Do you want to play TicTacToe with me? y[es] or n[o] ?")

    async def on_game_started(self, board: Grid) -> None:
        self.write(render_board(board))
        self.write("Game started. Make a turn with 'turn <A|B|C> <1|2|3>'")

    async def on_opponent_declined(self, peer_id: str | None) -> None:
        self.write(f"{peer_id or 'Opponent'} declined the game.")

    async def on_turn_applied(self, board: Grid) -> None:
        self.write(render_board(board))

    async def on_game_over(self, outcome: GameOutcome) -> None:
        self.write(_GAME_OVER_TEXT[GameOutcome(outcome)])
        self.write("Type 'reset' to play again.")

    async def on_error(self, message: str) -> None:
        self.write(message)
