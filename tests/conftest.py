from __future__ import annotations

import asyncio
from typing import Any

import pytest

from p2p_tictactoe.session import GameSession


class RecordingSubstrate:
    """In-memory substrate: records publishes, serves queued raw payloads."""

    def __init__(self, *, local_id: str, peers: list[str] | None = None) -> None:
        self.local_id = local_id
        self.peers = list(peers or [])
        self.published: list[tuple[str, str]] = []
        self.subscribed: list[str] = []
        self.heartbeats = 0
        self.closed = False
        self.raw: asyncio.Queue[str | bytes] = asyncio.Queue()

    async def subscribe(self, topic: str) -> None:
        self.subscribed.append(topic)

    async def publish(self, topic: str, payload: str) -> None:
        self.published.append((topic, payload))

    async def discover_peers(self) -> list[str]:
        return sorted(set(self.peers) - {self.local_id})

    async def next_raw(self, *, timeout: float) -> str | bytes | None:
        try:
            return await asyncio.wait_for(self.raw.get(), timeout)
        except TimeoutError:
            return None

    async def heartbeat(self) -> None:
        self.heartbeats += 1

    async def close(self) -> None:
        self.closed = True


class RecordingPresenter:
    """Presenter that keeps every callback as (name, argument)."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def last(self, name: str) -> Any:
        return next(arg for n, arg in reversed(self.calls) if n == name)

    async def on_peer_list(self, peers: list[str]) -> None:
        self.calls.append(("on_peer_list", peers))

    async def on_invite_proposal(self, peer_id: str) -> None:
        self.calls.append(("on_invite_proposal", peer_id))

    async def on_game_started(self, board: Any) -> None:
        self.calls.append(("on_game_started", board))

    async def on_opponent_declined(self, peer_id: str | None) -> None:
        self.calls.append(("on_opponent_declined", peer_id))

    async def on_turn_applied(self, board: Any) -> None:
        self.calls.append(("on_turn_applied", board))

    async def on_game_over(self, outcome: Any) -> None:
        self.calls.append(("on_game_over", outcome))

    async def on_error(self, message: str) -> None:
        self.calls.append(("on_error", message))


def start_game(initiator: GameSession, invitee: GameSession) -> None:
    """Run the full Invite/Answer/Start handshake between two sessions."""

    invite = initiator.initiate(invitee.local_id).outbound[0]
    invitee.receive_invite(invite)  # type: ignore[arg-type]
    reply = invitee.answer(True).outbound[0]
    start = initiator.receive_answer(reply).outbound[0]  # type: ignore[arg-type]
    invitee.receive_start(start)  # type: ignore[arg-type]


def play(mover: GameSession, other: GameSession, row: int, col: int) -> None:
    """Make a local move and deliver the resulting Turn to the other side."""

    turn = mover.make_move(row, col).outbound[0]
    other.receive_move(turn)  # type: ignore[arg-type]


@pytest.fixture()
def sessions() -> tuple[GameSession, GameSession]:
    return GameSession(local_id="alice"), GameSession(local_id="bob")


@pytest.fixture()
def active_sessions(sessions: tuple[GameSession, GameSession]) -> tuple[GameSession, GameSession]:
    alice, bob = sessions
    start_game(alice, bob)
    return alice, bob
