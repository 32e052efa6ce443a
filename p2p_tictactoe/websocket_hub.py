from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

from p2p_tictactoe.api.models import GameOutcome
from p2p_tictactoe.presentation import Grid

logger = logging.getLogger(__name__)


class SessionWebSocketHub:
    """In-process WebSocket fan-out for the local session.

    Contract:
      - register a connection via `connect(websocket)`.
      - broadcast lightweight events with `broadcast(payload)`.

    Payloads should be JSON-serializable dicts.
    """

    def __init__(self) -> None:
        self._conns: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._conns.add(websocket)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._conns.discard(websocket)

    async def broadcast(self, payload: dict[str, object]) -> None:
        async with self._lock:
            conns = list(self._conns)

        if not conns:
            return

        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(payload)
            except Exception:
                dead.append(ws)

        if dead:
            logger.debug("Dropping %d dead websocket(s)", len(dead))
            async with self._lock:
                for ws in dead:
                    self._conns.discard(ws)


class HubPresenter:
    """Presenter that forwards every callback to WebSocket clients as JSON."""

    def __init__(self, hub: SessionWebSocketHub) -> None:
        self.hub = hub

    async def on_peer_list(self, peers: list[str]) -> None:
        await self.hub.broadcast({"type": "peer_list", "peers": list(peers)})

    async def on_invite_proposal(self, peer_id: str) -> None:
        await self.hub.broadcast({"type": "invite_proposal", "peer_id": peer_id})

    async def on_game_started(self, board: Grid) -> None:
        await self.hub.broadcast({"type": "game_started", "board": [list(r) for r in board]})

    async def on_opponent_declined(self, peer_id: str | None) -> None:
        await self.hub.broadcast({"type": "opponent_declined", "peer_id": peer_id})

    async def on_turn_applied(self, board: Grid) -> None:
        await self.hub.broadcast({"type": "turn_applied", "board": [list(r) for r in board]})

    async def on_game_over(self, outcome: GameOutcome) -> None:
        await self.hub.broadcast({"type": "game_over", "outcome": GameOutcome(outcome).value})

    async def on_error(self, message: str) -> None:
        await self.hub.broadcast({"type": "error", "detail": message})


hub = SessionWebSocketHub()
