from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from p2p_tictactoe.codec import decode_event, encode_message
from p2p_tictactoe.core.events import INTENT_TYPES, SessionEvent
from p2p_tictactoe.errors import ProtocolError, UnknownPeer
from p2p_tictactoe.fsm import UNCHANGED, AppliedEvent
from p2p_tictactoe.presentation import Presenter, dispatch_notice
from p2p_tictactoe.session import GameSession
from p2p_tictactoe.substrate import MessagingSubstrate

logger = logging.getLogger(__name__)

_INTENT = "intent"
_INBOUND = "inbound"
_HOUSEKEEPING = "housekeeping"


@dataclass(frozen=True, slots=True)
class RouterConfig:
    topic: str = "TicTacToe"
    # How long one housekeeping poll blocks waiting for a raw message.
    poll_s: float = 0.25
    # Minimum interval between presence heartbeats.
    heartbeat_s: float = 5.0


class EventRouter:
    """Single control loop owning the `GameSession`.

    Waits on whichever of local intents, decoded inbound messages, or substrate
    housekeeping is ready first and processes exactly one event before waiting
    again. Decoding runs on short-lived tasks that only push onto `inbound`, so
    the session is only ever mutated from here.
    """

    def __init__(
        self,
        *,
        session: GameSession,
        substrate: MessagingSubstrate,
        presenter: Presenter,
        config: RouterConfig | None = None,
    ) -> None:
        self.session = session
        self.substrate = substrate
        self.presenter = presenter
        self.config = config or RouterConfig()

        self.intents: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self.inbound: asyncio.Queue[SessionEvent] = asyncio.Queue()

        self._sources: dict[str, asyncio.Task[Any]] = {}
        self._decoders: set[asyncio.Task[None]] = set()
        self._last_heartbeat = 0.0
        self._started = False

        self._handlers: dict[str, Callable[[SessionEvent], Awaitable[AppliedEvent]]] = {
            "LIST_PEERS": self._list_peers,
            "INITIATE": self._initiate,
            "ANSWER": lambda e: self._sync(self.session.answer, bool(e.payload["accept"])),
            "MOVE": lambda e: self._sync(self.session.make_move, int(e.payload["row"]), int(e.payload["col"])),
            "RESET": lambda e: self._sync(self.session.reset),
            "INVITE_RECEIVED": lambda e: self._sync(self.session.receive_invite, e.payload["message"]),
            "ANSWER_RECEIVED": lambda e: self._sync(self.session.receive_answer, e.payload["message"]),
            "START_RECEIVED": lambda e: self._sync(self.session.receive_start, e.payload["message"]),
            "TURN_RECEIVED": lambda e: self._sync(self.session.receive_move, e.payload["message"]),
        }

    async def submit(self, event: SessionEvent) -> None:
        """Queue a local intent. Network events only arrive through the substrate."""

        if event.type not in INTENT_TYPES:
            raise ValueError(f"Not a local intent: {event.type}")
        await self.intents.put(event)

    async def start(self) -> None:
        if self._started:
            return
        await self.substrate.subscribe(self.config.topic)
        self._last_heartbeat = time.monotonic()
        self._started = True
        logger.info("Router for %s listening on topic %s", self.session.local_id, self.config.topic)

    async def run(self) -> None:
        await self.start()
        try:
            while True:
                await self.step()
        finally:
            await self.aclose()

    async def step(self) -> SessionEvent | None:
        """Wait for the first ready source and process exactly one event.

        Returns the applied session event, or None for a housekeeping tick.
        """

        self._ensure_sources()
        done, _ = await asyncio.wait(set(self._sources.values()), return_when=asyncio.FIRST_COMPLETED)

        # Consume one completed source; any other finished task is picked up next step.
        name = next(n for n, t in self._sources.items() if t in done)
        task = self._sources.pop(name)
        result = task.result()

        if name == _HOUSEKEEPING:
            await self._housekeeping(result)
            return None

        await self.handle(result)
        return result

    async def handle(self, event: SessionEvent) -> AppliedEvent:
        handler = self._handlers.get(event.type)
        if handler is None:
            raise ValueError(f"Unknown event type: {event.type}")

        try:
            applied = await handler(event)
        except ProtocolError as e:
            logger.info("Rejected %s: %s", event.type, e)
            await self.presenter.on_error(str(e))
            return UNCHANGED

        for message in applied.outbound:
            await self.substrate.publish(self.config.topic, encode_message(message))
        for notice in applied.notices:
            await dispatch_notice(self.presenter, notice)
        return applied

    async def aclose(self) -> None:
        for task in list(self._sources.values()) + list(self._decoders):
            task.cancel()
        await asyncio.gather(*self._sources.values(), *self._decoders, return_exceptions=True)
        self._sources.clear()
        self._decoders.clear()

    # ---- event sources ----

    def _ensure_sources(self) -> None:
        if _INTENT not in self._sources:
            self._sources[_INTENT] = asyncio.create_task(self.intents.get())
        if _INBOUND not in self._sources:
            self._sources[_INBOUND] = asyncio.create_task(self.inbound.get())
        if _HOUSEKEEPING not in self._sources:
            self._sources[_HOUSEKEEPING] = asyncio.create_task(self.substrate.next_raw(timeout=self.config.poll_s))

    async def _housekeeping(self, raw: str | bytes | None) -> None:
        now = time.monotonic()
        if now - self._last_heartbeat >= self.config.heartbeat_s:
            self._last_heartbeat = now
            await self.substrate.heartbeat()

        if raw is None:
            return
        task = asyncio.create_task(self._decode_and_enqueue(raw))
        self._decoders.add(task)
        task.add_done_callback(self._decoders.discard)

    async def _decode_and_enqueue(self, raw: str | bytes) -> None:
        event = decode_event(raw)
        if event is None:
            return
        if event.payload["message"].sender == self.session.local_id:
            # pub/sub echo of our own publish
            return
        await self.inbound.put(event)

    # ---- handlers ----

    async def _sync(self, fn: Callable[..., AppliedEvent], *args: Any) -> AppliedEvent:
        return fn(*args)

    async def _list_peers(self, event: SessionEvent) -> AppliedEvent:
        peers = await self.substrate.discover_peers()
        await self.presenter.on_peer_list(peers)
        return UNCHANGED

    async def _initiate(self, event: SessionEvent) -> AppliedEvent:
        peer_id = await self._resolve_peer(str(event.payload["peer"]))
        return self.session.initiate(peer_id)

    async def _resolve_peer(self, peer: str) -> str:
        """Accept either an index into the discovered peer list or a peer id."""

        peers = await self.substrate.discover_peers()
        if peer in peers:
            return peer
        if peer.isascii() and peer.isdigit() and int(peer) < len(peers):
            return peers[int(peer)]
        raise UnknownPeer(peer)
