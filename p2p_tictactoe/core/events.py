from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "LIST_PEERS",
    "INITIATE",
    "ANSWER",
    "MOVE",
    "RESET",
    "INVITE_RECEIVED",
    "ANSWER_RECEIVED",
    "START_RECEIVED",
    "TURN_RECEIVED",
]

# Event types produced by local input (CLI line, HTTP intent).
INTENT_TYPES: frozenset[str] = frozenset({"LIST_PEERS", "INITIATE", "ANSWER", "MOVE", "RESET"})


@dataclass(frozen=True, slots=True)
class SessionEvent:
    """Common internal event applied to the session by the router.

    Local intents and decoded network messages are both converted to this type,
    so the router never needs to know where an event came from.
    """

    type: EventType
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: EventType, payload: dict[str, Any] | None = None) -> "SessionEvent":
        return SessionEvent(type=type, payload=payload or {}, ts=datetime.now(timezone.utc))


def list_peers() -> SessionEvent:
    return SessionEvent.now(type="LIST_PEERS")


def initiate(peer: str) -> SessionEvent:
    return SessionEvent.now(type="INITIATE", payload={"peer": peer})


def answer(accept: bool) -> SessionEvent:
    return SessionEvent.now(type="ANSWER", payload={"accept": accept})


def move(row: int, col: int) -> SessionEvent:
    return SessionEvent.now(type="MOVE", payload={"row": row, "col": col})


def reset() -> SessionEvent:
    return SessionEvent.now(type="RESET")
