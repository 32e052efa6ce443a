from __future__ import annotations

import logging

from pydantic import ValidationError

from p2p_tictactoe.core.events import SessionEvent
from p2p_tictactoe.errors import MalformedMessage
from p2p_tictactoe.messages import AnswerMessage, AnyMessage, InviteMessage, StartMessage, TurnMessage

logger = logging.getLogger(__name__)

# Fixed trial order; the first shape that validates decides the event.
_SHAPES: tuple[type[AnyMessage], ...] = (InviteMessage, AnswerMessage, TurnMessage, StartMessage)

_EVENT_TYPES = {
    InviteMessage: "INVITE_RECEIVED",
    AnswerMessage: "ANSWER_RECEIVED",
    StartMessage: "START_RECEIVED",
    TurnMessage: "TURN_RECEIVED",
}


def encode_message(message: AnyMessage) -> str:
    return message.model_dump_json()


def decode_message(raw: str | bytes) -> AnyMessage:
    """Parse an inbound payload into one of the known wire shapes.

    Raises `MalformedMessage` if nothing matches.
    """

    for shape in _SHAPES:
        try:
            return shape.model_validate_json(raw)
        except ValidationError:
            continue
    raise MalformedMessage(f"Payload matches no known message shape ({len(raw)} bytes)")


def event_from_message(message: AnyMessage) -> SessionEvent:
    return SessionEvent.now(type=_EVENT_TYPES[type(message)], payload={"message": message})  # type: ignore[arg-type]


def decode_event(raw: str | bytes) -> SessionEvent | None:
    """Decode a raw payload straight into a `SessionEvent`.

    Foreign or corrupted traffic on the shared topic is dropped, not surfaced.
    """

    try:
        message = decode_message(raw)
    except MalformedMessage as e:
        logger.debug("Dropping inbound payload: %s", e)
        return None
    return event_from_message(message)
