from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from p2p_tictactoe.core.board import BOARD_SIZE


class WireMessage(BaseModel):
    """Base for everything published on the game topic.

    Unknown fields are rejected so that no payload can validate as two shapes.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    sender: str = Field(..., min_length=1)
    # Token chosen by the initiator; binds Answer/Start/Turn to one game.
    session: str = Field(..., min_length=1)


class InviteMessage(WireMessage):
    """Request to play with `target`; the target replies with an Answer."""

    kind: Literal["invite"] = "invite"
    target: str = Field(..., min_length=1)


class AnswerMessage(WireMessage):
    kind: Literal["answer"] = "answer"
    accepted: bool


class StartMessage(WireMessage):
    """Initiator's confirmation that the invitee's accept arrived and play begins."""

    kind: Literal["start"] = "start"


class TurnMessage(WireMessage):
    kind: Literal["turn"] = "turn"
    row: int = Field(..., ge=0, lt=BOARD_SIZE)
    col: int = Field(..., ge=0, lt=BOARD_SIZE)


AnyMessage = InviteMessage | AnswerMessage | StartMessage | TurnMessage
