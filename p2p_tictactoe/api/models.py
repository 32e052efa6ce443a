from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class SessionPhase(StrEnum):
    idle = "idle"
    # Invited, as initiator: our Invite is out, waiting for an Answer.
    inviting = "inviting"
    # Invited, as invitee: someone proposed a game, waiting for our decision.
    invited = "invited"
    # We accepted; waiting for the initiator's Start.
    awaiting_start = "awaiting_start"
    active = "active"
    concluded = "concluded"


class TurnOwner(StrEnum):
    unset = "unset"
    local = "local"
    opponent = "opponent"


class GameOutcome(StrEnum):
    none = "none"
    local = "local"
    opponent = "opponent"


class SessionView(BaseModel):
    local_id: str
    phase: SessionPhase
    opponent_id: str | None = None
    turn_owner: TurnOwner = TurnOwner.unset
    outcome: GameOutcome = GameOutcome.none

    # Glyph rows, top to bottom.
    board: list[list[str]] = Field(default_factory=list)


class PeerListResponse(BaseModel):
    local_id: str
    peers: list[str]


class IntentRequest(BaseModel):
    action: Literal["list_peers", "initiate", "answer", "move", "reset"]
    peer: str | None = None
    accept: bool | None = None
    row: int | None = Field(default=None, ge=0, le=2)
    col: int | None = Field(default=None, ge=0, le=2)

    @model_validator(mode="after")
    def _check_required_fields(self) -> "IntentRequest":
        if self.action == "initiate" and not self.peer:
            raise ValueError("peer is required for initiate")
        if self.action == "answer" and self.accept is None:
            raise ValueError("accept is required for answer")
        if self.action == "move" and (self.row is None or self.col is None):
            raise ValueError("row and col are required for move")
        return self


class IntentAccepted(BaseModel):
    queued: bool = True
    action: str
