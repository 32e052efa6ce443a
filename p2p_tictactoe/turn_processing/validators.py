from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from p2p_tictactoe.api.models import SessionPhase, TurnOwner
from p2p_tictactoe.errors import (
    GameConcluded,
    NotInitiated,
    NotYourTurn,
    ProtocolError,
    UnboundMessage,
)

if TYPE_CHECKING:
    from p2p_tictactoe.session import GameSession


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Inputs available to validators.

    Keep this tight and serializable-ish so we can safely log it.
    `sender`/`session_token` are only set for inbound messages.
    """

    local_id: str
    action: str
    sender: str | None = None
    session_token: str | None = None


class TurnValidator(ABC):
    """A small, composable validation unit for a session action."""

    @abstractmethod
    def validate(self, *, ctx: ValidationContext, session: "GameSession") -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class PhaseValidator(TurnValidator):
    """Validates the current session phase for a given action."""

    allowed_phases: frozenset[SessionPhase]
    error: type[ProtocolError] = NotInitiated

    def validate(self, *, ctx: ValidationContext, session: "GameSession") -> None:
        if session.phase not in self.allowed_phases:
            allowed = ",".join(sorted(p.value for p in self.allowed_phases))
            raise self.error(f"Action '{ctx.action}' not allowed in phase '{session.phase.value}' (allowed: {allowed})")


@dataclass(frozen=True, slots=True)
class ConcludedGameValidator(TurnValidator):
    """Deny moves after the game is over."""

    def validate(self, *, ctx: ValidationContext, session: "GameSession") -> None:
        if session.phase == SessionPhase.concluded:
            raise GameConcluded()


@dataclass(frozen=True, slots=True)
class AwaitingStartValidator(TurnValidator):
    """The invitee never moves first: until Start arrives, it's the initiator's turn."""

    def validate(self, *, ctx: ValidationContext, session: "GameSession") -> None:
        if session.phase == SessionPhase.awaiting_start:
            raise NotYourTurn("Game has not started yet, waiting for opponent")


@dataclass(frozen=True, slots=True)
class TurnOwnerValidator(TurnValidator):
    """Only the current turn owner may place a mark."""

    expected: TurnOwner

    def validate(self, *, ctx: ValidationContext, session: "GameSession") -> None:
        if session.phase != SessionPhase.active:
            return
        if session.turn_owner != self.expected:
            if self.expected == TurnOwner.local:
                raise NotYourTurn()
            raise NotYourTurn(f"Opponent moved out of turn (turn owner: {session.turn_owner.value})")


@dataclass(frozen=True, slots=True)
class SessionBindingValidator(TurnValidator):
    """Inbound messages must come from our opponent and carry our session token."""

    def validate(self, *, ctx: ValidationContext, session: "GameSession") -> None:
        if session.opponent_id is None or session.session_token is None:
            raise NotInitiated()
        if ctx.sender != session.opponent_id:
            raise UnboundMessage(f"Message from '{ctx.sender}' but opponent is '{session.opponent_id}'")
        if ctx.session_token != session.session_token:
            raise UnboundMessage("Message carries a foreign session token")


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[TurnValidator, ...]

    def validate(self, *, ctx: ValidationContext, session: "GameSession") -> None:
        for v in self.validators:
            v.validate(ctx=ctx, session=session)


DEFAULT_ACTION_PIPELINES: dict[str, ValidatorPipeline] = {
    "answer": ValidatorPipeline(
        validators=(PhaseValidator(allowed_phases=frozenset({SessionPhase.invited})),)
    ),
    "move": ValidatorPipeline(
        validators=(
            ConcludedGameValidator(),
            AwaitingStartValidator(),
            PhaseValidator(allowed_phases=frozenset({SessionPhase.active})),
            TurnOwnerValidator(expected=TurnOwner.local),
        )
    ),
    "remote_answer": ValidatorPipeline(
        validators=(
            PhaseValidator(allowed_phases=frozenset({SessionPhase.inviting})),
            SessionBindingValidator(),
        )
    ),
    "remote_start": ValidatorPipeline(
        validators=(
            PhaseValidator(allowed_phases=frozenset({SessionPhase.awaiting_start})),
            SessionBindingValidator(),
        )
    ),
    "remote_move": ValidatorPipeline(
        validators=(
            PhaseValidator(allowed_phases=frozenset({SessionPhase.active, SessionPhase.awaiting_start})),
            SessionBindingValidator(),
            TurnOwnerValidator(expected=TurnOwner.opponent),
        )
    ),
}


def pipeline_for_action(action: str) -> ValidatorPipeline:
    pipe = DEFAULT_ACTION_PIPELINES.get(action)
    if pipe is None:
        raise ValueError(f"Unknown action: {action}")
    return pipe
