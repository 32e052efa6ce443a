from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from p2p_tictactoe.api.models import SessionPhase
from p2p_tictactoe.errors import ProtocolError

if TYPE_CHECKING:
    from p2p_tictactoe.messages import AnyMessage


NoticeKind = Literal[
    "invite_proposal",
    "game_started",
    "opponent_declined",
    "turn_applied",
    "game_over",
]


@dataclass(frozen=True, slots=True)
class Notice:
    """Something the presentation layer should be told about."""

    kind: NoticeKind
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AppliedEvent:
    """Result of applying an event to the session.

    - `state_changed`: if the authoritative session state mutated.
    - `outbound`: messages to publish on the game topic.
    - `notices`: presentation callbacks to fire, in order.
    """

    state_changed: bool
    outbound: list["AnyMessage"] = field(default_factory=list)
    notices: list[Notice] = field(default_factory=list)


UNCHANGED = AppliedEvent(state_changed=False)


class SessionFSM(StateMachine):
    """Handshake/turn phases of a game session.

    idle -> inviting (we sent an Invite) -> active
    idle -> invited (we got an Invite) -> awaiting_start (we accepted) -> active
    active -> concluded; any phase -> idle on reset.

    Whose turn it is inside `active` lives on the session; the FSM only guards phases.
    """

    idle = State(SessionPhase.idle.value, value=SessionPhase.idle.value, initial=True)
    inviting = State(SessionPhase.inviting.value, value=SessionPhase.inviting.value)
    invited = State(SessionPhase.invited.value, value=SessionPhase.invited.value)
    awaiting_start = State(SessionPhase.awaiting_start.value, value=SessionPhase.awaiting_start.value)
    active = State(SessionPhase.active.value, value=SessionPhase.active.value)
    concluded = State(SessionPhase.concluded.value, value=SessionPhase.concluded.value)

    invite_sent = idle.to(inviting)
    invite_received = idle.to(invited)
    invite_declined = invited.to(idle)
    invite_accepted = invited.to(awaiting_start)
    answer_accepted = inviting.to(active)
    answer_declined = inviting.to(idle)
    start_received = awaiting_start.to(active)
    game_concluded = active.to(concluded)
    cleared = (
        idle.to.itself()
        | inviting.to(idle)
        | invited.to(idle)
        | awaiting_start.to(idle)
        | active.to(idle)
        | concluded.to(idle)
    )

    @property
    def phase(self) -> SessionPhase:
        return SessionPhase(str(self.current_state.value))

    def advance(self, event: str) -> None:
        try:
            self.send(event)
        except TransitionNotAllowed as e:
            raise ProtocolError(f"'{event}' not allowed in phase '{self.phase.value}'") from e
