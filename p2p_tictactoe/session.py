from __future__ import annotations

import logging
from uuid import uuid4

from p2p_tictactoe.api.models import GameOutcome, SessionPhase, SessionView, TurnOwner
from p2p_tictactoe.core.board import Board, Mark
from p2p_tictactoe.errors import NotInitiated, ProtocolError, SessionInProgress, UnknownPeer
from p2p_tictactoe.fsm import UNCHANGED, AppliedEvent, Notice, SessionFSM
from p2p_tictactoe.messages import (
    AnswerMessage,
    InviteMessage,
    StartMessage,
    TurnMessage,
    WireMessage,
)
from p2p_tictactoe.turn_processing.validators import ValidationContext, pipeline_for_action

logger = logging.getLogger(__name__)


def new_session_token() -> str:
    return uuid4().hex


class GameSession:
    """Authoritative local view of one two-party game.

    Created once per process and reused across games via `reset()`; the local
    identity survives resets. Local actions raise `ProtocolError` subclasses for
    the caller to report; inbound messages that don't fit the current session are
    ignored (logged) instead.
    """

    def __init__(self, *, local_id: str) -> None:
        if not local_id:
            raise ValueError("local_id is required")
        self.local_id = local_id
        self.board = Board()
        self.fsm = SessionFSM()
        self.opponent_id: str | None = None
        self.session_token: str | None = None
        self.turn_owner = TurnOwner.unset
        self.outcome = GameOutcome.none

    @property
    def phase(self) -> SessionPhase:
        return self.fsm.phase

    def snapshot(self) -> SessionView:
        return SessionView(
            local_id=self.local_id,
            phase=self.phase,
            opponent_id=self.opponent_id,
            turn_owner=self.turn_owner,
            outcome=self.outcome,
            board=[list(r) for r in self.board.state()],
        )

    # ---- local actions ----

    def initiate(self, opponent_id: str) -> AppliedEvent:
        if self.phase != SessionPhase.idle:
            raise SessionInProgress()
        if not opponent_id or opponent_id == self.local_id:
            raise UnknownPeer(opponent_id)

        token = new_session_token()
        self.fsm.advance("invite_sent")
        self.opponent_id = opponent_id
        self.session_token = token
        logger.info("Invited %s (session=%s)", opponent_id, token)

        return AppliedEvent(
            state_changed=True,
            outbound=[InviteMessage(sender=self.local_id, target=opponent_id, session=token)],
        )

    def answer(self, accept: bool) -> AppliedEvent:
        self._validate("answer")
        token = self._bound_token()

        reply = AnswerMessage(sender=self.local_id, session=token, accepted=accept)
        if accept:
            self.fsm.advance("invite_accepted")
            logger.info("Accepted invite from %s", self.opponent_id)
        else:
            self.fsm.advance("invite_declined")
            logger.info("Declined invite from %s", self.opponent_id)
            self._clear()

        return AppliedEvent(state_changed=True, outbound=[reply])

    def make_move(self, row: int, col: int) -> AppliedEvent:
        self._validate("move")
        token = self._bound_token()

        # Board errors propagate before anything else changes.
        won = self.board.place(Mark.local, row, col)
        self.turn_owner = TurnOwner.opponent

        notices = [self._turn_notice(row=row, col=col, by=Mark.local)]
        notices.extend(self._conclude_if_over(won=won, winner=GameOutcome.local))
        return AppliedEvent(
            state_changed=True,
            outbound=[TurnMessage(sender=self.local_id, session=token, row=row, col=col)],
            notices=notices,
        )

    def reset(self) -> AppliedEvent:
        self.fsm.advance("cleared")
        self._clear()
        return AppliedEvent(state_changed=True)

    # ---- inbound messages ----

    def receive_invite(self, invite: InviteMessage) -> AppliedEvent:
        if invite.target != self.local_id or invite.sender == self.local_id:
            logger.debug("Ignoring invite from %s addressed to %s", invite.sender, invite.target)
            return UNCHANGED
        if self.phase != SessionPhase.idle:
            logger.info("Ignoring invite from %s while in phase '%s'", invite.sender, self.phase.value)
            return UNCHANGED

        self.fsm.advance("invite_received")
        self.opponent_id = invite.sender
        self.session_token = invite.session
        logger.info("Invite received from %s (session=%s)", invite.sender, invite.session)

        return AppliedEvent(
            state_changed=True,
            notices=[Notice(kind="invite_proposal", payload={"peer_id": invite.sender})],
        )

    def receive_answer(self, answer: AnswerMessage) -> AppliedEvent:
        if not self._accepts("remote_answer", answer):
            return UNCHANGED

        if not answer.accepted:
            opponent = self.opponent_id
            self.fsm.advance("answer_declined")
            self._clear()
            logger.info("%s declined the invite", opponent)
            return AppliedEvent(
                state_changed=True,
                notices=[Notice(kind="opponent_declined", payload={"peer_id": opponent})],
            )

        # The initiator always moves first.
        self.fsm.advance("answer_accepted")
        self.turn_owner = TurnOwner.local
        logger.info("%s accepted; game started", self.opponent_id)
        return AppliedEvent(
            state_changed=True,
            outbound=[StartMessage(sender=self.local_id, session=answer.session)],
            notices=[self._started_notice()],
        )

    def receive_start(self, start: StartMessage) -> AppliedEvent:
        if not self._accepts("remote_start", start):
            return UNCHANGED

        self._begin_as_invitee()
        return AppliedEvent(state_changed=True, notices=[self._started_notice()])

    def receive_move(self, turn: TurnMessage) -> AppliedEvent:
        if not self._accepts("remote_move", turn):
            return UNCHANGED

        notices: list[Notice] = []
        if self.phase == SessionPhase.awaiting_start:
            # Start was lost or overtaken; the opponent's first move implies it.
            logger.info("Turn from %s arrived before Start; starting the game", turn.sender)
            self._begin_as_invitee()
            notices.append(self._started_notice())

        try:
            won = self.board.place(Mark.opponent, turn.row, turn.col)
        except ProtocolError as e:
            logger.warning("Ignoring opponent move (%d, %d): %s", turn.row, turn.col, e)
            return AppliedEvent(state_changed=bool(notices), notices=notices)

        self.turn_owner = TurnOwner.local
        notices.append(self._turn_notice(row=turn.row, col=turn.col, by=Mark.opponent))
        notices.extend(self._conclude_if_over(won=won, winner=GameOutcome.opponent))
        return AppliedEvent(state_changed=True, notices=notices)

    # ---- helpers ----

    def _bound_token(self) -> str:
        if self.session_token is None:
            raise NotInitiated()
        return self.session_token

    def _validate(self, action: str, *, message: WireMessage | None = None) -> None:
        ctx = ValidationContext(
            local_id=self.local_id,
            action=action,
            sender=message.sender if message is not None else None,
            session_token=message.session if message is not None else None,
        )
        pipeline_for_action(action).validate(ctx=ctx, session=self)

    def _accepts(self, action: str, message: WireMessage) -> bool:
        try:
            self._validate(action, message=message)
        except ProtocolError as e:
            logger.info("Ignoring %s from %s: %s", type(message).__name__, message.sender, e)
            return False
        return True

    def _begin_as_invitee(self) -> None:
        self.fsm.advance("start_received")
        self.turn_owner = TurnOwner.opponent
        logger.info("Game with %s started; opponent moves first", self.opponent_id)

    def _conclude_if_over(self, *, won: bool, winner: GameOutcome) -> list[Notice]:
        if won:
            self.outcome = winner
        elif not self.board.is_full():
            return []

        self.fsm.advance("game_concluded")
        logger.info("Game over (outcome=%s)", self.outcome.value)
        return [Notice(kind="game_over", payload={"outcome": self.outcome})]

    def _started_notice(self) -> Notice:
        return Notice(kind="game_started", payload={"board": self.board.state()})

    def _turn_notice(self, *, row: int, col: int, by: Mark) -> Notice:
        return Notice(
            kind="turn_applied",
            payload={"board": self.board.state(), "row": row, "col": col, "by": by},
        )

    def _clear(self) -> None:
        self.opponent_id = None
        self.session_token = None
        self.turn_owner = TurnOwner.unset
        self.outcome = GameOutcome.none
        self.board.reset()
