from __future__ import annotations

import random

import pytest
from conftest import play, start_game

from p2p_tictactoe.api.models import GameOutcome, SessionPhase, TurnOwner
from p2p_tictactoe.core.board import Mark
from p2p_tictactoe.errors import (
    GameConcluded,
    NotInitiated,
    NotYourTurn,
    Occupied,
    OutOfRange,
    SessionInProgress,
    UnknownPeer,
)
from p2p_tictactoe.messages import AnswerMessage, InviteMessage, StartMessage, TurnMessage
from p2p_tictactoe.session import GameSession


def test_new_session_is_idle_and_unset() -> None:
    s = GameSession(local_id="alice")
    assert s.phase == SessionPhase.idle
    assert s.turn_owner == TurnOwner.unset
    assert s.opponent_id is None
    assert s.outcome == GameOutcome.none


def test_initiate_emits_invite_addressed_to_opponent(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, _ = sessions
    applied = alice.initiate("bob")

    assert alice.phase == SessionPhase.inviting
    assert alice.opponent_id == "bob"
    [invite] = applied.outbound
    assert isinstance(invite, InviteMessage)
    assert invite.sender == "alice"
    assert invite.target == "bob"
    assert invite.session == alice.session_token


def test_initiate_only_from_idle(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, _ = sessions
    alice.initiate("bob")
    with pytest.raises(SessionInProgress):
        alice.initiate("carol")


def test_cannot_invite_yourself(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, _ = sessions
    with pytest.raises(UnknownPeer):
        alice.initiate("alice")
    assert alice.phase == SessionPhase.idle


def test_invite_addressed_elsewhere_keeps_idle(sessions) -> None:  # type: ignore[no-untyped-def]
    _, bob = sessions
    applied = bob.receive_invite(InviteMessage(sender="alice", target="carol", session="s1"))

    assert applied.state_changed is False
    assert bob.phase == SessionPhase.idle
    assert bob.opponent_id is None


def test_invite_surfaces_proposal(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = sessions
    invite = alice.initiate("bob").outbound[0]
    applied = bob.receive_invite(invite)  # type: ignore[arg-type]

    assert bob.phase == SessionPhase.invited
    assert bob.opponent_id == "alice"
    assert bob.turn_owner == TurnOwner.unset
    assert [n.kind for n in applied.notices] == ["invite_proposal"]
    assert applied.notices[0].payload["peer_id"] == "alice"


def test_second_invite_while_busy_is_ignored(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = sessions
    bob.receive_invite(alice.initiate("bob").outbound[0])  # type: ignore[arg-type]

    applied = bob.receive_invite(InviteMessage(sender="carol", target="bob", session="other"))
    assert applied.state_changed is False
    assert bob.opponent_id == "alice"


def test_answer_without_invite_is_not_initiated(sessions) -> None:  # type: ignore[no-untyped-def]
    _, bob = sessions
    with pytest.raises(NotInitiated):
        bob.answer(True)


def test_decline_returns_both_sides_to_idle(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = sessions
    bob.receive_invite(alice.initiate("bob").outbound[0])  # type: ignore[arg-type]

    reply = bob.answer(False).outbound[0]
    assert isinstance(reply, AnswerMessage) and reply.accepted is False
    assert bob.phase == SessionPhase.idle
    assert bob.opponent_id is None

    applied = alice.receive_answer(reply)
    assert alice.phase == SessionPhase.idle
    assert alice.opponent_id is None
    assert [n.kind for n in applied.notices] == ["opponent_declined"]


def test_accept_waits_for_start_and_initiator_moves_first(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = sessions
    bob.receive_invite(alice.initiate("bob").outbound[0])  # type: ignore[arg-type]

    reply = bob.answer(True).outbound[0]
    assert bob.phase == SessionPhase.awaiting_start
    assert bob.turn_owner == TurnOwner.unset

    applied = alice.receive_answer(reply)  # type: ignore[arg-type]
    assert alice.phase == SessionPhase.active
    assert alice.turn_owner == TurnOwner.local
    [start] = applied.outbound
    assert isinstance(start, StartMessage)
    assert [n.kind for n in applied.notices] == ["game_started"]

    applied = bob.receive_start(start)
    assert bob.phase == SessionPhase.active
    assert bob.turn_owner == TurnOwner.opponent
    assert [n.kind for n in applied.notices] == ["game_started"]


def test_invitee_cannot_move_before_start(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = sessions
    bob.receive_invite(alice.initiate("bob").outbound[0])  # type: ignore[arg-type]
    bob.answer(True)

    with pytest.raises(NotYourTurn):
        bob.make_move(0, 0)


def test_turn_before_start_implies_start(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = sessions
    bob.receive_invite(alice.initiate("bob").outbound[0])  # type: ignore[arg-type]
    alice.receive_answer(bob.answer(True).outbound[0])  # type: ignore[arg-type]

    # Start is lost; alice's first move reaches bob first.
    turn = alice.make_move(1, 1).outbound[0]
    applied = bob.receive_move(turn)  # type: ignore[arg-type]

    assert bob.phase == SessionPhase.active
    assert bob.turn_owner == TurnOwner.local
    assert bob.board.mark_at(1, 1) == Mark.opponent
    assert [n.kind for n in applied.notices] == ["game_started", "turn_applied"]

    # A late Start is ignored.
    assert bob.receive_start(StartMessage(sender="alice", session=alice.session_token or "")).state_changed is False


def test_move_before_any_session_is_not_initiated(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, _ = sessions
    with pytest.raises(NotInitiated):
        alice.make_move(0, 0)
    alice.initiate("bob")
    with pytest.raises(NotInitiated):
        alice.make_move(0, 0)


def test_move_emits_turn_and_flips_owner(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = active_sessions
    applied = alice.make_move(2, 1)

    [turn] = applied.outbound
    assert isinstance(turn, TurnMessage)
    assert (turn.row, turn.col, turn.sender) == (2, 1, "alice")
    assert alice.turn_owner == TurnOwner.opponent
    assert [n.kind for n in applied.notices] == ["turn_applied"]

    bob.receive_move(turn)
    assert bob.turn_owner == TurnOwner.local
    assert bob.board.mark_at(2, 1) == Mark.opponent


def test_consecutive_local_moves_fail_with_not_your_turn(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, _ = active_sessions
    alice.make_move(0, 0)
    with pytest.raises(NotYourTurn):
        alice.make_move(1, 1)
    assert alice.board.mark_at(1, 1) == Mark.empty


@pytest.mark.parametrize("row,col", [(3, 0), (0, 3), (-1, 1)])
def test_out_of_range_move_keeps_turn_and_board(active_sessions, row: int, col: int) -> None:  # type: ignore[no-untyped-def]
    alice, _ = active_sessions
    with pytest.raises(OutOfRange):
        alice.make_move(row, col)
    assert alice.turn_owner == TurnOwner.local
    assert alice.board.filled_count == 0


def test_occupied_move_keeps_turn(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = active_sessions
    play(alice, bob, 0, 0)
    with pytest.raises(Occupied):
        bob.make_move(0, 0)
    assert bob.turn_owner == TurnOwner.local
    assert bob.board.mark_at(0, 0) == Mark.opponent


def test_row_win_scenario(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = active_sessions
    play(alice, bob, 0, 0)
    play(bob, alice, 1, 0)
    play(alice, bob, 0, 1)
    play(bob, alice, 1, 1)

    turn = alice.make_move(0, 2)
    assert alice.outcome == GameOutcome.local
    assert alice.phase == SessionPhase.concluded
    assert turn.notices[-1].kind == "game_over"

    applied = bob.receive_move(turn.outbound[0])  # type: ignore[arg-type]
    assert bob.outcome == GameOutcome.opponent
    assert bob.phase == SessionPhase.concluded
    assert applied.notices[-1].payload["outcome"] == GameOutcome.opponent


def test_full_board_without_line_is_a_draw(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = active_sessions
    moves = [(0, 0), (0, 1), (0, 2), (1, 1), (1, 0), (1, 2), (2, 1), (2, 0)]
    players = [(alice, bob), (bob, alice)]
    for i, (r, c) in enumerate(moves):
        mover, other = players[i % 2]
        play(mover, other, r, c)

    applied = alice.make_move(2, 2)
    assert alice.phase == SessionPhase.concluded
    assert alice.outcome == GameOutcome.none
    assert applied.notices[-1].kind == "game_over"


def test_move_after_conclusion_fails(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = active_sessions
    for r, c in [(0, 0), (1, 0), (0, 1), (1, 1), (0, 2)]:
        mover, other = (alice, bob) if alice.turn_owner == TurnOwner.local else (bob, alice)
        play(mover, other, r, c)

    with pytest.raises(GameConcluded):
        bob.make_move(2, 2)


def test_reset_after_conclusion_allows_new_game(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = active_sessions
    for r, c in [(0, 0), (1, 0), (0, 1), (1, 1), (0, 2)]:
        mover, other = (alice, bob) if alice.turn_owner == TurnOwner.local else (bob, alice)
        play(mover, other, r, c)
    assert alice.phase == SessionPhase.concluded

    alice.reset()
    assert alice.phase == SessionPhase.idle
    assert alice.turn_owner == TurnOwner.unset
    assert alice.opponent_id is None
    assert alice.outcome == GameOutcome.none
    assert alice.board.filled_count == 0
    assert alice.local_id == "alice"

    alice.initiate("bob")
    assert alice.phase == SessionPhase.inviting


def test_reset_is_allowed_from_idle() -> None:
    s = GameSession(local_id="alice")
    s.reset()
    assert s.phase == SessionPhase.idle


@pytest.mark.parametrize("seed", range(25))
def test_random_games_alternate_and_never_overwrite(seed: int) -> None:
    rng = random.Random(seed)
    alice, bob = GameSession(local_id="alice"), GameSession(local_id="bob")
    start_game(alice, bob)

    cells = [(r, c) for r in range(3) for c in range(3)]
    rng.shuffle(cells)
    mover, other = alice, bob
    placed: dict[tuple[int, int], GameSession] = {}

    for r, c in cells:
        if alice.phase == SessionPhase.concluded:
            break
        assert mover.turn_owner == TurnOwner.local
        assert other.turn_owner == TurnOwner.opponent

        play(mover, other, r, c)
        placed[(r, c)] = mover

        for (pr, pc), who in placed.items():
            assert who.board.mark_at(pr, pc) == Mark.local
            assert (alice if who is bob else bob).board.mark_at(pr, pc) == Mark.opponent
        assert alice.board.filled_count == bob.board.filled_count == len(placed)
        mover, other = other, mover

    assert alice.phase == bob.phase == SessionPhase.concluded


def test_turn_from_stranger_is_ignored(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = active_sessions
    play(alice, bob, 0, 0)

    forged = TurnMessage(sender="mallory", session=alice.session_token or "", row=2, col=2)
    assert alice.receive_move(forged).state_changed is False
    assert alice.board.mark_at(2, 2) == Mark.empty
    assert alice.turn_owner == TurnOwner.opponent


def test_turn_with_foreign_session_token_is_ignored(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = active_sessions
    play(alice, bob, 0, 0)

    stale = TurnMessage(sender="bob", session="some-older-game", row=2, col=2)
    assert alice.receive_move(stale).state_changed is False
    assert alice.board.mark_at(2, 2) == Mark.empty


def test_opponent_move_out_of_turn_is_ignored(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, _ = active_sessions
    turn = TurnMessage(sender="bob", session=alice.session_token or "", row=1, col=1)
    assert alice.receive_move(turn).state_changed is False
    assert alice.turn_owner == TurnOwner.local


def test_opponent_move_to_occupied_cell_is_ignored(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = active_sessions
    play(alice, bob, 0, 0)

    turn = TurnMessage(sender="bob", session=alice.session_token or "", row=0, col=0)
    assert alice.receive_move(turn).state_changed is False
    assert alice.turn_owner == TurnOwner.opponent
    assert alice.board.mark_at(0, 0) == Mark.local


def test_move_received_while_idle_is_ignored() -> None:
    s = GameSession(local_id="alice")
    assert s.receive_move(TurnMessage(sender="bob", session="s", row=0, col=0)).state_changed is False
    assert s.board.filled_count == 0


def test_answer_from_non_opponent_is_ignored(sessions) -> None:  # type: ignore[no-untyped-def]
    alice, _ = sessions
    alice.initiate("bob")
    applied = alice.receive_answer(AnswerMessage(sender="carol", session=alice.session_token or "", accepted=True))
    assert applied.state_changed is False
    assert alice.phase == SessionPhase.inviting


def test_snapshot_reflects_state(active_sessions) -> None:  # type: ignore[no-untyped-def]
    alice, bob = active_sessions
    play(alice, bob, 1, 1)

    view = bob.snapshot()
    assert view.local_id == "bob"
    assert view.phase == SessionPhase.active
    assert view.opponent_id == "alice"
    assert view.turn_owner == TurnOwner.local
    assert view.board[1][1] == "X"
