from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from shootoff_core import (
    AlreadyDecidedError,
    InsufficientActiveParticipantsError,
    InvalidStateError,
    InvalidTieError,
    NotSoleSurvivorError,
    ParticipantEliminatedError,
    PreviousRoundIncompleteError,
    RoundAlreadyCompletedError,
    ShootOffConfig,
    ShootOffsDisabledError,
    UnknownParticipantError,
    ValidationError,
    cancel_shoot_off,
    create_shoot_off,
    declare_winner,
    open_round,
    rank_participants,
    record_round_scores,
    start_shoot_off,
)
from shootoff_core.validation import CreateShootOffRequest, RecordScoresRequest

NOW = datetime(2026, 5, 2, 14, 0, tzinfo=timezone.utc)


def _request(ids=("A", "B"), score=46, position=1, fmt=None):
    return CreateShootOffRequest(
        tournament_id="t1",
        position=position,
        competitor_ids=list(ids),
        claimed_tied_score=score,
        format=fmt,
    )


def _started(ids=("A", "B"), fmt="sudden_death", config=None):
    config = config or ShootOffConfig()
    so = create_shoot_off(
        _request(ids, fmt=fmt),
        config=config,
        regulation_totals={cid: 46 for cid in ids},
        actor_id="admin",
        now=NOW,
        shoot_off_id="so-1",
    )
    return start_shoot_off(so, actor_id="admin", now=NOW + timedelta(minutes=1))


def _play(so, scores, targets=2):
    rnd = open_round(so, targets=targets, actor_id="admin", now=NOW)
    request = RecordScoresRequest(
        round_id=rnd.id,
        scores=[{"competitor_id": cid, "targets_hit": hit} for cid, hit in scores.items()],
    )
    return record_round_scores(so, request, actor_id="admin", now=NOW)


def test_create_builds_pending_contest_with_active_participants():
    so = create_shoot_off(
        _request(("A", "B")),
        config=ShootOffConfig(),
        regulation_totals={"A": 46, "B": 46},
        actor_id="admin",
        now=NOW,
    )
    assert so.status == "pending"
    assert so.format == "sudden_death"
    assert so.tied_score == 46
    assert so.created_by == "admin"
    assert so.description == "1st Place Shoot-Off - 2 shooters tied at 46 points"
    assert [p.competitor_id for p in so.participants.values()] == ["A", "B"]
    assert all(not p.eliminated and p.final_place is None for p in so.participants.values())
    assert so.fixed_rounds_count is None


def test_create_rejects_claimed_tie_that_does_not_match_ledger():
    with pytest.raises(InvalidTieError):
        create_shoot_off(
            _request(("A", "B")),
            config=ShootOffConfig(),
            regulation_totals={"A": 46, "B": 45},
            actor_id="admin",
            now=NOW,
        )
    with pytest.raises(InvalidTieError):
        create_shoot_off(
            _request(("A", "B"), score=45),
            config=ShootOffConfig(),
            regulation_totals={"A": 46, "B": 46},
            actor_id="admin",
            now=NOW,
        )


def test_create_rejects_competitor_without_regulation_total():
    with pytest.raises(InvalidTieError):
        create_shoot_off(
            _request(("A", "B")),
            config=ShootOffConfig(),
            regulation_totals={"A": 46},
            actor_id="admin",
            now=NOW,
        )


def test_create_respects_disabled_shoot_offs_and_format_defaults():
    with pytest.raises(ShootOffsDisabledError):
        create_shoot_off(
            _request(),
            config=ShootOffConfig(enable_shoot_offs=False),
            regulation_totals={"A": 46, "B": 46},
            actor_id="admin",
            now=NOW,
        )
    config = ShootOffConfig(format="fixed_rounds", fixed_rounds_count=4)
    so = create_shoot_off(
        _request(), config=config, regulation_totals={"A": 46, "B": 46}, actor_id=None, now=NOW
    )
    assert so.format == "fixed_rounds"
    assert so.fixed_rounds_count == 4
    so = create_shoot_off(
        _request(fmt="progressive"),
        config=config,
        regulation_totals={"A": 46, "B": 46},
        actor_id=None,
        now=NOW,
    )
    assert so.format == "progressive"
    assert so.fixed_rounds_count is None


def test_start_only_from_pending():
    so = _started()
    assert so.status == "in_progress"
    assert so.started_at == NOW + timedelta(minutes=1)
    with pytest.raises(InvalidStateError):
        start_shoot_off(so, actor_id="admin", now=NOW)


def test_open_round_requires_in_progress_and_closed_previous_round():
    so = create_shoot_off(
        _request(), config=ShootOffConfig(), regulation_totals={"A": 46, "B": 46}, actor_id=None, now=NOW
    )
    with pytest.raises(InvalidStateError):
        open_round(so, targets=2, actor_id="admin", now=NOW)

    start_shoot_off(so, actor_id="admin", now=NOW)
    first = open_round(so, targets=2, actor_id="admin", now=NOW)
    assert first.number == 1
    assert first.is_open
    assert first.shoot_off_id == so.id
    with pytest.raises(PreviousRoundIncompleteError):
        open_round(so, targets=2, actor_id="admin", now=NOW)
    assert [r for r in so.rounds.values() if r.is_open] == [first]


def test_round_numbers_increase_without_gaps():
    so = _started(("A", "B", "C"))
    _play(so, {"A": 2, "B": 2, "C": 2})
    _play(so, {"A": 1, "B": 1, "C": 1})
    rnd = open_round(so, targets=2, actor_id="admin", now=NOW)
    assert rnd.number == 3
    assert sorted(so.rounds) == [1, 2, 3]


def test_record_scores_validates_submission():
    so = _started(("A", "B", "C"))
    rnd = open_round(so, targets=2, actor_id="admin", now=NOW)

    def submit(scores, round_id=rnd.id):
        return record_round_scores(
            so,
            RecordScoresRequest(
                round_id=round_id,
                scores=[{"competitor_id": c, "targets_hit": h} for c, h in scores],
            ),
            actor_id="admin",
            now=NOW,
        )

    with pytest.raises(ValidationError) as short:
        submit([("A", 1), ("B", 1)])
    assert short.value.field == "scores"
    with pytest.raises(ValidationError) as too_many:
        submit([("A", 3), ("B", 1), ("C", 1)])
    assert too_many.value.field == "scores.0.targetsHit"
    with pytest.raises(ValidationError):
        submit([("A", 1), ("B", 1), ("C", 1), ("Z", 1)])
    with pytest.raises(ValidationError) as unknown_round:
        submit([("A", 1), ("B", 1), ("C", 1)], round_id="missing")
    assert unknown_round.value.field == "roundId"

    assert rnd.is_open
    assert rnd.scores == {}
    submit([("A", 1), ("B", 1), ("C", 1)])
    with pytest.raises(RoundAlreadyCompletedError):
        submit([("A", 1), ("B", 1), ("C", 1)])


def test_sudden_death_two_shooters_then_declare_winner():
    so = _started(("A", "B"))
    result = _play(so, {"A": 2, "B": 1})
    assert result.eliminated == ("B",)
    assert result.remaining_active == 1
    assert result.ready_for_completion is True
    # Not auto-completed.
    assert so.status == "in_progress"
    assert so.winner_id is None

    round_one = so.rounds[1]
    assert round_one.completed_at == NOW
    assert round_one.scores["A"].total_targets == 2
    assert so.participants["B"].eliminated_in_round == 1

    declare_winner(so, "A", actor_id="admin", now=NOW)
    assert so.status == "completed"
    assert so.winner_id == "A"
    assert so.completed_by == "admin"
    assert so.participants["A"].final_place == 1
    assert so.participants["B"].final_place == 2


def test_open_round_needs_two_active_participants():
    so = _started(("A", "B"))
    _play(so, {"A": 2, "B": 0})
    with pytest.raises(InsufficientActiveParticipantsError):
        open_round(so, targets=2, actor_id="admin", now=NOW)


def test_eliminated_participant_cannot_score_again():
    so = _started(("A", "B", "C"))
    _play(so, {"A": 2, "B": 2, "C": 1})
    assert so.participants["C"].eliminated
    with pytest.raises(ValidationError):
        _play(so, {"A": 2, "B": 1, "C": 2})
    result = record_round_scores(
        so,
        RecordScoresRequest(
            round_id=so.rounds[2].id,
            scores=[{"competitor_id": "A", "targets_hit": 2}, {"competitor_id": "B", "targets_hit": 2}],
        ),
        actor_id="admin",
        now=NOW,
    )
    assert result.eliminated == ()
    assert so.participants["C"].eliminated
    assert "C" not in so.rounds[2].scores


def test_progressive_minimum_tie_requires_another_round():
    so = _started(("A", "B", "C"), fmt="progressive")
    result = _play(so, {"A": 2, "B": 1, "C": 1})
    assert result.eliminated == ()
    assert result.remaining_active == 3
    result = _play(so, {"A": 2, "B": 2, "C": 0})
    assert result.eliminated == ("C",)
    result = _play(so, {"A": 1, "B": 2})
    assert result.eliminated == ("A",)
    assert result.ready_for_completion


def test_declare_winner_preconditions():
    pending = create_shoot_off(
        _request(), config=ShootOffConfig(), regulation_totals={"A": 46, "B": 46}, actor_id=None, now=NOW
    )
    with pytest.raises(InvalidStateError) as exc:
        declare_winner(pending, "A", actor_id="admin", now=NOW)
    assert not isinstance(exc.value, AlreadyDecidedError)

    so = _started(("A", "B", "C"))
    with pytest.raises(NotSoleSurvivorError):
        declare_winner(so, "A", actor_id="admin", now=NOW)
    _play(so, {"A": 2, "B": 1, "C": 1})
    with pytest.raises(ParticipantEliminatedError):
        declare_winner(so, "B", actor_id="admin", now=NOW)
    with pytest.raises(UnknownParticipantError):
        declare_winner(so, "Z", actor_id="admin", now=NOW)
    assert so.status == "in_progress"
    assert all(p.final_place is None for p in so.participants.values())

    declare_winner(so, "A", actor_id="admin", now=NOW)
    with pytest.raises(AlreadyDecidedError):
        declare_winner(so, "A", actor_id="admin", now=NOW)


def test_final_places_use_cumulative_score_among_eliminated():
    so = _started(("A", "B", "C", "D"))
    # C and D leave in the same round; C hit more.
    _play(so, {"A": 2, "B": 2, "C": 1, "D": 0})
    _play(so, {"A": 2, "B": 1})
    declare_winner(so, "A", actor_id="admin", now=NOW)

    places = {cid: p.final_place for cid, p in so.participants.items()}
    assert places == {"A": 1, "B": 2, "C": 3, "D": 4}
    assert sorted(places.values()) == [1, 2, 3, 4]
    assert [p.competitor_id for p in rank_participants(so)] == ["A", "B", "C", "D"]


def test_final_places_fall_back_to_entry_order():
    so = _started(("A", "B", "C"))
    _play(so, {"A": 2, "B": 0, "C": 0})
    declare_winner(so, "A", actor_id="admin", now=NOW)
    assert so.participants["B"].final_place == 2
    assert so.participants["C"].final_place == 3


def test_cancel_keeps_history_and_never_assigns_places():
    so = _started(("A", "B", "C"))
    _play(so, {"A": 2, "B": 2, "C": 2})
    _play(so, {"A": 1, "B": 1, "C": 1})
    cancel_shoot_off(so, actor_id="coach", now=NOW)
    assert so.status == "cancelled"
    assert so.cancelled_by == "coach"
    assert so.completed_at == NOW
    assert len(so.rounds) == 2
    assert all(not r.is_open for r in so.rounds.values())
    assert so.winner_id is None
    assert all(p.final_place is None for p in so.participants.values())

    with pytest.raises(InvalidStateError):
        cancel_shoot_off(so, actor_id="coach", now=NOW)
    with pytest.raises(InvalidStateError):
        open_round(so, targets=2, actor_id="coach", now=NOW)
    with pytest.raises(InvalidStateError):
        declare_winner(so, "A", actor_id="coach", now=NOW)


def test_cancel_rejected_once_completed():
    so = _started(("A", "B"))
    _play(so, {"A": 1, "B": 0})
    declare_winner(so, "A", actor_id="admin", now=NOW)
    with pytest.raises(InvalidStateError):
        cancel_shoot_off(so, actor_id="admin", now=NOW)
