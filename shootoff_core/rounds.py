"""Round engine: open rounds, record scores, apply elimination.

Recording a round's scores, completing the round and eliminating shooters is
one step over one working copy, so a half-applied round is never stored.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime

from .errors import (
    InsufficientActiveParticipantsError,
    InvalidStateError,
    PreviousRoundIncompleteError,
    RoundAlreadyCompletedError,
    ValidationError,
)
from .formats import RoundContext, policy_for
from .types import Round, RoundResult, RoundScore, ShootOff
from .validation import RecordScoresRequest

logger = logging.getLogger(__name__)


def open_round(
    shoot_off: ShootOff,
    *,
    targets: int,
    actor_id: str | None,
    now: datetime,
    round_id: str | None = None,
) -> Round:
    """Open the next round.

    Args:
      targets: the tournament's targets-per-round setting at the time of opening.
    """
    if shoot_off.status != "in_progress":
        raise InvalidStateError("Shoot-off must be in progress to create rounds")
    if shoot_off.open_round() is not None:
        raise PreviousRoundIncompleteError(
            "Please complete the current round before creating a new one"
        )
    if len(shoot_off.active_participants()) < 2:
        raise InsufficientActiveParticipantsError(
            "Need at least 2 active participants to create a new round"
        )

    number = max(shoot_off.rounds, default=0) + 1
    rnd = Round(
        id=round_id or str(uuid.uuid4()),
        shoot_off_id=shoot_off.id,
        number=number,
        targets=targets,
        opened_at=now,
        opened_by=actor_id,
    )
    shoot_off.rounds[number] = rnd
    logger.info(f"Shoot-off {shoot_off.id}: round {number} opened ({targets} targets)")
    return rnd


def _validate_scores(shoot_off: ShootOff, rnd: Round, request: RecordScoresRequest) -> dict[str, int]:
    active_ids = [p.competitor_id for p in shoot_off.active_participants()]
    scores: dict[str, int] = {}
    for idx, entry in enumerate(request.scores):
        participant = shoot_off.participants.get(entry.competitor_id)
        if participant is None:
            raise ValidationError(
                f"Participant {entry.competitor_id} is not in this shoot-off",
                field=f"scores.{idx}.competitorId",
            )
        if participant.eliminated:
            raise ValidationError(
                f"Participant {entry.competitor_id} is already eliminated",
                field=f"scores.{idx}.competitorId",
            )
        if entry.targets_hit > rnd.targets:
            raise ValidationError(
                f"Targets must be between 0 and {rnd.targets}",
                field=f"scores.{idx}.targetsHit",
            )
        scores[entry.competitor_id] = entry.targets_hit

    missing = [cid for cid in active_ids if cid not in scores]
    if missing:
        raise ValidationError(
            f"Missing scores for active participants: {', '.join(missing)}",
            field="scores",
        )
    return scores


def record_round_scores(
    shoot_off: ShootOff,
    request: RecordScoresRequest,
    *,
    actor_id: str | None,
    now: datetime,
) -> RoundResult:
    """Store one score per active participant, close the round, eliminate."""
    if shoot_off.status != "in_progress":
        raise InvalidStateError("Shoot-off is not in progress")
    rnd = shoot_off.find_round(request.round_id)
    if rnd is None:
        raise ValidationError("Round not found in this shoot-off", field="roundId")
    if not rnd.is_open:
        raise RoundAlreadyCompletedError("Round is already completed")

    scores = _validate_scores(shoot_off, rnd, request)

    for competitor_id, targets_hit in scores.items():
        rnd.scores[competitor_id] = RoundScore(
            competitor_id=competitor_id,
            targets_hit=targets_hit,
            total_targets=rnd.targets,
            recorded_by=actor_id,
        )
    rnd.completed_at = now

    totals = shoot_off.cumulative_scores()
    context = RoundContext(
        round_number=rnd.number,
        round_scores=scores,
        cumulative={cid: totals[cid] for cid in scores},
        fixed_rounds_count=shoot_off.fixed_rounds_count,
    )
    eliminated = policy_for(shoot_off.format).eliminate(context)
    # Reported in entry order.
    eliminated_ids = tuple(cid for cid in shoot_off.participants if cid in eliminated)
    for competitor_id in eliminated_ids:
        participant = shoot_off.participants[competitor_id]
        participant.eliminated = True
        participant.eliminated_in_round = rnd.number

    remaining = len(shoot_off.active_participants())
    logger.info(
        f"Shoot-off {shoot_off.id}: round {rnd.number} completed, "
        f"eliminated={list(eliminated_ids)}, remaining={remaining}"
    )
    return RoundResult(
        round_id=rnd.id,
        round_number=rnd.number,
        eliminated=eliminated_ids,
        remaining_active=remaining,
        ready_for_completion=remaining == 1,
    )
