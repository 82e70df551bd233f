"""Winner confirmation and final placements.

A winner is never declared automatically: after the round engine leaves a
single survivor an operator confirms it here, and only then are places
assigned. Ordering of all participants:

1. the survivor
2. cumulative shoot-off targets, highest first
3. later elimination round first
4. entry order
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List

from .errors import (
    AlreadyDecidedError,
    InvalidStateError,
    NotSoleSurvivorError,
    ParticipantEliminatedError,
    UnknownParticipantError,
)
from .types import Participant, ShootOff

logger = logging.getLogger(__name__)


def rank_participants(shoot_off: ShootOff) -> List[Participant]:
    totals = shoot_off.cumulative_scores()
    return sorted(
        shoot_off.participants.values(),
        key=lambda p: (
            p.eliminated,
            -totals.get(p.competitor_id, 0),
            -(p.eliminated_in_round or 0),
            p.entry_order,
        ),
    )


def declare_winner(
    shoot_off: ShootOff,
    competitor_id: str,
    *,
    actor_id: str | None,
    now: datetime,
) -> ShootOff:
    """Complete the contest with its sole survivor and assign every final place."""
    if shoot_off.status == "completed" or shoot_off.winner_id is not None:
        raise AlreadyDecidedError("Winner has already been declared")
    if shoot_off.status != "in_progress":
        raise InvalidStateError("Shoot-off is not in progress")

    candidate = shoot_off.participants.get(competitor_id)
    if candidate is None:
        raise UnknownParticipantError("Winner participant not found", field="competitorId")
    if candidate.eliminated:
        raise ParticipantEliminatedError(
            "Cannot declare eliminated participant as winner", field="competitorId"
        )
    active = shoot_off.active_participants()
    if len(active) != 1:
        raise NotSoleSurvivorError(
            f"Winner must be the only remaining participant ({len(active)} still active)"
        )

    for place, participant in enumerate(rank_participants(shoot_off), start=1):
        participant.final_place = place
    shoot_off.winner_id = candidate.competitor_id
    shoot_off.status = "completed"
    shoot_off.completed_at = now
    shoot_off.completed_by = actor_id
    logger.info(f"Shoot-off {shoot_off.id} completed, winner {candidate.competitor_id}")
    return shoot_off
