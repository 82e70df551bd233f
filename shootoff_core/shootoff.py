"""Shoot-off aggregate lifecycle (pure, no HTTP/DB).

State machine:
    pending -> in_progress -> completed
    pending | in_progress -> cancelled

completed and cancelled are terminal. Completion lives in placement.py
because it needs the final ranking; rounds live in rounds.py.

Transitions mutate the aggregate they are given. Callers pass the working
copy handed out by ShootOffStore.transaction(), so a rejected transition
never reaches the stored state.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Mapping

from .errors import InvalidStateError, InvalidTieError, ShootOffsDisabledError
from .ties import place_label
from .types import Participant, ShootOff, TieGroup
from .validation import CreateShootOffRequest, ShootOffConfig

logger = logging.getLogger(__name__)


def describe(position: int, participant_count: int, tied_score: int) -> str:
    """Display title, e.g. "1st Place Shoot-Off - 2 shooters tied at 46 points"."""
    return (
        f"{place_label(position)} Shoot-Off - "
        f"{participant_count} shooters tied at {tied_score} points"
    )


def verify_tie(
    competitor_ids: list[str],
    claimed_tied_score: int,
    regulation_totals: Mapping[str, int | None],
) -> None:
    """Check every competitor's authoritative total equals the claimed score.

    Raises:
        InvalidTieError: a competitor has no recorded total or a different one.
    """
    mismatched: list[str] = []
    for competitor_id in competitor_ids:
        total = regulation_totals.get(competitor_id)
        if total is None:
            raise InvalidTieError(
                f"No regulation score recorded for competitor {competitor_id}",
                field="competitorIds",
            )
        if total != claimed_tied_score:
            mismatched.append(f"{competitor_id}={total}")
    if mismatched:
        raise InvalidTieError(
            f"Selected shooters are not tied at {claimed_tied_score}: {', '.join(mismatched)}",
            field="claimedTiedScore",
        )


def create_shoot_off(
    request: CreateShootOffRequest,
    *,
    config: ShootOffConfig,
    regulation_totals: Mapping[str, int | None],
    actor_id: str | None,
    now: datetime,
    shoot_off_id: str | None = None,
    tie_group: TieGroup | None = None,
) -> ShootOff:
    """Build a pending shoot-off after re-verifying the tie.

    The claimed score is never trusted: a stale client that asks for a
    contest between shooters who are no longer tied gets InvalidTieError.
    When created from a detected ``tie_group`` its scope and fingerprint are
    kept on the contest.
    """
    if not config.enable_shoot_offs:
        raise ShootOffsDisabledError("Shoot-offs are disabled for this tournament")

    verify_tie(request.competitor_ids, request.claimed_tied_score, regulation_totals)

    shoot_off_format = request.format or config.format
    shoot_off = ShootOff(
        id=shoot_off_id or str(uuid.uuid4()),
        tournament_id=request.tournament_id,
        discipline_id=request.discipline_id,
        position=request.position,
        format=shoot_off_format,
        tied_score=request.claimed_tied_score,
        created_at=now,
        created_by=actor_id,
        description=describe(
            request.position, len(request.competitor_ids), request.claimed_tied_score
        ),
        fixed_rounds_count=(
            config.fixed_rounds_count if shoot_off_format == "fixed_rounds" else None
        ),
        start_station=config.start_station,
    )
    if tie_group is not None:
        shoot_off.scope = tie_group.scope
        shoot_off.scope_key = tie_group.scope_key
        shoot_off.tie_fingerprint = tie_group.fingerprint
    for order, competitor_id in enumerate(request.competitor_ids):
        shoot_off.participants[competitor_id] = Participant(
            competitor_id=competitor_id,
            tied_score=request.claimed_tied_score,
            entry_order=order,
        )
    logger.info(f"Shoot-off {shoot_off.id} created: {shoot_off.description} ({shoot_off_format})")
    return shoot_off


def start_shoot_off(shoot_off: ShootOff, *, actor_id: str | None, now: datetime) -> ShootOff:
    if shoot_off.status != "pending":
        raise InvalidStateError(f"Cannot start shoot-off with status: {shoot_off.status}")
    shoot_off.status = "in_progress"
    shoot_off.started_at = now
    shoot_off.started_by = actor_id
    logger.info(f"Shoot-off {shoot_off.id} started by {actor_id}")
    return shoot_off


def cancel_shoot_off(shoot_off: ShootOff, *, actor_id: str | None, now: datetime) -> ShootOff:
    """Cancel a non-terminal contest. Round history is kept for audit."""
    if shoot_off.status == "completed":
        raise InvalidStateError("Cannot cancel a completed shoot-off")
    if shoot_off.status == "cancelled":
        raise InvalidStateError("Shoot-off is already cancelled")
    shoot_off.status = "cancelled"
    shoot_off.completed_at = now
    shoot_off.cancelled_by = actor_id
    logger.info(
        f"Shoot-off {shoot_off.id} cancelled by {actor_id} after {len(shoot_off.rounds)} round(s)"
    )
    return shoot_off
