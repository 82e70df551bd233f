"""Format-specific elimination policies.

One policy per shoot-off format, all behind the same ``eliminate`` call. A
policy only decides who drops out after a completed round; it never mutates
the aggregate.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol

from .types import ShootOffFormat


@dataclass(frozen=True)
class RoundContext:
    round_number: int
    # Targets hit this round, one entry per participant active when the round opened.
    round_scores: Mapping[str, int]
    # Shoot-off totals for the same participants, this round included.
    cumulative: Mapping[str, int]
    fixed_rounds_count: int | None = None


class EliminationPolicy(Protocol):
    def eliminate(self, context: RoundContext) -> frozenset[str]:
        ...


def _below_best(scores: Mapping[str, int]) -> frozenset[str]:
    if not scores:
        return frozenset()
    best = max(scores.values())
    return frozenset(cid for cid, value in scores.items() if value < best)


class SuddenDeathPolicy:
    """Everyone below this round's best score is out."""

    def eliminate(self, context: RoundContext) -> frozenset[str]:
        return _below_best(context.round_scores)


class FixedRoundsPolicy:
    """Nobody is eliminated until the configured round count is reached.

    From that round on, everyone whose cumulative total trails the leader is
    out; a tie at the top keeps going round by round.
    """

    def eliminate(self, context: RoundContext) -> frozenset[str]:
        required = context.fixed_rounds_count or 1
        if context.round_number < required:
            return frozenset()
        return _below_best({cid: context.cumulative[cid] for cid in context.round_scores})


class ProgressivePolicy:
    """Drop the lowest scorer(s) each round while keeping two shooters alive.

    If removing every minimum scorer would leave fewer than two, nobody is
    removed. Once only two remain the round is head-to-head and the lower
    score loses; keeping two alive there would never leave a sole survivor.
    """

    def eliminate(self, context: RoundContext) -> frozenset[str]:
        scores = context.round_scores
        if len(scores) <= 2:
            return _below_best(scores)
        lowest = min(scores.values())
        losers = frozenset(cid for cid, value in scores.items() if value == lowest)
        if len(scores) - len(losers) < 2:
            return frozenset()
        return losers


POLICIES: dict[str, EliminationPolicy] = {
    "sudden_death": SuddenDeathPolicy(),
    "fixed_rounds": FixedRoundsPolicy(),
    "progressive": ProgressivePolicy(),
}


def policy_for(shoot_off_format: ShootOffFormat) -> EliminationPolicy:
    try:
        return POLICIES[shoot_off_format]
    except KeyError:
        raise ValueError(f"unknown shoot-off format: {shoot_off_format}") from None
