"""Tie detection over ranked standings.

Walks one scope's standings (highest score first) and reports every run of
two or more identical scores whose place matches the tournament's shoot-off
triggers:
- exact place triggers (1st/2nd/3rd) match a run starting at that place
- a "top N" band matches any run starting at place <= N
- the perfect-score gate suppresses runs whose score is not the maximum

Places use competition ranking: a run of three tied for 1st is followed by
place 4. Detection is a pure read; the same standings and policy always give
the same groups (including their fingerprints).
"""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Sequence

from .types import Standing, StandingScope, TieGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TiePolicy:
    exact_places: frozenset[int] = frozenset()
    top_n: int | None = None
    requires_perfect: bool = False
    max_possible_score: int | None = None

    def __post_init__(self) -> None:
        if self.requires_perfect and self.max_possible_score is None:
            raise ValueError("requires_perfect needs max_possible_score")
        if self.top_n is not None and self.top_n < 1:
            raise ValueError("top_n must be >= 1")

    def trigger_for(self, place: int, score: int) -> str | None:
        """Name of the trigger matching a tie at ``place``, or None."""
        if self.requires_perfect and score != self.max_possible_score:
            return None
        if place in self.exact_places:
            return ordinal(place)
        if self.top_n is not None and place <= self.top_n:
            return f"top{self.top_n}"
        return None


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def place_label(place: int) -> str:
    return f"{ordinal(place)} Place"


def _fingerprint(
    *,
    scope: str,
    scope_key: str | None,
    place: int,
    score: int,
    competitor_ids: Sequence[str],
) -> str:
    payload = {
        "scope": scope,
        "scope_key": scope_key,
        "place": place,
        "score": score,
        "members": sorted(competitor_ids),
    }
    raw = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return f"so:{hashlib.sha1(raw.encode('utf-8')).hexdigest()}"


def detect_ties(
    standings: Sequence[Standing],
    policy: TiePolicy,
    *,
    scope: StandingScope = "overall",
    scope_key: str | None = None,
) -> tuple[TieGroup, ...]:
    """
    Find the tie groups in one scope that qualify for a shoot-off.

    Args:
      standings: one scope's standings; expected highest score first, re-sorted
        stably here so a caller's ordering among equal scores is kept.
      policy: trigger conditions.
      scope/scope_key: copied onto each group (e.g. "division", "Junior").
    """
    ordered = sorted(standings, key=lambda s: -s.score)
    groups: list[TieGroup] = []
    i = 0
    while i < len(ordered):
        j = i + 1
        while j < len(ordered) and ordered[j].score == ordered[i].score:
            j += 1
        run = ordered[i:j]
        place = i + 1
        score = run[0].score
        if len(run) >= 2:
            trigger = policy.trigger_for(place, score)
            if trigger is not None:
                competitor_ids = tuple(s.competitor_id for s in run)
                groups.append(
                    TieGroup(
                        scope=scope,
                        scope_key=scope_key,
                        place=place,
                        place_label=place_label(place),
                        tied_score=score,
                        competitor_ids=competitor_ids,
                        trigger=trigger,
                        fingerprint=_fingerprint(
                            scope=scope,
                            scope_key=scope_key,
                            place=place,
                            score=score,
                            competitor_ids=competitor_ids,
                        ),
                    )
                )
        i = j

    logger.debug(f"detect_ties scope={scope}:{scope_key} -> {len(groups)} group(s)")
    return tuple(groups)
