"""Type definitions for tie groups and the shoot-off aggregate."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple


ShootOffStatus = Literal["pending", "in_progress", "completed", "cancelled"]
ShootOffFormat = Literal["sudden_death", "fixed_rounds", "progressive"]
StandingScope = Literal["overall", "division", "class", "team"]

SHOOT_OFF_FORMATS: Tuple[str, ...] = ("sudden_death", "fixed_rounds", "progressive")
TERMINAL_STATUSES = frozenset({"completed", "cancelled"})

# Permission granted by the authorization layer to coaches/admins who may run shoot-offs.
MANAGE_PERMISSION = "shootoff:manage"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class ActorContext:
    """Caller identity plus the permissions already granted by the auth layer."""

    id: str
    permissions: frozenset[str] = frozenset()

    @property
    def can_manage(self) -> bool:
        return MANAGE_PERMISSION in self.permissions


@dataclass(frozen=True)
class Standing:
    """One competitor's regulation total inside a ranking scope."""

    competitor_id: str
    score: int
    name: str | None = None


@dataclass(frozen=True)
class TieGroup:
    scope: StandingScope
    place: int
    place_label: str
    tied_score: int
    competitor_ids: Tuple[str, ...]
    trigger: str
    fingerprint: str
    scope_key: str | None = None


@dataclass
class Participant:
    competitor_id: str
    tied_score: int
    entry_order: int
    # Monotonic: once True never reset.
    eliminated: bool = False
    eliminated_in_round: Optional[int] = None
    final_place: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "competitorId": self.competitor_id,
            "tiedScore": self.tied_score,
            "eliminated": self.eliminated,
            "eliminatedInRound": self.eliminated_in_round,
            "finalPlace": self.final_place,
        }


@dataclass
class RoundScore:
    competitor_id: str
    targets_hit: int
    # Copy of Round.targets kept for auditability.
    total_targets: int
    recorded_by: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "competitorId": self.competitor_id,
            "targetsHit": self.targets_hit,
            "totalTargets": self.total_targets,
            "recordedBy": self.recorded_by,
        }


@dataclass
class Round:
    id: str
    shoot_off_id: str
    number: int
    targets: int
    opened_at: datetime
    opened_by: str | None = None
    completed_at: Optional[datetime] = None
    scores: Dict[str, RoundScore] = field(default_factory=dict)

    @property
    def is_open(self) -> bool:
        return self.completed_at is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "shootOffId": self.shoot_off_id,
            "roundNumber": self.number,
            "targets": self.targets,
            "openedAt": _iso(self.opened_at),
            "openedBy": self.opened_by,
            "completedAt": _iso(self.completed_at),
            "scores": [score.to_dict() for score in self.scores.values()],
        }


@dataclass
class ShootOff:
    """Aggregate root: one tie-break contest with its participants and rounds.

    Participants are keyed by competitor id (insertion order = entry order),
    rounds by their 1-based number. Rounds only keep the shoot-off id, never
    a reference back to this object.
    """

    id: str
    tournament_id: str
    position: int
    format: ShootOffFormat
    tied_score: int
    created_at: datetime
    discipline_id: str | None = None
    status: ShootOffStatus = "pending"
    description: str = ""
    created_by: str | None = None
    fixed_rounds_count: Optional[int] = None
    start_station: str | None = None
    scope: StandingScope = "overall"
    scope_key: str | None = None
    tie_fingerprint: str | None = None
    participants: Dict[str, Participant] = field(default_factory=dict)
    rounds: Dict[int, Round] = field(default_factory=dict)
    winner_id: str | None = None
    started_at: Optional[datetime] = None
    started_by: str | None = None
    completed_at: Optional[datetime] = None
    completed_by: str | None = None
    cancelled_by: str | None = None
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def active_participants(self) -> List[Participant]:
        return [p for p in self.participants.values() if not p.eliminated]

    def latest_round(self) -> Round | None:
        if not self.rounds:
            return None
        return self.rounds[max(self.rounds)]

    def open_round(self) -> Round | None:
        latest = self.latest_round()
        if latest is not None and latest.is_open:
            return latest
        return None

    def find_round(self, round_id: str) -> Round | None:
        for rnd in self.rounds.values():
            if rnd.id == round_id:
                return rnd
        return None

    def cumulative_scores(self) -> Dict[str, int]:
        """Sum of targets hit per competitor across all completed rounds."""
        totals = {competitor_id: 0 for competitor_id in self.participants}
        for rnd in self.rounds.values():
            if rnd.is_open:
                continue
            for score in rnd.scores.values():
                totals[score.competitor_id] = totals.get(score.competitor_id, 0) + score.targets_hit
        return totals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tournamentId": self.tournament_id,
            "disciplineId": self.discipline_id,
            "position": self.position,
            "format": self.format,
            "status": self.status,
            "tiedScore": self.tied_score,
            "description": self.description,
            "winnerId": self.winner_id,
            "createdAt": _iso(self.created_at),
            "createdBy": self.created_by,
            "startedAt": _iso(self.started_at),
            "startedBy": self.started_by,
            "completedAt": _iso(self.completed_at),
            "completedBy": self.completed_by,
            "cancelledBy": self.cancelled_by,
            "fixedRoundsCount": self.fixed_rounds_count,
            "startStation": self.start_station,
            "scope": self.scope,
            "scopeKey": self.scope_key,
            "tieFingerprint": self.tie_fingerprint,
            "version": self.version,
            "participants": [p.to_dict() for p in self.participants.values()],
            "rounds": [self.rounds[number].to_dict() for number in sorted(self.rounds)],
        }


@dataclass(frozen=True)
class RoundResult:
    round_id: str
    round_number: int
    eliminated: Tuple[str, ...]
    remaining_active: int
    # Exactly one participant left; an operator still has to declare the winner.
    ready_for_completion: bool
