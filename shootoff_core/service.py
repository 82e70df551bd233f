"""Operation boundary for the shoot-off engine.

Each public method is one short transaction against the store and returns
an OperationResult instead of raising: a rejected operation carries a typed
OperationError (kind/message/status_code/field/retryable) and leaves the
stored shoot-off exactly as it was.

Mutating methods take an explicit ActorContext. Whether the actor may manage
shoot-offs is decided by the authorization layer and arrives as the
``shootoff:manage`` permission; the actor id is recorded on the aggregate.
"""
from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Iterable, List, Mapping, Optional, Sequence, TypeVar

from .errors import NotFoundError, OperationError, PermissionDeniedError, ShootOffError
from .placement import declare_winner
from .rounds import open_round, record_round_scores
from .shootoff import cancel_shoot_off, create_shoot_off, start_shoot_off
from .store import ScoreLedger, ShootOffStore, TournamentDirectory
from .ties import detect_ties
from .types import ActorContext, Round, RoundResult, ShootOff, Standing, StandingScope, TieGroup
from .validation import (
    CreateShootOffRequest,
    DeclareWinnerRequest,
    RecordScoresRequest,
    ShootOffConfig,
    validate_request,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Result of one engine operation."""

    value: Optional[T] = None
    error: Optional[OperationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _score_payload(scores: Iterable[Any]) -> List[Any]:
    """Accept (competitorId, targetsHit) pairs as well as dicts."""
    payload: List[Any] = []
    for entry in scores:
        if isinstance(entry, (tuple, list)) and len(entry) == 2:
            payload.append({"competitorId": entry[0], "targetsHit": entry[1]})
        else:
            payload.append(entry)
    return payload


class ShootOffService:
    def __init__(
        self,
        store: ShootOffStore,
        ledger: ScoreLedger,
        directory: TournamentDirectory,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._directory = directory
        self._clock = clock

    # ----- plumbing -----

    def _run(self, operation: str, fn: Callable[[], T]) -> OperationResult[T]:
        try:
            return OperationResult(value=fn())
        except ShootOffError as exc:
            error = exc.to_error()
            logger.warning(f"{operation} rejected: {error.kind}: {error.message}")
            return OperationResult(error=error)

    @staticmethod
    def _require_manage(actor: ActorContext) -> None:
        if not actor.can_manage:
            raise PermissionDeniedError(
                "You do not have permission to manage shoot-offs for this tournament"
            )

    def _config(self, tournament_id: str) -> ShootOffConfig:
        config = self._directory.shoot_off_config(tournament_id)
        if config is None:
            raise NotFoundError("Tournament not found", field="tournamentId")
        return config

    def _mutate(
        self,
        shoot_off_id: str,
        expected_version: int | None,
        transition: Callable[[ShootOff], T],
    ) -> T:
        with self._store.transaction(shoot_off_id, expected_version) as working:
            result = transition(working)
        return deepcopy(result)

    # ----- tie detection -----

    def detect_ties(
        self,
        tournament_id: str,
        standings: Sequence[Standing],
        *,
        scope: StandingScope = "overall",
        scope_key: str | None = None,
        max_possible_score: int | None = None,
    ) -> OperationResult[tuple[TieGroup, ...]]:
        """Find qualifying tie groups in one scope's standings.

        ``max_possible_score`` replaces the tournament-wide maximum for the
        perfect-score gate, e.g. 25 for a single trap discipline.
        """

        def run() -> tuple[TieGroup, ...]:
            config = self._config(tournament_id)
            if not config.enable_shoot_offs:
                return ()
            policy = config.tie_policy(max_possible_score=max_possible_score)
            return detect_ties(standings, policy, scope=scope, scope_key=scope_key)

        return self._run("detect_ties", run)

    # ----- lifecycle -----

    def create_shoot_off(
        self,
        actor: ActorContext,
        tournament_id: str,
        position: int,
        competitor_ids: Sequence[str],
        claimed_tied_score: int,
        *,
        discipline_id: str | None = None,
        format: str | None = None,
        tie_group: TieGroup | None = None,
    ) -> OperationResult[ShootOff]:
        def run() -> ShootOff:
            self._require_manage(actor)
            request = validate_request(
                CreateShootOffRequest,
                {
                    "tournamentId": tournament_id,
                    "disciplineId": discipline_id,
                    "position": position,
                    "competitorIds": list(competitor_ids),
                    "claimedTiedScore": claimed_tied_score,
                    "format": format,
                },
            )
            config = self._config(request.tournament_id)
            totals: Mapping[str, int | None] = {
                cid: self._ledger.regulation_total(
                    request.tournament_id, cid, request.discipline_id
                )
                for cid in request.competitor_ids
            }
            shoot_off = create_shoot_off(
                request,
                config=config,
                regulation_totals=totals,
                actor_id=actor.id,
                now=self._clock(),
                tie_group=tie_group,
            )
            return self._store.add(shoot_off)

        return self._run("create_shoot_off", run)

    def create_from_tie_group(
        self,
        actor: ActorContext,
        tournament_id: str,
        group: TieGroup,
        *,
        discipline_id: str | None = None,
        format: str | None = None,
    ) -> OperationResult[ShootOff]:
        return self.create_shoot_off(
            actor,
            tournament_id,
            group.place,
            group.competitor_ids,
            group.tied_score,
            discipline_id=discipline_id,
            format=format,
            tie_group=group,
        )

    def start_shoot_off(
        self, actor: ActorContext, shoot_off_id: str, *, expected_version: int | None = None
    ) -> OperationResult[ShootOff]:
        def run() -> ShootOff:
            self._require_manage(actor)
            return self._mutate(
                shoot_off_id,
                expected_version,
                lambda so: start_shoot_off(so, actor_id=actor.id, now=self._clock()),
            )

        return self._run("start_shoot_off", run)

    def cancel_shoot_off(
        self, actor: ActorContext, shoot_off_id: str, *, expected_version: int | None = None
    ) -> OperationResult[ShootOff]:
        def run() -> ShootOff:
            self._require_manage(actor)
            return self._mutate(
                shoot_off_id,
                expected_version,
                lambda so: cancel_shoot_off(so, actor_id=actor.id, now=self._clock()),
            )

        return self._run("cancel_shoot_off", run)

    # ----- rounds -----

    def open_round(
        self, actor: ActorContext, shoot_off_id: str, *, expected_version: int | None = None
    ) -> OperationResult[Round]:
        def transition(so: ShootOff) -> Round:
            config = self._config(so.tournament_id)
            return open_round(
                so, targets=config.targets_per_round, actor_id=actor.id, now=self._clock()
            )

        def run() -> Round:
            self._require_manage(actor)
            return self._mutate(shoot_off_id, expected_version, transition)

        return self._run("open_round", run)

    def record_round_scores(
        self,
        actor: ActorContext,
        shoot_off_id: str,
        round_id: str,
        scores: Iterable[Any],
        *,
        expected_version: int | None = None,
    ) -> OperationResult[RoundResult]:
        def run() -> RoundResult:
            self._require_manage(actor)
            request = validate_request(
                RecordScoresRequest,
                {"roundId": round_id, "scores": _score_payload(scores)},
            )
            return self._mutate(
                shoot_off_id,
                expected_version,
                lambda so: record_round_scores(
                    so, request, actor_id=actor.id, now=self._clock()
                ),
            )

        return self._run("record_round_scores", run)

    # ----- completion -----

    def declare_winner(
        self,
        actor: ActorContext,
        shoot_off_id: str,
        competitor_id: str,
        *,
        expected_version: int | None = None,
    ) -> OperationResult[ShootOff]:
        def run() -> ShootOff:
            self._require_manage(actor)
            request = validate_request(DeclareWinnerRequest, {"competitorId": competitor_id})
            return self._mutate(
                shoot_off_id,
                expected_version,
                lambda so: declare_winner(
                    so, request.competitor_id, actor_id=actor.id, now=self._clock()
                ),
            )

        return self._run("declare_winner", run)

    # ----- queries -----

    def get_shoot_off(self, shoot_off_id: str) -> OperationResult[ShootOff]:
        def run() -> ShootOff:
            shoot_off = self._store.get(shoot_off_id)
            if shoot_off is None:
                raise NotFoundError("Shoot-off not found", field="shootOffId")
            return shoot_off

        return self._run("get_shoot_off", run)

    def list_shoot_offs(self, tournament_id: str) -> OperationResult[List[ShootOff]]:
        return self._run("list_shoot_offs", lambda: self._store.list_for_tournament(tournament_id))
