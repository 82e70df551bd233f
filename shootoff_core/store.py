"""Storage contract for shoot-offs and the collaborators the engine reads.

The engine never writes a stored aggregate directly. Every mutation goes
through ``transaction()``, which:
- serializes writers of the same shoot-off (per-contest lock, never global)
- hands out a deep copy, committed only when the block exits cleanly
- rejects a stale ``expected_version`` (optimistic check, like boxVersion)
- bumps ``version`` on every commit

Reads (``get``/``list_for_tournament``) take no per-contest lock: commits
swap in a fresh object, so a reader sees either the old or the new state.

InMemoryShootOffStore is process-local; a database adapter implements the
same protocol with a row lock or a version-checked UPDATE.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from copy import deepcopy
from threading import Lock, RLock
from typing import ContextManager, Dict, Iterator, List, Protocol, Tuple

from .errors import ConcurrencyConflictError, DuplicateShootOffError, NotFoundError
from .types import ShootOff
from .validation import ShootOffConfig

logger = logging.getLogger(__name__)


class ShootOffStore(Protocol):
    def add(self, shoot_off: ShootOff) -> ShootOff:
        ...

    def get(self, shoot_off_id: str) -> ShootOff | None:
        ...

    def list_for_tournament(self, tournament_id: str) -> List[ShootOff]:
        ...

    def transaction(
        self, shoot_off_id: str, expected_version: int | None = None
    ) -> ContextManager[ShootOff]:
        ...


class ScoreLedger(Protocol):
    def regulation_total(
        self, tournament_id: str, competitor_id: str, discipline_id: str | None = None
    ) -> int | None:
        ...


class TournamentDirectory(Protocol):
    def shoot_off_config(self, tournament_id: str) -> ShootOffConfig | None:
        ...


class InMemoryShootOffStore:
    def __init__(self, lock_timeout_s: float = 5.0) -> None:
        self._lock_timeout_s = lock_timeout_s
        self._records: Dict[str, ShootOff] = {}
        self._locks: Dict[str, RLock] = {}
        self._registry_lock = Lock()

    def add(self, shoot_off: ShootOff) -> ShootOff:
        """Insert a new contest.

        Contests for the same place in different scopes coexist. A detected
        tie group (by fingerprint) gets at most one non-cancelled contest.

        Raises:
            DuplicateShootOffError: the id is taken or the tie group is already
                being (or was) decided.
        """
        with self._registry_lock:
            if shoot_off.id in self._records:
                raise DuplicateShootOffError(f"Shoot-off {shoot_off.id} already exists")
            if shoot_off.tie_fingerprint is not None:
                for existing in self._records.values():
                    if (
                        existing.tournament_id == shoot_off.tournament_id
                        and existing.discipline_id == shoot_off.discipline_id
                        and existing.tie_fingerprint == shoot_off.tie_fingerprint
                        and existing.status != "cancelled"
                    ):
                        raise DuplicateShootOffError(
                            f"Shoot-off {existing.id} already covers this tie"
                        )
            self._records[shoot_off.id] = deepcopy(shoot_off)
            self._locks[shoot_off.id] = RLock()
        return deepcopy(shoot_off)

    def get(self, shoot_off_id: str) -> ShootOff | None:
        record = self._records.get(shoot_off_id)
        return deepcopy(record) if record is not None else None

    def list_for_tournament(self, tournament_id: str) -> List[ShootOff]:
        records = [r for r in list(self._records.values()) if r.tournament_id == tournament_id]
        records.sort(key=lambda r: (r.position, r.created_at))
        return [deepcopy(r) for r in records]

    @contextmanager
    def transaction(
        self, shoot_off_id: str, expected_version: int | None = None
    ) -> Iterator[ShootOff]:
        lock = self._locks.get(shoot_off_id)
        if lock is None:
            raise NotFoundError("Shoot-off not found", field="shootOffId")
        if not lock.acquire(timeout=self._lock_timeout_s):
            logger.warning(f"Shoot-off {shoot_off_id}: lock timeout after {self._lock_timeout_s}s")
            raise ConcurrencyConflictError(
                "Another operator is updating this shoot-off; please retry"
            )
        try:
            current = self._records[shoot_off_id]
            if expected_version is not None and expected_version != current.version:
                logger.warning(
                    f"Shoot-off {shoot_off_id}: stale version {expected_version} "
                    f"(current {current.version})"
                )
                raise ConcurrencyConflictError(
                    "Shoot-off changed since it was loaded; refresh and retry"
                )
            working = deepcopy(current)
            yield working
            working.version = current.version + 1
            self._records[shoot_off_id] = working
        finally:
            lock.release()


class InMemoryScoreLedger:
    """Regulation totals keyed by (tournament, discipline, competitor).

    Without a discipline the overall total is used: an explicit overall entry
    if recorded, else the sum of the competitor's discipline totals.
    """

    def __init__(self) -> None:
        self._totals: Dict[Tuple[str, str | None, str], int] = {}

    def record(
        self,
        tournament_id: str,
        competitor_id: str,
        total: int,
        discipline_id: str | None = None,
    ) -> None:
        self._totals[(tournament_id, discipline_id, competitor_id)] = total

    def regulation_total(
        self, tournament_id: str, competitor_id: str, discipline_id: str | None = None
    ) -> int | None:
        key = (tournament_id, discipline_id, competitor_id)
        if key in self._totals:
            return self._totals[key]
        if discipline_id is not None:
            return None
        parts = [
            total
            for (t_id, d_id, c_id), total in self._totals.items()
            if t_id == tournament_id and c_id == competitor_id and d_id is not None
        ]
        return sum(parts) if parts else None


class InMemoryTournamentDirectory:
    def __init__(self) -> None:
        self._configs: Dict[str, ShootOffConfig] = {}

    def configure(self, tournament_id: str, config: ShootOffConfig) -> None:
        self._configs[tournament_id] = config

    def shoot_off_config(self, tournament_id: str) -> ShootOffConfig | None:
        return self._configs.get(tournament_id)
