"""Error taxonomy for the shoot-off engine.

Every rejected operation raises a subclass of ShootOffError. The service
boundary converts them into OperationError values so callers never see a
raw exception:

- kind: stable machine-readable code the UI can switch on
- status_code: transport hint (the parent API maps it to HTTP)
- retryable: True only for concurrency conflicts (re-fetch and retry)
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OperationError:
    """Typed failure returned at the operation boundary."""

    kind: str
    message: str
    status_code: int
    field: str | None = None
    retryable: bool = False


class ShootOffError(Exception):
    kind = "shoot_off_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_error(self) -> OperationError:
        return OperationError(
            kind=self.kind,
            message=self.message,
            status_code=self.status_code,
            field=self.field,
            retryable=self.retryable,
        )


class ValidationError(ShootOffError):
    """Structurally invalid input (score range, missing participant, short list)."""

    kind = "validation_error"


class InvalidTieError(ShootOffError):
    """Claimed tie does not match the authoritative regulation totals."""

    kind = "invalid_tie"


class NotFoundError(ShootOffError):
    kind = "not_found"
    status_code = 404


class UnknownParticipantError(NotFoundError):
    kind = "unknown_participant"


class PermissionDeniedError(ShootOffError):
    kind = "forbidden"
    status_code = 403


class InvalidStateError(ShootOffError):
    """Operation not allowed in the contest's (or round's) current state."""

    kind = "invalid_state"
    status_code = 409


class ShootOffsDisabledError(InvalidStateError):
    kind = "shoot_offs_disabled"


class DuplicateShootOffError(InvalidStateError):
    kind = "duplicate_shoot_off"


class PreviousRoundIncompleteError(InvalidStateError):
    kind = "previous_round_incomplete"


class InsufficientActiveParticipantsError(InvalidStateError):
    kind = "insufficient_active_participants"


class RoundAlreadyCompletedError(InvalidStateError):
    kind = "round_already_completed"


class ParticipantEliminatedError(InvalidStateError):
    kind = "participant_eliminated"


class NotSoleSurvivorError(InvalidStateError):
    kind = "not_sole_survivor"


class AlreadyDecidedError(InvalidStateError):
    kind = "already_decided"


class ConcurrencyConflictError(ShootOffError):
    """Another operator changed the contest first; re-fetch and retry."""

    kind = "conflict"
    status_code = 409
    retryable = True


__all__ = [
    "OperationError",
    "ShootOffError",
    "ValidationError",
    "InvalidTieError",
    "NotFoundError",
    "UnknownParticipantError",
    "PermissionDeniedError",
    "InvalidStateError",
    "ShootOffsDisabledError",
    "DuplicateShootOffError",
    "PreviousRoundIncompleteError",
    "InsufficientActiveParticipantsError",
    "RoundAlreadyCompletedError",
    "ParticipantEliminatedError",
    "NotSoleSurvivorError",
    "AlreadyDecidedError",
    "ConcurrencyConflictError",
]
