from .errors import (
    AlreadyDecidedError,
    ConcurrencyConflictError,
    DuplicateShootOffError,
    InsufficientActiveParticipantsError,
    InvalidStateError,
    InvalidTieError,
    NotFoundError,
    NotSoleSurvivorError,
    OperationError,
    ParticipantEliminatedError,
    PermissionDeniedError,
    PreviousRoundIncompleteError,
    RoundAlreadyCompletedError,
    ShootOffError,
    ShootOffsDisabledError,
    UnknownParticipantError,
    ValidationError,
)
from .formats import EliminationPolicy, RoundContext, policy_for
from .placement import declare_winner, rank_participants
from .rounds import open_round, record_round_scores
from .service import OperationResult, ShootOffService
from .shootoff import cancel_shoot_off, create_shoot_off, start_shoot_off, verify_tie
from .store import (
    InMemoryScoreLedger,
    InMemoryShootOffStore,
    InMemoryTournamentDirectory,
    ScoreLedger,
    ShootOffStore,
    TournamentDirectory,
)
from .ties import TiePolicy, detect_ties
from .types import (
    MANAGE_PERMISSION,
    ActorContext,
    Participant,
    Round,
    RoundResult,
    RoundScore,
    ShootOff,
    Standing,
    TieGroup,
)
from .validation import ShootOffConfig

__all__ = [
    "AlreadyDecidedError",
    "ConcurrencyConflictError",
    "DuplicateShootOffError",
    "InsufficientActiveParticipantsError",
    "InvalidStateError",
    "InvalidTieError",
    "NotFoundError",
    "NotSoleSurvivorError",
    "OperationError",
    "ParticipantEliminatedError",
    "PermissionDeniedError",
    "PreviousRoundIncompleteError",
    "RoundAlreadyCompletedError",
    "ShootOffError",
    "ShootOffsDisabledError",
    "UnknownParticipantError",
    "ValidationError",
    "EliminationPolicy",
    "RoundContext",
    "policy_for",
    "declare_winner",
    "rank_participants",
    "open_round",
    "record_round_scores",
    "OperationResult",
    "ShootOffService",
    "cancel_shoot_off",
    "create_shoot_off",
    "start_shoot_off",
    "verify_tie",
    "InMemoryScoreLedger",
    "InMemoryShootOffStore",
    "InMemoryTournamentDirectory",
    "ScoreLedger",
    "ShootOffStore",
    "TournamentDirectory",
    "TiePolicy",
    "detect_ties",
    "MANAGE_PERMISSION",
    "ActorContext",
    "Participant",
    "Round",
    "RoundResult",
    "RoundScore",
    "ShootOff",
    "Standing",
    "TieGroup",
    "ShootOffConfig",
]
