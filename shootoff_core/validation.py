"""
Input validation schemas using Pydantic v2
Validates tournament shoot-off configuration and operation requests
"""

import json
import logging
import re
from typing import List, Literal, Optional, Self, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .ties import TiePolicy

logger = logging.getLogger(__name__)

FormatName = Literal["sudden_death", "fixed_rounds", "progressive"]

TRIGGER_PLACES = {"1st": 1, "2nd": 2, "3rd": 3}
TRIGGER_BANDS = {"top5": 5, "top10": 10}
PERFECT_TRIGGER = "perfect"
ALLOWED_TRIGGERS = (*TRIGGER_PLACES, *TRIGGER_BANDS, PERFECT_TRIGGER)

ModelT = TypeVar("ModelT", bound=BaseModel)


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        if not isinstance(value, str):
            return str(value)[:max_length]

        value = value.strip()
        value = value[:max_length]
        value = value.replace("\0", "")
        return value

    @staticmethod
    def sanitize_identifier(value: str) -> str:
        """Identifiers (competitor, tournament, round ids) keep only printable characters"""
        value = InputSanitizer.sanitize_string(value, 128)
        return re.sub(r"[\x00-\x1f\x7f]", "", value).strip()

    @staticmethod
    def sanitize_label(value: str, max_length: int = 50) -> str:
        """Free-text labels like the start station"""
        value = InputSanitizer.sanitize_string(value, max_length)
        return re.sub(r'[<>{}[\]\\|;`"\x00-\x1f\x7f]', "", value).strip()


def _clean_identifier(value: Optional[str], name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    cleaned = InputSanitizer.sanitize_identifier(value)
    if not cleaned:
        raise ValueError(f"{name} cannot be empty")
    return cleaned


# ==================== CONFIGURATION ====================


class ShootOffConfig(BaseModel):
    """Tournament-level shoot-off settings"""

    enable_shoot_offs: bool = Field(True, alias="enableShootOffs")
    triggers: List[str] = Field(default_factory=list, alias="shootOffTriggers")
    format: FormatName = Field("sudden_death", alias="shootOffFormat")
    targets_per_round: int = Field(
        2, ge=1, le=10, alias="shootOffTargetsPerRound", description="Targets per round (1-10)"
    )
    start_station: Optional[str] = Field(None, alias="shootOffStartStation")
    requires_perfect: bool = Field(False, alias="shootOffRequiresPerfect")
    fixed_rounds_count: int = Field(
        3, ge=1, le=20, alias="shootOffFixedRounds", description="Rounds before fixed_rounds ranks"
    )
    max_possible_score: Optional[int] = Field(None, ge=1, alias="maxPossibleScore")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("triggers", mode="before")
    @classmethod
    def parse_triggers(cls, v):
        """Accept a list or the JSON-encoded string the tournament record stores"""
        if v is None or v == "":
            return []
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                raise ValueError("shootOffTriggers must be a list or a JSON array string")
        if not isinstance(v, list):
            raise ValueError("shootOffTriggers must be a list")
        normalized: List[str] = []
        for item in v:
            if not isinstance(item, str):
                raise ValueError("shootOffTriggers entries must be strings")
            trigger = item.strip().lower()
            if trigger not in ALLOWED_TRIGGERS:
                raise ValueError(f"trigger must be one of {ALLOWED_TRIGGERS}, got {item}")
            if trigger not in normalized:
                normalized.append(trigger)
        return normalized

    @field_validator("start_station")
    @classmethod
    def validate_start_station(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = InputSanitizer.sanitize_label(v)
        return v or None

    @model_validator(mode="after")
    def validate_perfect_gate(self) -> Self:
        if PERFECT_TRIGGER in self.triggers:
            self.requires_perfect = True
        if self.requires_perfect and self.max_possible_score is None:
            raise ValueError("perfect-score gate requires maxPossibleScore")
        return self

    def tie_policy(self, max_possible_score: Optional[int] = None) -> TiePolicy:
        """Translate the trigger vocabulary into a Tie Detector policy

        A ``max_possible_score`` override gates perfect ties for one
        discipline instead of the whole tournament.
        """
        places = frozenset(TRIGGER_PLACES[t] for t in self.triggers if t in TRIGGER_PLACES)
        bands = [TRIGGER_BANDS[t] for t in self.triggers if t in TRIGGER_BANDS]
        return TiePolicy(
            exact_places=places,
            top_n=max(bands) if bands else None,
            requires_perfect=self.requires_perfect,
            max_possible_score=(
                max_possible_score if max_possible_score is not None else self.max_possible_score
            ),
        )


# ==================== OPERATION REQUESTS ====================


class CreateShootOffRequest(BaseModel):
    tournament_id: str = Field(..., alias="tournamentId")
    discipline_id: Optional[str] = Field(None, alias="disciplineId")
    position: int = Field(..., ge=1, le=999, description="Place being contested")
    competitor_ids: List[str] = Field(..., min_length=2, alias="competitorIds")
    claimed_tied_score: StrictInt = Field(..., ge=0, alias="claimedTiedScore")
    format: Optional[FormatName] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("tournament_id")
    @classmethod
    def validate_tournament_id(cls, v: str) -> str:
        return _clean_identifier(v, "tournamentId")

    @field_validator("discipline_id")
    @classmethod
    def validate_discipline_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return _clean_identifier(v, "disciplineId")

    @field_validator("competitor_ids")
    @classmethod
    def validate_competitor_ids(cls, v: List[str]) -> List[str]:
        cleaned = [_clean_identifier(item, "competitorId") for item in v]
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("competitorIds must be distinct")
        return cleaned


class RoundScoreEntry(BaseModel):
    competitor_id: str = Field(..., alias="competitorId")
    targets_hit: StrictInt = Field(..., ge=0, alias="targetsHit")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("competitor_id")
    @classmethod
    def validate_competitor_id(cls, v: str) -> str:
        return _clean_identifier(v, "competitorId")


class RecordScoresRequest(BaseModel):
    round_id: str = Field(..., alias="roundId")
    scores: List[RoundScoreEntry] = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("round_id")
    @classmethod
    def validate_round_id(cls, v: str) -> str:
        return _clean_identifier(v, "roundId")

    @model_validator(mode="after")
    def validate_unique_competitors(self) -> Self:
        seen = set()
        for entry in self.scores:
            if entry.competitor_id in seen:
                raise ValueError(f"duplicate score for competitor {entry.competitor_id}")
            seen.add(entry.competitor_id)
        return self


class DeclareWinnerRequest(BaseModel):
    competitor_id: str = Field(..., alias="competitorId")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("competitor_id")
    @classmethod
    def validate_competitor_id(cls, v: str) -> str:
        return _clean_identifier(v, "competitorId")


def validate_request(model: Type[ModelT], data: dict) -> ModelT:
    """
    Validate a request payload

    Returns:
        The validated model instance

    Raises:
        ValidationError: carrying the offending field path
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        message = first.get("msg", "invalid input")
        logger.warning(f"{model.__name__} validation failed: {field}: {message}")
        raise ValidationError(message, field=field) from e


# ==================== EXPORT ====================

__all__ = [
    "ShootOffConfig",
    "CreateShootOffRequest",
    "RoundScoreEntry",
    "RecordScoresRequest",
    "DeclareWinnerRequest",
    "InputSanitizer",
    "validate_request",
]
