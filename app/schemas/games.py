"""Game category schemas and per-category metric variants."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import InvalidGameType, ValidationError


class GameType(str, Enum):
    """Game categories tracked per learner."""
    READING = "reading"
    WRITING = "writing"
    SIGHT_WORDS = "sightWords"
    COMPREHENSION = "comprehension"


class MergePolicy(str, Enum):
    """How a reported metric folds into the stored category record."""
    SUM = "sum"
    MAX = "max"
    OVERWRITE = "overwrite"


MAX_SCORE = 100
MAX_COUNT_DELTA = 10_000  # per report
MAX_TIME_SPENT = 24 * 60  # minutes per report


class GameMetricsBase(BaseModel):
    """
    Metrics reported for one game category.

    Only fields the caller actually sets are merged; each field's
    ``MergePolicy`` is declared in its annotation.
    """

    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    completed: Annotated[int, MergePolicy.SUM] = Field(default=0, ge=0, le=MAX_COUNT_DELTA)
    total: Annotated[int, MergePolicy.SUM] = Field(default=0, ge=0, le=MAX_COUNT_DELTA)
    best_score: Annotated[float, MergePolicy.MAX] = Field(default=0.0, ge=0, le=MAX_SCORE)
    average_score: Annotated[float, MergePolicy.OVERWRITE] = Field(default=0.0, ge=0, le=MAX_SCORE)
    accuracy: Annotated[float, MergePolicy.OVERWRITE] = Field(default=0.0, ge=0, le=100)
    time_spent: Annotated[float, MergePolicy.OVERWRITE] = Field(default=0.0, ge=0, le=MAX_TIME_SPENT)
    last_played: Annotated[Optional[datetime], MergePolicy.OVERWRITE] = None


class ReadingMetrics(GameMetricsBase):
    game_type: Literal["reading"] = "reading"


class WritingMetrics(GameMetricsBase):
    game_type: Literal["writing"] = "writing"


class SightWordsMetrics(GameMetricsBase):
    game_type: Literal["sightWords"] = "sightWords"


class ComprehensionMetrics(GameMetricsBase):
    game_type: Literal["comprehension"] = "comprehension"


GameMetrics = Annotated[
    Union[ReadingMetrics, WritingMetrics, SightWordsMetrics, ComprehensionMetrics],
    Field(discriminator="game_type"),
]

_game_metrics_adapter = TypeAdapter(GameMetrics)


def parse_game_type(value: Any) -> GameType:
    """Coerce a raw category name, raising InvalidGameType for anything unknown."""
    try:
        return GameType(value)
    except ValueError:
        raise InvalidGameType(value)


def parse_game_metrics(game_type: Any, data: Dict[str, Any]) -> GameMetricsBase:
    """Build the tagged metrics variant for ``game_type`` from a raw payload."""
    category = parse_game_type(game_type)
    payload = {key: value for key, value in (data or {}).items() if key != "game_type"}

    try:
        return _game_metrics_adapter.validate_python({"game_type": category.value, **payload})
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"][1:]) or None
        raise ValidationError(
            message=first["msg"],
            field=field,
            value=first.get("input"),
            operation="parse_game_metrics",
            cause=e,
        )


class GameTypeProgress(BaseModel):
    """Stored aggregate for one game category."""
    completed: int = 0
    total: int = 0
    best_score: float = 0.0
    average_score: float = 0.0
    accuracy: float = 0.0
    time_spent: float = 0.0  # minutes
    last_played: Optional[datetime] = None


class GameResultReport(BaseModel):
    """A single game completion as reported by the game client."""

    model_config = ConfigDict(allow_inf_nan=False)

    score: float = Field(ge=0, le=MAX_SCORE)
    accuracy: float = Field(ge=0, le=100)
    time_spent: float = Field(default=0.0, ge=0, le=MAX_TIME_SPENT)  # minutes
    mistakes: int = Field(default=0, ge=0)
    hints_used: int = Field(default=0, ge=0)
