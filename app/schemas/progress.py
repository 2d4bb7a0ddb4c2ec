"""Progress schemas: stored records, request bodies and response views."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from app.schemas.games import GameTypeProgress


# Stored records

class Streak(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: int = Field(default=0, ge=0)
    longest: int = Field(default=0, ge=0)
    last_activity: Optional[date] = None


class BadgeRecord(BaseModel):
    id: str
    unlocked_at: datetime


class AchievementRecord(BaseModel):
    id: str
    points: int
    unlocked_at: datetime


class WeeklyStatEntry(BaseModel):
    week: str = Field(pattern=r"^\d{4}-W\d{2}$", examples=["2026-W42"])
    points: int = Field(default=0, ge=0)
    games_played: int = Field(default=0, ge=0)
    time_spent: float = Field(default=0.0, ge=0)
    accuracy: float = Field(default=0.0, ge=0, le=100)
    streak: int = Field(default=0, ge=0)


class Totals(BaseModel):
    total_games_played: int = 0
    total_time_spent: float = 0.0
    average_accuracy: float = 0.0


class LevelInfo(BaseModel):
    current: int
    next: int
    points_into_level: int
    points_to_next: int
    percent: float


# Requests

class AddPointsRequest(BaseModel):
    # bool must not coerce to int
    points: Union[StrictBool, int, float]
    reason: str = ""


class UnlockBadgeRequest(BaseModel):
    badge_id: str = Field(min_length=1)


class UnlockAchievementRequest(BaseModel):
    achievement_id: str = Field(min_length=1)


class GameProgressUpdateRequest(BaseModel):
    game_type: str
    data: Dict[str, Any] = Field(default_factory=dict)


# Results and views

class PointsResult(BaseModel):
    new_points: int
    new_level: int
    leveled_up: bool
    reason: str = ""


class BadgeUnlockResult(BaseModel):
    badge: BadgeRecord
    newly_unlocked: bool


class AchievementUnlockResult(BaseModel):
    achievement: AchievementRecord
    points_granted: int
    newly_unlocked: bool
    new_points: int
    new_level: int
    leveled_up: bool


class ProgressResponse(BaseModel):
    user_id: str
    points: int
    level: int
    level_info: LevelInfo
    badges: List[BadgeRecord]
    achievements: List[AchievementRecord]
    streak: Streak
    game_progress: Dict[str, GameTypeProgress]
    weekly_stats: List[WeeklyStatEntry]
    totals: Totals
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProgressSummary(BaseModel):
    points: int
    level: int
    level_info: LevelInfo
    badges: int
    achievements: int
    current_streak: int
    longest_streak: int
    total_games_played: int
    total_time_spent: float
    average_accuracy: float


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    points: int
    level: int
    badge_count: int
    achievement_count: int


class GameResultOutcome(BaseModel):
    game_type: str
    points_awarded: int
    new_points: int
    new_level: int
    leveled_up: bool
    unlocked_badges: List[BadgeRecord]
    unlocked_achievements: List[AchievementRecord]
    achievement_points: int
    game_progress: GameTypeProgress
    streak: Streak
