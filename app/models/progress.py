"""Progress aggregate model."""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from sqlalchemy import BigInteger, Column, String, Integer, Float, DateTime, Date, JSON, Index, Uuid
import uuid

from app.core.database import Base
from app.schemas.games import GameType, GameTypeProgress
from app.schemas.progress import AchievementRecord, BadgeRecord, Streak, Totals, WeeklyStatEntry


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Progress(Base):
    """
    One learner's progress aggregate.

    Nested collections live in JSON columns and are always reassigned,
    never mutated in place, so the ORM sees every change. ``version`` is
    the optimistic concurrency counter checked on every UPDATE.
    """
    __tablename__ = "progress"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    points = Column(BigInteger, nullable=False, default=0)
    level = Column(BigInteger, nullable=False, default=1)
    badges = Column(JSON, nullable=False, default=list)
    achievements = Column(JSON, nullable=False, default=list)
    streak_current = Column(Integer, nullable=False, default=0)
    streak_longest = Column(Integer, nullable=False, default=0)
    streak_last_activity = Column(Date)
    game_progress = Column(JSON, nullable=False, default=dict)
    weekly_stats = Column(JSON, nullable=False, default=list)

    # Derived from game_progress, written only by the aggregator
    total_games_played = Column(BigInteger, nullable=False, default=0)
    total_time_spent = Column(Float, nullable=False, default=0.0)  # minutes
    average_accuracy = Column(Float, nullable=False, default=0.0)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_progress_points_level", "points", "level"),
    )

    @classmethod
    def initial(cls, user_id: str) -> "Progress":
        """Fresh aggregate with every field populated, ready to mutate before flush."""
        return cls(
            user_id=user_id,
            points=0,
            level=1,
            badges=[],
            achievements=[],
            streak_current=0,
            streak_longest=0,
            streak_last_activity=None,
            game_progress={},
            weekly_stats=[],
            total_games_played=0,
            total_time_spent=0.0,
            average_accuracy=0.0,
        )

    # Typed views over the stored columns

    @property
    def streak(self) -> Streak:
        return Streak(
            current=self.streak_current or 0,
            longest=self.streak_longest or 0,
            last_activity=self.streak_last_activity,
        )

    @streak.setter
    def streak(self, value: Streak) -> None:
        self.streak_current = value.current
        self.streak_longest = value.longest
        self.streak_last_activity = value.last_activity

    @property
    def badge_records(self) -> List[BadgeRecord]:
        return [BadgeRecord.model_validate(item) for item in self.badges or []]

    @property
    def achievement_records(self) -> List[AchievementRecord]:
        return [AchievementRecord.model_validate(item) for item in self.achievements or []]

    @property
    def weekly_entries(self) -> List[WeeklyStatEntry]:
        return [WeeklyStatEntry.model_validate(item) for item in self.weekly_stats or []]

    @property
    def totals(self) -> Totals:
        return Totals(
            total_games_played=self.total_games_played or 0,
            total_time_spent=self.total_time_spent or 0.0,
            average_accuracy=self.average_accuracy or 0.0,
        )

    def game_records(self) -> Dict[GameType, GameTypeProgress]:
        return {
            GameType(key): GameTypeProgress.model_validate(value)
            for key, value in (self.game_progress or {}).items()
        }

    def find_badge(self, badge_id: str) -> Optional[BadgeRecord]:
        return next((b for b in self.badge_records if b.id == badge_id), None)

    def find_achievement(self, achievement_id: str) -> Optional[AchievementRecord]:
        return next((a for a in self.achievement_records if a.id == achievement_id), None)

    def add_badge(self, record: BadgeRecord) -> None:
        self.badges = [*(self.badges or []), record.model_dump(mode="json")]

    def add_achievement(self, record: AchievementRecord) -> None:
        self.achievements = [*(self.achievements or []), record.model_dump(mode="json")]

    def __repr__(self) -> str:
        return f"<Progress user_id={self.user_id!r} points={self.points} level={self.level} v{self.version}>"
