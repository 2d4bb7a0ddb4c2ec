"""
Progress service.

Orchestrates every learner-facing operation. Input is validated up front,
then each write is expressed as a mutation over the freshly loaded
aggregate and handed to ``ProgressRepository.atomic_update``. Mutations
may run more than once under contention, so they only read the aggregate
and values captured before the first attempt.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import structlog

from app.core.config import settings
from app.core.exceptions import InvalidAmount, NotFoundError, PointsLimitReached, ValidationError
from app.gamification import leveling, streaks
from app.gamification.aggregator import GameProgressAggregator
from app.gamification.badge_engine import BadgeEngine
from app.gamification.catalog import get_achievement, get_badge
from app.gamification.points_engine import GameContext, PointsEngine
from app.gamification.weekly_stats import WeeklyStatsRoller, week_key
from app.models.progress import Progress, utcnow
from app.repositories.progress_repository import ProgressRepository
from app.schemas.games import (
    GameResultReport,
    GameTypeProgress,
    parse_game_metrics,
    parse_game_type,
)
from app.schemas.progress import (
    AchievementRecord,
    AchievementUnlockResult,
    BadgeRecord,
    BadgeUnlockResult,
    GameResultOutcome,
    LeaderboardEntry,
    PointsResult,
    ProgressResponse,
    ProgressSummary,
    WeeklyStatEntry,
)

logger = structlog.get_logger()

Clock = Callable[[], datetime]


def to_response(progress: Progress) -> ProgressResponse:
    """Full read view of a learner's aggregate."""
    return ProgressResponse(
        user_id=progress.user_id,
        points=progress.points,
        level=progress.level,
        level_info=leveling.level_progress(progress.points, progress.level),
        badges=progress.badge_records,
        achievements=progress.achievement_records,
        streak=progress.streak,
        game_progress={key.value: value for key, value in progress.game_records().items()},
        weekly_stats=progress.weekly_entries,
        totals=progress.totals,
        created_at=progress.created_at,
        updated_at=progress.updated_at,
    )


def to_summary(progress: Progress) -> ProgressSummary:
    streak = progress.streak
    return ProgressSummary(
        points=progress.points,
        level=progress.level,
        level_info=leveling.level_progress(progress.points, progress.level),
        badges=len(progress.badges or []),
        achievements=len(progress.achievements or []),
        current_streak=streak.current,
        longest_streak=streak.longest,
        total_games_played=progress.total_games_played,
        total_time_spent=progress.total_time_spent,
        average_accuracy=progress.average_accuracy,
    )


class ProgressService:
    """Learner progress, gamification unlocks and leaderboard reads."""

    def __init__(
        self,
        repository: ProgressRepository,
        clock: Optional[Clock] = None,
        cache: Any = None,
    ):
        self.repository = repository
        self.clock = clock or utcnow
        self.cache = cache
        self.points_engine = PointsEngine()
        self.badge_engine = BadgeEngine()
        self.aggregator = GameProgressAggregator()
        self.weekly_roller = WeeklyStatsRoller()

    # ==========================================
    # Reads
    # ==========================================

    async def get_progress(self, user_id: str) -> Progress:
        """Learner's aggregate, created with defaults on first access."""
        return await self.repository.get_or_create(user_id)

    async def summary(self, user_id: str) -> ProgressSummary:
        progress = await self.get_progress(user_id)
        return to_summary(progress)

    async def game_stats(self, user_id: str, game_type: Any) -> GameTypeProgress:
        """One category's running record. Categories never played read as zeros."""
        category = parse_game_type(game_type)
        progress = await self.get_progress(user_id)
        return progress.game_records().get(category, GameTypeProgress())

    async def get_child_progress(self, parent_id: str, child_id: str) -> Progress:
        """
        A child's aggregate as seen by a parent.

        Never creates a record. Ownership must already have been checked
        by the caller.
        """
        progress = await self.repository.get(child_id)
        if progress is None:
            raise NotFoundError(
                message=f"No progress recorded for {child_id}",
                record_type="Progress",
                record_id=child_id,
                user_id=parent_id,
                operation="get_child_progress",
            )
        return progress

    async def leaderboard(
        self,
        top_n: int = 10,
        game_type: Optional[str] = None,
    ) -> List[LeaderboardEntry]:
        """Top learners by points, then level, then user id."""
        if isinstance(top_n, bool) or not isinstance(top_n, int) or not 1 <= top_n <= settings.LEADERBOARD_SIZE:
            raise ValidationError(
                message=f"Limit must be between 1 and {settings.LEADERBOARD_SIZE}",
                field="limit",
                value=top_n,
                operation="leaderboard",
            )
        category = parse_game_type(game_type) if game_type is not None else None

        cache_key = f"leaderboard:{category.value if category else 'all'}:{top_n}"
        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Leaderboard cache hit", key=cache_key)
                return [LeaderboardEntry.model_validate(item) for item in cached]

        rows = await self.repository.top(top_n, category)
        entries = [
            LeaderboardEntry(
                rank=rank,
                user_id=row.user_id,
                points=row.points,
                level=row.level,
                badge_count=len(row.badges or []),
                achievement_count=len(row.achievements or []),
            )
            for rank, row in enumerate(rows, start=1)
        ]

        if self.cache is not None:
            await self.cache.set(
                cache_key,
                [entry.model_dump() for entry in entries],
                ttl=settings.LEADERBOARD_CACHE_TTL,
            )

        return entries

    # ==========================================
    # Writes
    # ==========================================

    async def add_points(self, user_id: str, amount: Any, reason: str = "") -> PointsResult:
        """Add points, re-derive the level and count the day toward the streak."""
        if isinstance(amount, bool) or not isinstance(amount, int) or not 0 < amount <= settings.MAX_POINTS_AWARD:
            raise InvalidAmount(amount, limit=settings.MAX_POINTS_AWARD, user_id=user_id, operation="add_points")

        now = self.clock()

        def mutate(progress: Progress) -> PointsResult:
            leveled_up = self._grant_points(progress, amount, now)
            return PointsResult(
                new_points=progress.points,
                new_level=progress.level,
                leveled_up=leveled_up,
                reason=reason,
            )

        result = await self.repository.atomic_update(user_id, mutate, operation="add_points")
        logger.info(
            "Points added",
            user_id=user_id,
            amount=amount,
            reason=reason,
            new_points=result.new_points,
            leveled_up=result.leveled_up,
        )
        return result

    async def unlock_badge(self, user_id: str, badge_id: str) -> BadgeUnlockResult:
        """Unlock a catalog badge once. Repeat calls return the original record."""
        get_badge(badge_id)
        now = self.clock()

        def mutate(progress: Progress) -> BadgeUnlockResult:
            existing = progress.find_badge(badge_id)
            if existing is not None:
                return BadgeUnlockResult(badge=existing, newly_unlocked=False)

            record = BadgeRecord(id=badge_id, unlocked_at=now)
            progress.add_badge(record)
            return BadgeUnlockResult(badge=record, newly_unlocked=True)

        result = await self.repository.atomic_update(user_id, mutate, operation="unlock_badge")
        if result.newly_unlocked:
            logger.info("Badge unlocked", user_id=user_id, badge_id=badge_id)
        return result

    async def unlock_achievement(self, user_id: str, achievement_id: str) -> AchievementUnlockResult:
        """
        Unlock a catalog achievement once, granting its points in the same write.

        A repeated or concurrent duplicate finds the record already present
        and grants nothing.
        """
        definition = get_achievement(achievement_id)
        now = self.clock()

        def mutate(progress: Progress) -> AchievementUnlockResult:
            existing = progress.find_achievement(achievement_id)
            if existing is not None:
                return AchievementUnlockResult(
                    achievement=existing,
                    points_granted=0,
                    newly_unlocked=False,
                    new_points=progress.points,
                    new_level=progress.level,
                    leveled_up=False,
                )

            record = AchievementRecord(id=definition.id, points=definition.points, unlocked_at=now)
            progress.add_achievement(record)
            leveled_up = self._grant_points(progress, definition.points, now)
            return AchievementUnlockResult(
                achievement=record,
                points_granted=definition.points,
                newly_unlocked=True,
                new_points=progress.points,
                new_level=progress.level,
                leveled_up=leveled_up,
            )

        result = await self.repository.atomic_update(user_id, mutate, operation="unlock_achievement")
        if result.newly_unlocked:
            logger.info(
                "Achievement unlocked",
                user_id=user_id,
                achievement_id=achievement_id,
                points=result.points_granted,
            )
        return result

    async def update_game_progress(
        self,
        user_id: str,
        game_type: Any,
        data: Dict[str, Any],
    ) -> GameTypeProgress:
        """Merge reported metrics into one game category and refresh the totals."""
        metrics = parse_game_metrics(game_type, data)
        now = self.clock()

        def mutate(progress: Progress) -> GameTypeProgress:
            merged = self.aggregator.apply(progress, metrics, now)
            progress.streak = streaks.advance(progress.streak, now)
            return merged

        return await self.repository.atomic_update(user_id, mutate, operation="update_game_progress")

    async def record_weekly_stats(self, user_id: str, entry: WeeklyStatEntry) -> List[WeeklyStatEntry]:
        def mutate(progress: Progress) -> List[WeeklyStatEntry]:
            return self.weekly_roller.apply(progress, entry)

        return await self.repository.atomic_update(user_id, mutate, operation="record_weekly_stats")

    async def record_game_result(
        self,
        user_id: str,
        game_type: Any,
        result: GameResultReport,
    ) -> GameResultOutcome:
        """
        Score a finished game and apply everything it earns as one write.

        Merges the category record, awards points, advances the streak,
        unlocks achievements (with their points) and badges, and folds the
        game into the current week's stats.
        """
        category = parse_game_type(game_type)
        points_awarded = self.points_engine.calculate_game_points(result)
        now = self.clock()

        def mutate(progress: Progress) -> GameResultOutcome:
            previous = progress.game_records().get(category, GameTypeProgress())
            completed = previous.completed + 1
            metrics = parse_game_metrics(category, {
                "completed": 1,
                "total": 1,
                "best_score": result.score,
                "average_score": round(
                    (previous.average_score * previous.completed + result.score) / completed, 2
                ),
                "accuracy": result.accuracy,
                "time_spent": previous.time_spent + result.time_spent,
                "last_played": now,
            })
            merged = self.aggregator.apply(progress, metrics, now)

            leveled_up = self._grant_points(progress, points_awarded, now)

            context = GameContext(
                game_type=category,
                result=result,
                record=merged,
                streak=progress.streak,
                level=progress.level,
            )

            unlocked_achievements: List[AchievementRecord] = []
            pending = self.points_engine.earned_achievements(context)
            while pending:
                for achievement_id in pending:
                    if progress.find_achievement(achievement_id) is not None:
                        continue
                    definition = get_achievement(achievement_id)
                    record = AchievementRecord(id=definition.id, points=definition.points, unlocked_at=now)
                    progress.add_achievement(record)
                    unlocked_achievements.append(record)
                    leveled_up = self._grant_points(progress, definition.points, now) or leveled_up
                # Achievement points can cross a level threshold of their own
                pending = [
                    achievement_id
                    for achievement_id in self.points_engine.level_achievements(progress.level)
                    if progress.find_achievement(achievement_id) is None
                ]

            context = GameContext(
                game_type=category,
                result=result,
                record=merged,
                streak=progress.streak,
                level=progress.level,
            )
            unlocked_badges: List[BadgeRecord] = []
            for badge_id in self.badge_engine.earned_badges(context):
                if progress.find_badge(badge_id) is None:
                    record = BadgeRecord(id=badge_id, unlocked_at=now)
                    progress.add_badge(record)
                    unlocked_badges.append(record)

            achievement_points = sum(a.points for a in unlocked_achievements)
            self.weekly_roller.apply(progress, WeeklyStatEntry(
                week=week_key(streaks.activity_date(now)),
                points=points_awarded + achievement_points,
                games_played=1,
                time_spent=result.time_spent,
                accuracy=result.accuracy,
                streak=progress.streak.current,
            ))

            return GameResultOutcome(
                game_type=category.value,
                points_awarded=points_awarded,
                new_points=progress.points,
                new_level=progress.level,
                leveled_up=leveled_up,
                unlocked_badges=unlocked_badges,
                unlocked_achievements=unlocked_achievements,
                achievement_points=achievement_points,
                game_progress=merged,
                streak=progress.streak,
            )

        outcome = await self.repository.atomic_update(user_id, mutate, operation="record_game_result")
        logger.info(
            "Game result recorded",
            user_id=user_id,
            game_type=category.value,
            points_awarded=outcome.points_awarded,
            achievements=[a.id for a in outcome.unlocked_achievements],
            badges=[b.id for b in outcome.unlocked_badges],
        )
        return outcome

    def _grant_points(self, progress: Progress, amount: int, now: datetime) -> bool:
        """Shared add-points path. Returns True on a level up."""
        current = progress.points or 0
        if current + amount > settings.MAX_POINTS_TOTAL:
            raise PointsLimitReached(current, amount, settings.MAX_POINTS_TOTAL, user_id=progress.user_id)
        progress.points = current + amount
        progress.streak = streaks.advance(progress.streak, now)
        return leveling.apply_level(progress)
