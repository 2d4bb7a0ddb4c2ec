"""Points calculation and achievement detection for game results."""

from dataclasses import dataclass
from typing import List

from app.core.config import settings
from app.gamification.catalog import ACHIEVEMENT_CATALOG
from app.schemas.games import GameResultReport, GameType, GameTypeProgress
from app.schemas.progress import Streak

FIRST_COMPLETION_ACHIEVEMENTS = {
    GameType.READING: "first-reading",
    GameType.WRITING: "first-writing",
    GameType.SIGHT_WORDS: "sight-word-starter",
    GameType.COMPREHENSION: "comprehension-beginner",
}

STREAK_ACHIEVEMENTS = (
    (3, "streak-3"),
    (7, "streak-7"),
)

LEVEL_ACHIEVEMENTS = (
    (5, "level-5"),
)


@dataclass(frozen=True)
class GameContext:
    """Learner state right after a game result has been merged."""
    game_type: GameType
    result: GameResultReport
    record: GameTypeProgress
    streak: Streak
    level: int


class PointsEngine:
    """Engine for calculating game points and detecting earned achievements."""

    def calculate_game_points(self, result: GameResultReport) -> int:
        """Points for one game: score-based, with accuracy and speed bonuses and hint/mistake penalties."""
        points = int(result.score * settings.POINTS_PER_SCORE_UNIT)

        # Accuracy bonus
        if result.accuracy >= settings.ACCURACY_EXCELLENT_THRESHOLD:
            points += settings.POINTS_ACCURACY_EXCELLENT
        elif result.accuracy >= settings.ACCURACY_GOOD_THRESHOLD:
            points += settings.POINTS_ACCURACY_GOOD

        # Speed bonus
        if 0 < result.time_spent < settings.SPEED_BONUS_MAX_MINUTES:
            points += settings.POINTS_SPEED_BONUS

        if result.hints_used > 0:
            points = max(0, points - result.hints_used * settings.POINTS_HINT_PENALTY)

        if result.mistakes > 0:
            points = max(0, points - result.mistakes * settings.POINTS_MISTAKE_PENALTY)

        return max(settings.POINTS_MINIMUM_AWARD, points)

    def earned_achievements(self, context: GameContext) -> List[str]:
        """Catalog achievement ids whose criteria the context meets, in catalog order."""
        earned = set()

        if context.result.accuracy >= settings.ACCURACY_EXCELLENT_THRESHOLD or context.result.score == 100:
            earned.add("perfect-score")

        if context.record.completed >= 1:
            earned.add(FIRST_COMPLETION_ACHIEVEMENTS[context.game_type])

        for days, achievement_id in STREAK_ACHIEVEMENTS:
            if context.streak.current >= days:
                earned.add(achievement_id)

        earned.update(self.level_achievements(context.level))

        return [achievement_id for achievement_id in ACHIEVEMENT_CATALOG if achievement_id in earned]

    def level_achievements(self, level: int) -> List[str]:
        return [achievement_id for threshold, achievement_id in LEVEL_ACHIEVEMENTS if level >= threshold]
