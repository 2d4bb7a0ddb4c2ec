"""Badge criteria evaluation."""

from typing import Callable, Dict, List

from app.gamification.catalog import BADGE_CATALOG
from app.gamification.points_engine import GameContext
from app.schemas.games import GameType

LETTERS_IN_ALPHABET = 26
SIGHT_WORDS_TO_MASTER = 50
READING_GAMES_FOR_MASTERY = 10

BadgeCriterion = Callable[[GameContext], bool]


def _first_game(ctx: GameContext) -> bool:
    return ctx.record.completed >= 1


def _reading_master(ctx: GameContext) -> bool:
    return ctx.game_type is GameType.READING and ctx.record.completed >= READING_GAMES_FOR_MASTERY


def _writing_expert(ctx: GameContext) -> bool:
    return ctx.game_type is GameType.WRITING and ctx.record.completed >= LETTERS_IN_ALPHABET


def _sight_word_champion(ctx: GameContext) -> bool:
    return ctx.game_type is GameType.SIGHT_WORDS and ctx.record.completed >= SIGHT_WORDS_TO_MASTER


def _comprehension_genius(ctx: GameContext) -> bool:
    return ctx.game_type is GameType.COMPREHENSION and ctx.result.accuracy >= 100


def _streak_master(ctx: GameContext) -> bool:
    return ctx.streak.current >= 7


def _level_up(ctx: GameContext) -> bool:
    return ctx.level >= 5


BADGE_CRITERIA: Dict[str, BadgeCriterion] = {
    "first-game": _first_game,
    "reading-master": _reading_master,
    "writing-expert": _writing_expert,
    "sight-word-champion": _sight_word_champion,
    "comprehension-genius": _comprehension_genius,
    "streak-master": _streak_master,
    "level-up": _level_up,
}


class BadgeEngine:
    """Engine for checking which catalog badges a game result earns."""

    def earned_badges(self, context: GameContext) -> List[str]:
        return [
            badge_id for badge_id in BADGE_CATALOG
            if badge_id in BADGE_CRITERIA and BADGE_CRITERIA[badge_id](context)
        ]
