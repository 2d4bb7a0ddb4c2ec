"""
Static badge and achievement catalogs.

Definitions are immutable and looked up by id. Learner records only keep
the id, the unlock time and, for achievements, the points granted at
unlock time, so catalog edits never rewrite history.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping

from app.core.exceptions import UnknownCatalogEntry


class BadgeCategory(str, Enum):
    """Badge categories."""
    READING = "reading"
    WRITING = "writing"
    SIGHT_WORDS = "sight-words"
    COMPREHENSION = "comprehension"
    GENERAL = "general"


class Rarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    rarity: Rarity = Rarity.COMMON

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["category"] = self.category.value
        data["rarity"] = self.rarity.value
        return data


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    name: str
    description: str
    points: int
    category: BadgeCategory

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["category"] = self.category.value
        return data


def _registry(*entries) -> Mapping[str, Any]:
    return MappingProxyType({entry.id: entry for entry in entries})


BADGE_CATALOG: Mapping[str, BadgeDefinition] = _registry(
    BadgeDefinition("first-game", "First Steps", "Completed your first game",
                    "🎮", BadgeCategory.GENERAL, Rarity.COMMON),
    BadgeDefinition("reading-master", "Reading Master", "Completed 10 reading games",
                    "📚", BadgeCategory.READING, Rarity.RARE),
    BadgeDefinition("writing-expert", "Writing Expert", "Practiced all letters",
                    "✏️", BadgeCategory.WRITING, Rarity.EPIC),
    BadgeDefinition("sight-word-champion", "Sight Word Champion", "Mastered 50 sight words",
                    "👁️", BadgeCategory.SIGHT_WORDS, Rarity.LEGENDARY),
    BadgeDefinition("comprehension-genius", "Comprehension Genius", "Perfect score on comprehension",
                    "🧠", BadgeCategory.COMPREHENSION, Rarity.EPIC),
    BadgeDefinition("streak-master", "Streak Master", "7-day learning streak",
                    "🔥", BadgeCategory.GENERAL, Rarity.RARE),
    BadgeDefinition("level-up", "Level Up!", "Reached level 5",
                    "⭐", BadgeCategory.GENERAL, Rarity.COMMON),
)

ACHIEVEMENT_CATALOG: Mapping[str, AchievementDefinition] = _registry(
    AchievementDefinition("welcome", "Welcome to Dax", "Started your learning journey",
                          50, BadgeCategory.GENERAL),
    AchievementDefinition("first-reading", "First Reader", "Completed your first reading game",
                          25, BadgeCategory.READING),
    AchievementDefinition("first-writing", "First Writer", "Practiced your first letter",
                          25, BadgeCategory.WRITING),
    AchievementDefinition("sight-word-starter", "Sight Word Starter", "Learned your first sight word",
                          25, BadgeCategory.SIGHT_WORDS),
    AchievementDefinition("comprehension-beginner", "Comprehension Beginner",
                          "Completed your first comprehension exercise", 25, BadgeCategory.COMPREHENSION),
    AchievementDefinition("streak-3", "3-Day Streak", "Maintained a 3-day learning streak",
                          50, BadgeCategory.GENERAL),
    AchievementDefinition("streak-7", "Week Warrior", "Maintained a 7-day learning streak",
                          100, BadgeCategory.GENERAL),
    AchievementDefinition("level-5", "Level 5 Achiever", "Reached level 5",
                          75, BadgeCategory.GENERAL),
    AchievementDefinition("perfect-score", "Perfect Score", "Achieved 100% accuracy in a game",
                          100, BadgeCategory.GENERAL),
)


def get_badge(badge_id: str) -> BadgeDefinition:
    try:
        return BADGE_CATALOG[badge_id]
    except KeyError:
        raise UnknownCatalogEntry("badge", badge_id)


def get_achievement(achievement_id: str) -> AchievementDefinition:
    try:
        return ACHIEVEMENT_CATALOG[achievement_id]
    except KeyError:
        raise UnknownCatalogEntry("achievement", achievement_id)
