"""
Level derivation.

Levels are flat: every POINTS_PER_LEVEL points is one level, starting at 1.
A stored level is only ever raised, never lowered.
"""

from typing import TYPE_CHECKING, Optional

from app.core.config import settings
from app.schemas.progress import LevelInfo

if TYPE_CHECKING:
    from app.models.progress import Progress


def level_for(points: int, points_per_level: Optional[int] = None) -> int:
    """Level for a point total: floor(points / 100) + 1, never below 1."""
    per_level = points_per_level or settings.POINTS_PER_LEVEL
    return max(1, points // per_level + 1)


def apply_level(progress: "Progress") -> bool:
    """Recompute ``progress.level`` from its points. True only on a level up."""
    new_level = level_for(progress.points)
    if new_level > (progress.level or 1):
        progress.level = new_level
        return True
    return False


def level_progress(points: int, level: Optional[int] = None) -> LevelInfo:
    """How far a learner is through their current level."""
    per_level = settings.POINTS_PER_LEVEL
    current = level or level_for(points)
    floor_points = (current - 1) * per_level
    next_points = current * per_level

    points_into_level = max(0, points - floor_points)
    percent = points_into_level / per_level * 100

    return LevelInfo(
        current=current,
        next=current + 1,
        points_into_level=points_into_level,
        points_to_next=max(0, next_points - points),
        percent=round(min(100.0, max(0.0, percent)), 2),
    )
