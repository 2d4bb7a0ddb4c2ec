"""Bounded rolling window of per-week statistics."""

from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional, Sequence, Union

from app.core.config import settings
from app.schemas.progress import WeeklyStatEntry

if TYPE_CHECKING:
    from app.models.progress import Progress


def week_key(day: Union[date, datetime]) -> str:
    """ISO year-week key, e.g. ``2026-W42``. Sorts chronologically as a string."""
    if isinstance(day, datetime):
        day = day.date()
    year, week, _ = day.isocalendar()
    return f"{year:04d}-W{week:02d}"


class WeeklyStatsRoller:
    """Upserts weekly entries and keeps only the most recent ``window`` weeks."""

    def __init__(self, window: Optional[int] = None):
        self.window = window or settings.WEEKLY_STATS_WINDOW

    def merge(self, existing: WeeklyStatEntry, entry: WeeklyStatEntry) -> WeeklyStatEntry:
        """Additive fields accumulate; accuracy and streak take the latest snapshot."""
        return WeeklyStatEntry(
            week=existing.week,
            points=existing.points + entry.points,
            games_played=existing.games_played + entry.games_played,
            time_spent=existing.time_spent + entry.time_spent,
            accuracy=entry.accuracy,
            streak=entry.streak,
        )

    def record(self, entries: Sequence[WeeklyStatEntry], entry: WeeklyStatEntry) -> List[WeeklyStatEntry]:
        by_week = {e.week: e for e in entries}

        if entry.week in by_week:
            by_week[entry.week] = self.merge(by_week[entry.week], entry)
        else:
            by_week[entry.week] = entry

        ordered = sorted(by_week.values(), key=lambda e: e.week)
        # Oldest weeks drop off the front
        return ordered[-self.window:]

    def apply(self, progress: "Progress", entry: WeeklyStatEntry) -> List[WeeklyStatEntry]:
        window = self.record(progress.weekly_entries, entry)
        progress.weekly_stats = [e.model_dump(mode="json") for e in window]
        return window
