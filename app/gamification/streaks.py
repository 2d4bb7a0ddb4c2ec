"""
Day-based learning streaks.

Gaps are measured in UTC calendar days, not elapsed time, so an activity
at 23:59 followed by one at 00:01 counts as consecutive days.

Gap rules:
- no prior activity: streak starts at 1
- same day: unchanged
- next day: +1
- anything longer: back to 1
"""

from datetime import date, datetime, timezone
from typing import Union

import structlog

from app.schemas.progress import Streak

logger = structlog.get_logger()


def activity_date(now: Union[datetime, date]) -> date:
    """UTC calendar date for a timestamp. Naive datetimes are taken as UTC."""
    if isinstance(now, datetime):
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.date()
    return now


def advance(streak: Streak, now: Union[datetime, date]) -> Streak:
    """Return the streak after an activity at ``now``."""
    today = activity_date(now)
    current = streak.current

    if streak.last_activity is None:
        current = 1
    else:
        gap = (today - streak.last_activity).days
        if gap == 1:
            current += 1
        elif gap > 1:
            logger.debug("Streak broken", previous=current, gap_days=gap)
            current = 1

    return Streak(
        current=current,
        longest=max(streak.longest, current),
        last_activity=today,
    )
