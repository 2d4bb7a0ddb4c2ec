"""
Progress storage with optimistic concurrency.

Every write goes through ``atomic_update``. Each attempt runs in a fresh
session: it loads the learner's row (or stages a default one), applies
the caller's mutation, and commits. The row's ``version`` column turns the
commit into ``UPDATE ... WHERE version = <seen>``. A concurrent writer
makes that raise ``StaleDataError``. A concurrent first insert violates
the unique ``user_id`` and raises ``IntegrityError``. Either way the
attempt is discarded and the whole load-mutate-commit cycle reruns
against fresh state. Any other constraint violation is a ``StorageError``
and is not retried.

Mutations must therefore depend only on the loaded aggregate and their
own arguments.
"""

import asyncio
import random
from typing import Callable, List, Optional, Tuple, TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import ConcurrencyConflict, StorageError
from app.models.progress import Progress
from app.schemas.games import GameType

logger = structlog.get_logger()

T = TypeVar("T")

JITTER = 0.1  # 10% random jitter


def calculate_backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    """
    Exponential backoff with jitter for the given attempt (1-indexed).

    Example with base_delay=0.01:
        Attempt 1: ~0.01s
        Attempt 2: ~0.02s
        Attempt 3: ~0.04s
    """
    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
    jitter_amount = random.uniform(-JITTER * delay, JITTER * delay)
    return max(delay + jitter_amount, 0.0)


class ProgressRepository:
    """Owns the per-learner Progress aggregate and its conditional writes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.max_attempts = max_attempts or settings.WRITE_RETRY_ATTEMPTS
        self.base_delay = settings.WRITE_RETRY_BASE_DELAY if base_delay is None else base_delay
        self.max_delay = settings.WRITE_RETRY_MAX_DELAY if max_delay is None else max_delay

    async def atomic_update(
        self,
        user_id: str,
        mutate: Callable[[Progress], T],
        operation: str = "update",
    ) -> T:
        """
        Apply ``mutate`` to the learner's aggregate as one conditional write.

        Creates the aggregate with defaults if the learner has none yet.
        Returns whatever ``mutate`` returns from the attempt that committed.

        Raises:
            ConcurrencyConflict: every attempt lost to a concurrent writer
            StorageError: a constraint violation other than a lost first insert
            ProgressServiceError: anything ``mutate`` raises, unretried
        """
        for attempt in range(1, self.max_attempts + 1):
            created = False
            try:
                async with self.session_factory() as session:
                    async with session.begin():
                        progress, created = await self._load_or_stage(session, user_id)
                        result = mutate(progress)
                return result

            except (StaleDataError, IntegrityError) as e:
                if isinstance(e, IntegrityError) and not await self._lost_insert_race(user_id, created):
                    raise StorageError(
                        message=f"Constraint violation during {operation}",
                        user_id=user_id,
                        operation=operation,
                        context={"attempt": attempt, "error": str(e.orig)},
                        cause=e,
                    )

                if attempt == self.max_attempts:
                    raise ConcurrencyConflict(
                        message=f"Gave up on {operation} after {attempt} conflicting attempts",
                        attempts=attempt,
                        user_id=user_id,
                        operation=operation,
                        cause=e,
                    )

                backoff = calculate_backoff(attempt, self.base_delay, self.max_delay)
                logger.info(
                    "Write conflict, retrying",
                    user_id=user_id,
                    operation=operation,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    backoff=round(backoff, 4),
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(backoff)

        raise ConcurrencyConflict(attempts=self.max_attempts, user_id=user_id, operation=operation)

    async def get_or_create(self, user_id: str) -> Progress:
        """Load the learner's aggregate, creating it with defaults on first access."""
        return await self.atomic_update(user_id, lambda progress: progress, operation="get_or_create")

    async def get(self, user_id: str) -> Optional[Progress]:
        """Load the learner's aggregate without creating it."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Progress).where(Progress.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def top(self, limit: int, game_type: Optional[GameType] = None) -> List[Progress]:
        """Snapshot of the highest-scoring learners, deterministic on ties."""
        query = select(Progress).order_by(
            Progress.points.desc(),
            Progress.level.desc(),
            Progress.user_id.asc(),
        )

        if game_type is not None:
            query = query.where(
                Progress.game_progress[(game_type.value, "completed")].as_integer() > 0
            )

        async with self.session_factory() as session:
            result = await session.execute(query.limit(limit))
            return list(result.scalars().all())

    async def _lost_insert_race(self, user_id: str, created: bool) -> bool:
        """
        An IntegrityError only means another writer got there first when this
        attempt was inserting the row and a row for the learner now exists.
        """
        if not created:
            return False
        return await self.get(user_id) is not None

    async def _load_or_stage(self, session: AsyncSession, user_id: str) -> Tuple[Progress, bool]:
        result = await session.execute(
            select(Progress).where(Progress.user_id == user_id)
        )
        progress = result.scalar_one_or_none()

        if progress is None:
            progress = Progress.initial(user_id)
            session.add(progress)
            logger.info("Creating progress", user_id=user_id)
            return progress, True

        return progress, False
