"""Async database engine and session management."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
import structlog

from app.core.config import settings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    pass


def create_engine(database_url: str = None) -> AsyncEngine:
    """Create an async engine, applying pool sizing where the driver pools."""
    url = database_url or settings.DATABASE_URL
    options = {"echo": settings.DATABASE_ECHO}

    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            pool_pre_ping=True,
        )

    return create_async_engine(url, **options)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_engine()
AsyncSessionLocal = create_session_factory(engine)


async def init_db(bind: AsyncEngine = None) -> None:
    """Create tables for all registered models."""
    # Register models on Base.metadata
    import app.models  # noqa: F401

    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized", url=target.url.render_as_string(hide_password=True))


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session for the duration of a request."""
    async with AsyncSessionLocal() as session:
        yield session
