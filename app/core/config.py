"""Service settings, read from the environment and ``.env``."""

import json
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All tunables for the progress service. Names match their environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Service
    APP_NAME: str = "Dax Progress Service"
    APP_VERSION: str = "1.0.0"
    SERVICE_NAME: str = "progress-service"
    SERVICE_PORT: int = 8004
    ENVIRONMENT: str = Field(default="development", pattern="^(development|testing|staging|production)$")

    # Storage: aiosqlite locally, asyncpg in deployed environments
    DATABASE_URL: str = "sqlite+aiosqlite:///./dax_progress.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    DATABASE_ECHO: bool = False

    # Optimistic write retries
    WRITE_RETRY_ATTEMPTS: int = Field(default=5, ge=1)
    WRITE_RETRY_BASE_DELAY: float = Field(default=0.01, ge=0)  # seconds
    WRITE_RETRY_MAX_DELAY: float = Field(default=0.2, ge=0)  # seconds

    # Cache (falls back to in-process memory when Redis is unreachable)
    REDIS_URL: str = "redis://localhost:6379"
    CACHE_TTL: int = 3600
    LEADERBOARD_SIZE: int = Field(default=100, ge=1)
    LEADERBOARD_CACHE_TTL: int = Field(default=30, ge=0)  # seconds

    # Token verification; tokens are issued by the auth service
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"

    # Game result scoring
    POINTS_PER_SCORE_UNIT: int = 10
    POINTS_ACCURACY_EXCELLENT: int = 50
    POINTS_ACCURACY_GOOD: int = 25
    ACCURACY_EXCELLENT_THRESHOLD: float = 90.0
    ACCURACY_GOOD_THRESHOLD: float = 80.0
    POINTS_SPEED_BONUS: int = 20
    SPEED_BONUS_MAX_MINUTES: float = 5.0
    POINTS_HINT_PENALTY: int = 5
    POINTS_MISTAKE_PENALTY: int = 2
    POINTS_MINIMUM_AWARD: int = 10

    # Bounds on stored point values; the points column is a signed 64-bit integer
    MAX_POINTS_AWARD: int = Field(default=1_000_000, ge=1)
    MAX_POINTS_TOTAL: int = Field(default=10**15, ge=1, le=2**63 - 1)

    # Progression
    POINTS_PER_LEVEL: int = Field(default=100, gt=0)
    WEEKLY_STATS_WINDOW: int = Field(default=12, gt=0)

    # Observability
    LOG_LEVEL: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    LOG_FORMAT: str = Field(default="json", pattern="^(json|plain)$")
    ENABLE_METRICS: bool = True

    CORS_ORIGINS: List[str] = Field(default_factory=list)

    @field_validator("DATABASE_URL")
    @classmethod
    def use_async_driver(cls, v: str) -> str:
        # Platform-provided Postgres URLs name the sync driver
        for prefix in ("postgres://", "postgresql://"):
            if v.startswith(prefix):
                return "postgresql+asyncpg://" + v[len(prefix):]
        return v

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, v):
        """Accept a JSON list or a comma-separated string."""
        if not isinstance(v, str):
            return v
        try:
            return json.loads(v)
        except json.JSONDecodeError:
            return [origin.strip() for origin in v.split(",") if origin.strip()]

    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
