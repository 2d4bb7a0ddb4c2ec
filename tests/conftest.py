"""Global test fixtures for the progress service tests"""
import os
import tempfile
from datetime import datetime, timedelta, timezone

# Settings are read once at import time, so the environment must be in place first
_TEST_DIR = tempfile.mkdtemp(prefix="dax-progress-tests-")
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("ENABLE_METRICS", "false")
os.environ.setdefault("LOG_FORMAT", "plain")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DIR}/app.db")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from jose import jwt  # noqa: E402

from app.core.config import settings  # noqa: E402
from app.core.database import create_engine, create_session_factory, init_db  # noqa: E402
from app.repositories.progress_repository import ProgressRepository  # noqa: E402
from app.services.progress_service import ProgressService  # noqa: E402


# ============================================================================
# Clock
# ============================================================================

class FrozenClock:
    """Deterministic clock the service reads instead of the wall clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Monday 2 March 2026, ISO week 2026-W10"""
    return FrozenClock(datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc))


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh file-backed SQLite database per test"""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'progress.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def repository(session_factory):
    # Generous budget so concurrency tests settle rather than give up
    return ProgressRepository(session_factory, max_attempts=25, base_delay=0.001, max_delay=0.02)


@pytest.fixture
def service(repository, clock):
    return ProgressService(repository, clock=clock)


# ============================================================================
# API Fixtures
# ============================================================================

def make_token(user_id: str, **claims) -> str:
    """Sign a token the way the auth service would"""
    return jwt.encode({"sub": user_id, **claims}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "learner-1", **claims):
        return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}
    return _headers


@pytest_asyncio.fixture
async def client(service):
    """HTTP client against the app, wired to the per-test service"""
    from app.core.dependencies import get_progress_service
    from app.main import app

    app.dependency_overrides[get_progress_service] = lambda: service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
