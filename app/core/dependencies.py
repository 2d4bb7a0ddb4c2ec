"""Shared dependencies for Progress Service."""

from typing import List, Optional
from aiocache import Cache
import structlog
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import settings
from app.core.database import AsyncSessionLocal
from app.core.exceptions import AuthorizationError
from app.repositories.progress_repository import ProgressRepository
from app.services.progress_service import ProgressService

logger = structlog.get_logger()

# Global instances
_redis_cache: Optional[Cache] = None
_progress_service: Optional[ProgressService] = None

# Security
security = HTTPBearer(auto_error=False)


async def get_redis_cache():
    """Get Redis cache instance."""
    global _redis_cache

    if _redis_cache is None:
        try:
            _redis_cache = Cache.from_url(settings.REDIS_URL)
            await _redis_cache.exists("test")  # Test connection
            logger.info("Redis cache connection established")
        except Exception as e:
            logger.warning("Redis cache not available, using in-memory cache", error=str(e))
            # Fallback to in-memory cache
            _redis_cache = Cache(Cache.MEMORY)

    return _redis_cache


async def get_progress_service() -> ProgressService:
    """Get the process-wide progress service."""
    global _progress_service

    if _progress_service is None:
        _progress_service = ProgressService(
            repository=ProgressRepository(AsyncSessionLocal),
            cache=await get_redis_cache(),
        )

    return _progress_service


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    """Get current user from JWT token."""
    if credentials is None:
        raise _unauthorized()

    token = credentials.credentials

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise _unauthorized()

    user_id: str = payload.get("sub")
    if user_id is None:
        raise _unauthorized()

    children: List[str] = [str(child) for child in payload.get("children") or []]
    return {
        "user_id": str(user_id),
        "role": payload.get("role", "student"),
        "children": children,
    }


def ensure_parent_of(current_user: dict, child_id: str) -> None:
    """Raise AuthorizationError unless the caller's token lists ``child_id``."""
    if child_id not in current_user.get("children", []):
        raise AuthorizationError(
            message=f"User {current_user['user_id']} is not a parent of {child_id}",
            resource="child progress",
            user_id=current_user["user_id"],
            operation="get_child_progress",
        )
