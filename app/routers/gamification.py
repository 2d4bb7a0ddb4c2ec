"""Gamification catalog endpoints."""

from typing import Any, Dict, List

from fastapi import APIRouter

from app.gamification.catalog import ACHIEVEMENT_CATALOG, BADGE_CATALOG

router = APIRouter()


@router.get("/badges", response_model=List[Dict[str, Any]])
async def list_badges():
    """All badges that can be unlocked."""
    return [badge.to_dict() for badge in BADGE_CATALOG.values()]


@router.get("/achievements", response_model=List[Dict[str, Any]])
async def list_achievements():
    """All achievements and the points each grants."""
    return [achievement.to_dict() for achievement in ACHIEVEMENT_CATALOG.values()]
