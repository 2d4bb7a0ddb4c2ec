"""Progress tracking endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.core.dependencies import ensure_parent_of, get_current_user, get_progress_service
from app.schemas.games import GameTypeProgress
from app.schemas.progress import (
    AchievementUnlockResult,
    AddPointsRequest,
    BadgeUnlockResult,
    GameProgressUpdateRequest,
    LeaderboardEntry,
    PointsResult,
    ProgressResponse,
    ProgressSummary,
    UnlockAchievementRequest,
    UnlockBadgeRequest,
    WeeklyStatEntry,
)
from app.services.progress_service import ProgressService, to_response

router = APIRouter()


@router.get("", response_model=ProgressResponse)
async def get_my_progress(
    current_user: dict = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service)
):
    """Get the caller's progress, creating it on first access."""
    progress = await service.get_progress(current_user["user_id"])
    return to_response(progress)


@router.post("/points", response_model=PointsResult)
async def add_points(
    request: AddPointsRequest,
    current_user: dict = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service)
):
    return await service.add_points(current_user["user_id"], request.points, request.reason)


@router.post("/badges", response_model=BadgeUnlockResult)
async def unlock_badge(
    request: UnlockBadgeRequest,
    current_user: dict = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service)
):
    return await service.unlock_badge(current_user["user_id"], request.badge_id)


@router.post("/achievements", response_model=AchievementUnlockResult)
async def unlock_achievement(
    request: UnlockAchievementRequest,
    current_user: dict = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service)
):
    return await service.unlock_achievement(current_user["user_id"], request.achievement_id)


@router.put("/game", response_model=GameTypeProgress)
async def update_game_progress(
    request: GameProgressUpdateRequest,
    current_user: dict = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service)
):
    """Merge metrics for one game category."""
    return await service.update_game_progress(current_user["user_id"], request.game_type, request.data)


@router.post("/weekly-stats", response_model=List[WeeklyStatEntry])
async def record_weekly_stats(
    entry: WeeklyStatEntry,
    current_user: dict = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service)
):
    return await service.record_weekly_stats(current_user["user_id"], entry)


@router.get("/summary", response_model=ProgressSummary)
async def get_summary(
    current_user: dict = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service)
):
    return await service.summary(current_user["user_id"])


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    limit: int = Query(10, description="Number of learners to return"),
    game_type: Optional[str] = Query(None, description="Only learners who have played this category"),
    service: ProgressService = Depends(get_progress_service)
):
    """Public leaderboard snapshot."""
    return await service.leaderboard(limit, game_type)


@router.get("/child/{child_id}", response_model=ProgressResponse)
async def get_child_progress(
    child_id: str,
    current_user: dict = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service)
):
    """Get a child's progress. The caller's token must list the child."""
    ensure_parent_of(current_user, child_id)
    progress = await service.get_child_progress(current_user["user_id"], child_id)
    return to_response(progress)
