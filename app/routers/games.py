"""Game result endpoints."""

from fastapi import APIRouter, Depends

from app.core.dependencies import get_current_user, get_progress_service
from app.schemas.games import GameResultReport, GameTypeProgress
from app.schemas.progress import GameResultOutcome
from app.services.progress_service import ProgressService

router = APIRouter()


@router.post("/{game_type}/result", response_model=GameResultOutcome)
async def save_game_result(
    game_type: str,
    result: GameResultReport,
    current_user: dict = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service)
):
    """Score a finished game and apply the points, unlocks and stats it earns."""
    return await service.record_game_result(current_user["user_id"], game_type, result)


@router.get("/{game_type}/stats", response_model=GameTypeProgress)
async def get_game_stats(
    game_type: str,
    current_user: dict = Depends(get_current_user),
    service: ProgressService = Depends(get_progress_service)
):
    """The caller's running record for one game category."""
    return await service.game_stats(current_user["user_id"], game_type)
