"""Tests for the progress service against a real SQLite store (app/services/progress_service.py)"""
import asyncio

import pytest
from aiocache import Cache
from pydantic import ValidationError as SchemaValidationError

from app.core.config import settings
from app.core.exceptions import (
    InvalidAmount,
    InvalidGameType,
    NotFoundError,
    PointsLimitReached,
    UnknownCatalogEntry,
    ValidationError,
)
from app.schemas.games import GameResultReport
from app.schemas.progress import WeeklyStatEntry
from app.services.progress_service import ProgressService


# ============================================================================
# Reads
# ============================================================================

@pytest.mark.asyncio
async def test_get_progress_creates_defaults(service):
    progress = await service.get_progress("learner-1")

    assert progress.user_id == "learner-1"
    assert progress.points == 0
    assert progress.level == 1
    assert progress.badges == []
    assert progress.streak.current == 0
    assert progress.game_progress == {}


@pytest.mark.asyncio
async def test_get_progress_is_stable_across_calls(service):
    first = await service.get_progress("learner-1")
    second = await service.get_progress("learner-1")

    assert first.id == second.id


@pytest.mark.asyncio
async def test_summary(service):
    await service.add_points("learner-1", 150)
    await service.unlock_badge("learner-1", "first-game")

    summary = await service.summary("learner-1")

    assert summary.points == 150
    assert summary.level == 2
    assert summary.badges == 1
    assert summary.achievements == 0
    assert summary.current_streak == 1
    assert summary.level_info.percent == 50.0


@pytest.mark.asyncio
async def test_child_progress_is_not_auto_created(service, repository):
    with pytest.raises(NotFoundError):
        await service.get_child_progress("parent-1", "kid-1")

    assert await repository.get("kid-1") is None


@pytest.mark.asyncio
async def test_child_progress(service):
    await service.add_points("kid-1", 40)

    progress = await service.get_child_progress("parent-1", "kid-1")
    assert progress.points == 40


# ============================================================================
# Points
# ============================================================================

@pytest.mark.asyncio
async def test_points_accumulate_and_level_up(service):
    first = await service.add_points("learner-1", 120, "reading")

    assert first.new_points == 120
    assert first.new_level == 2
    assert first.leveled_up is True
    assert first.reason == "reading"

    second = await service.add_points("learner-1", 30)

    assert second.new_points == 150
    assert second.new_level == 2
    assert second.leveled_up is False


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -5, 2.5, True, "10", None])
async def test_add_points_rejects_invalid_amount(service, amount):
    with pytest.raises(InvalidAmount):
        await service.add_points("learner-1", amount)

    progress = await service.get_progress("learner-1")
    assert progress.points == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [10**20, 2**63, settings.MAX_POINTS_AWARD + 1])
async def test_add_points_rejects_oversized_amount(service, amount):
    with pytest.raises(InvalidAmount) as exc_info:
        await service.add_points("learner-1", amount)

    assert exc_info.value.limit == settings.MAX_POINTS_AWARD
    assert (await service.get_progress("learner-1")).points == 0


@pytest.mark.asyncio
async def test_add_points_accepts_the_award_limit(service):
    result = await service.add_points("learner-1", settings.MAX_POINTS_AWARD)
    assert result.new_points == settings.MAX_POINTS_AWARD


@pytest.mark.asyncio
async def test_point_total_is_capped(service, monkeypatch):
    monkeypatch.setattr(settings, "MAX_POINTS_TOTAL", 150)
    await service.add_points("learner-1", 100)

    with pytest.raises(PointsLimitReached) as exc_info:
        await service.add_points("learner-1", 100)

    assert exc_info.value.field == "points"
    assert exc_info.value.current == 100
    assert (await service.get_progress("learner-1")).points == 100


@pytest.mark.asyncio
async def test_add_points_advances_streak(service, clock):
    await service.add_points("learner-1", 10)
    clock.advance(days=1)
    await service.add_points("learner-1", 10)
    clock.advance(hours=3)
    await service.add_points("learner-1", 10)

    progress = await service.get_progress("learner-1")
    assert progress.streak.current == 2
    assert progress.streak.longest == 2


@pytest.mark.asyncio
async def test_streak_scenario(service, clock):
    await service.add_points("learner-1", 10)
    assert (await service.get_progress("learner-1")).streak.current == 1

    clock.advance(days=1)
    await service.add_points("learner-1", 10)
    assert (await service.get_progress("learner-1")).streak.current == 2

    clock.advance(days=3)
    await service.add_points("learner-1", 10)
    streak = (await service.get_progress("learner-1")).streak
    assert streak.current == 1
    assert streak.longest == 2


@pytest.mark.asyncio
async def test_concurrent_add_points_are_not_lost(service):
    await service.add_points("learner-1", 100)

    await asyncio.gather(
        service.add_points("learner-1", 50),
        service.add_points("learner-1", 50),
    )

    progress = await service.get_progress("learner-1")
    assert progress.points == 200
    assert progress.level == 3


# ============================================================================
# Badges and achievements
# ============================================================================

@pytest.mark.asyncio
async def test_unlock_badge_is_idempotent(service, clock):
    first = await service.unlock_badge("learner-1", "first-game")
    clock.advance(hours=2)
    second = await service.unlock_badge("learner-1", "first-game")

    assert first.newly_unlocked is True
    assert second.newly_unlocked is False
    assert second.badge.unlocked_at == first.badge.unlocked_at

    progress = await service.get_progress("learner-1")
    assert [b.id for b in progress.badge_records] == ["first-game"]


@pytest.mark.asyncio
async def test_unlock_unknown_badge(service):
    with pytest.raises(UnknownCatalogEntry):
        await service.unlock_badge("learner-1", "moon-landing")


@pytest.mark.asyncio
async def test_unlock_achievement_grants_points_once(service):
    first = await service.unlock_achievement("learner-1", "welcome")
    second = await service.unlock_achievement("learner-1", "welcome")

    assert first.newly_unlocked is True
    assert first.points_granted == 50
    assert first.new_points == 50
    assert second.newly_unlocked is False
    assert second.points_granted == 0
    assert second.new_points == 50
    assert second.achievement.unlocked_at == first.achievement.unlocked_at


@pytest.mark.asyncio
async def test_concurrent_achievement_unlocks_grant_once(service):
    results = await asyncio.gather(*[
        service.unlock_achievement("learner-1", "welcome") for _ in range(8)
    ])

    assert sum(r.newly_unlocked for r in results) == 1
    assert sum(r.points_granted for r in results) == 50

    progress = await service.get_progress("learner-1")
    assert progress.points == 50
    assert [a.id for a in progress.achievement_records] == ["welcome"]


@pytest.mark.asyncio
async def test_achievement_points_can_level_up(service):
    await service.add_points("learner-1", 80)

    result = await service.unlock_achievement("learner-1", "streak-7")

    assert result.new_points == 180
    assert result.new_level == 2
    assert result.leveled_up is True


# ============================================================================
# Game progress and weekly stats
# ============================================================================

@pytest.mark.asyncio
async def test_update_game_progress(service):
    await service.update_game_progress("learner-1", "reading", {"completed": 2, "accuracy": 80, "best_score": 7})
    merged = await service.update_game_progress("learner-1", "reading", {"completed": 1, "best_score": 5})

    assert merged.completed == 3
    assert merged.best_score == 7
    assert merged.accuracy == 80

    progress = await service.get_progress("learner-1")
    assert progress.total_games_played == 3
    assert progress.average_accuracy == 80.0
    assert progress.streak.current == 1


@pytest.mark.asyncio
async def test_update_game_progress_rejects_unknown_type(service):
    with pytest.raises(InvalidGameType):
        await service.update_game_progress("learner-1", "chess", {"completed": 1})


@pytest.mark.asyncio
async def test_game_stats(service):
    await service.update_game_progress("learner-1", "reading", {"completed": 2, "best_score": 7})

    stats = await service.game_stats("learner-1", "reading")
    assert stats.completed == 2
    assert stats.best_score == 7

    untouched = await service.game_stats("learner-1", "writing")
    assert untouched.completed == 0
    assert untouched.last_played is None


@pytest.mark.asyncio
async def test_game_stats_rejects_unknown_type(service):
    with pytest.raises(InvalidGameType):
        await service.game_stats("learner-1", "chess")


@pytest.mark.asyncio
async def test_weekly_window_evicts_oldest(service):
    for week in range(1, 14):
        window = await service.record_weekly_stats(
            "learner-1", WeeklyStatEntry(week=f"2026-W{week:02d}", points=week * 10)
        )

    assert len(window) == 12
    assert window[0].week == "2026-W02"

    progress = await service.get_progress("learner-1")
    assert [e.week for e in progress.weekly_entries] == [f"2026-W{week:02d}" for week in range(2, 14)]


# ============================================================================
# Game results
# ============================================================================

@pytest.mark.asyncio
async def test_record_game_result_first_game(service):
    outcome = await service.record_game_result(
        "learner-1", "reading", GameResultReport(score=8, accuracy=95, time_spent=3)
    )

    assert outcome.points_awarded == 150
    assert [a.id for a in outcome.unlocked_achievements] == ["first-reading", "perfect-score"]
    assert outcome.achievement_points == 125
    assert outcome.new_points == 275
    assert outcome.new_level == 3
    assert outcome.leveled_up is True
    assert [b.id for b in outcome.unlocked_badges] == ["first-game"]
    assert outcome.game_progress.completed == 1
    assert outcome.game_progress.best_score == 8
    assert outcome.streak.current == 1

    progress = await service.get_progress("learner-1")
    assert progress.points == 275
    assert progress.total_games_played == 1
    assert progress.weekly_entries[0].week == "2026-W10"
    assert progress.weekly_entries[0].points == 275
    assert progress.weekly_entries[0].games_played == 1


@pytest.mark.asyncio
async def test_record_game_result_accumulates(service):
    await service.record_game_result(
        "learner-1", "reading", GameResultReport(score=8, accuracy=95, time_spent=3)
    )
    outcome = await service.record_game_result(
        "learner-1", "reading", GameResultReport(score=6, accuracy=70, time_spent=10, mistakes=3)
    )

    assert outcome.points_awarded == 54
    assert outcome.unlocked_achievements == []
    assert outcome.unlocked_badges == []
    assert outcome.new_points == 329
    assert outcome.game_progress.completed == 2
    assert outcome.game_progress.total == 2
    assert outcome.game_progress.best_score == 8
    assert outcome.game_progress.average_score == 7.0
    assert outcome.game_progress.accuracy == 70
    assert outcome.game_progress.time_spent == 13

    progress = await service.get_progress("learner-1")
    week = progress.weekly_entries[0]
    assert week.points == 329
    assert week.games_played == 2
    assert week.time_spent == 13
    assert week.accuracy == 70


@pytest.mark.asyncio
async def test_achievement_points_trigger_level_achievement(service):
    await service.add_points("learner-1", 200)

    # 150 for the game puts the learner at 350, the 125 from achievements crosses 400
    outcome = await service.record_game_result(
        "learner-1", "reading", GameResultReport(score=8, accuracy=95, time_spent=3)
    )

    assert [a.id for a in outcome.unlocked_achievements] == ["first-reading", "perfect-score", "level-5"]
    assert outcome.new_points == 550
    assert outcome.new_level == 6
    assert "level-up" in [b.id for b in outcome.unlocked_badges]


@pytest.mark.asyncio
async def test_record_game_result_unknown_type(service):
    with pytest.raises(InvalidGameType):
        await service.record_game_result("learner-1", "chess", GameResultReport(score=1, accuracy=1))


@pytest.mark.parametrize(
    "report",
    [
        {"score": 1e300, "accuracy": 50},
        {"score": 101, "accuracy": 50},
        {"score": float("nan"), "accuracy": 50},
        {"score": 5, "accuracy": 50, "time_spent": float("inf")},
    ],
)
def test_game_result_report_bounds(report):
    with pytest.raises(SchemaValidationError):
        GameResultReport(**report)


# ============================================================================
# Leaderboard
# ============================================================================

@pytest.mark.asyncio
async def test_leaderboard_ordering(service):
    await service.add_points("carol", 300)
    await service.add_points("alice", 500)
    await service.add_points("bob", 300)

    board = await service.leaderboard(10)

    assert [(e.rank, e.user_id) for e in board] == [(1, "alice"), (2, "bob"), (3, "carol")]


@pytest.mark.asyncio
async def test_leaderboard_limit_and_filter(service):
    await service.add_points("alice", 500)
    await service.record_game_result("bob", "writing", GameResultReport(score=2, accuracy=50))
    await service.record_game_result("carol", "reading", GameResultReport(score=2, accuracy=50))

    assert len(await service.leaderboard(2)) == 2

    writers = await service.leaderboard(10, game_type="writing")
    assert [e.user_id for e in writers] == ["bob"]


@pytest.mark.asyncio
@pytest.mark.parametrize("top_n", [0, -1, 101, True])
async def test_leaderboard_rejects_bad_limit(service, top_n):
    with pytest.raises(ValidationError):
        await service.leaderboard(top_n)


@pytest.mark.asyncio
async def test_leaderboard_is_cached(repository, clock):
    service = ProgressService(repository, clock=clock, cache=Cache(Cache.MEMORY))
    await service.add_points("alice", 100)

    first = await service.leaderboard(5)
    await service.add_points("bob", 900)
    second = await service.leaderboard(5)

    assert [e.user_id for e in first] == ["alice"]
    assert second == first
