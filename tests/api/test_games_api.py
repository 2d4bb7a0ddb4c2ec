"""Tests for game result, game stats, catalog and service info endpoints"""
import pytest


@pytest.mark.asyncio
async def test_game_result(client, auth_headers):
    response = await client.post(
        "/api/games/reading/result",
        json={"score": 8, "accuracy": 95, "time_spent": 3},
        headers=auth_headers("learner-1"),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["game_type"] == "reading"
    assert data["points_awarded"] == 150
    assert data["new_points"] == 275
    assert [a["id"] for a in data["unlocked_achievements"]] == ["first-reading", "perfect-score"]
    assert [b["id"] for b in data["unlocked_badges"]] == ["first-game"]
    assert data["game_progress"]["completed"] == 1


@pytest.mark.asyncio
async def test_game_result_unknown_type(client, auth_headers):
    response = await client.post(
        "/api/games/chess/result",
        json={"score": 8, "accuracy": 95},
        headers=auth_headers(),
    )

    assert response.status_code == 400
    assert response.json()["field"] == "game_type"


@pytest.mark.asyncio
async def test_game_result_requires_auth(client):
    response = await client.post("/api/games/reading/result", json={"score": 8, "accuracy": 95})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_game_result_body_validation(client, auth_headers):
    response = await client.post(
        "/api/games/reading/result",
        json={"score": 8, "accuracy": 150},
        headers=auth_headers(),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"score": 1e300, "accuracy": 50},
    {"score": 101, "accuracy": 50},
    {"score": 8, "accuracy": 50, "time_spent": 1e300},
])
async def test_game_result_rejects_out_of_range_values(client, auth_headers, body):
    headers = auth_headers()
    response = await client.post("/api/games/reading/result", json=body, headers=headers)

    assert response.status_code == 422

    response = await client.get("/api/progress", headers=headers)
    assert response.json()["points"] == 0


@pytest.mark.asyncio
async def test_game_stats(client, auth_headers):
    headers = auth_headers("learner-1")
    await client.post("/api/games/reading/result", json={"score": 8, "accuracy": 95, "time_spent": 3}, headers=headers)

    response = await client.get("/api/games/reading/stats", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["completed"] == 1
    assert data["best_score"] == 8
    assert data["time_spent"] == 3

    response = await client.get("/api/games/writing/stats", headers=headers)
    assert response.status_code == 200
    assert response.json()["completed"] == 0


@pytest.mark.asyncio
async def test_game_stats_unknown_type(client, auth_headers):
    response = await client.get("/api/games/chess/stats", headers=auth_headers())

    assert response.status_code == 400
    assert response.json()["field"] == "game_type"


@pytest.mark.asyncio
async def test_game_stats_requires_auth(client):
    response = await client.get("/api/games/reading/stats")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_badge_catalog(client):
    response = await client.get("/api/gamification/badges")

    assert response.status_code == 200
    assert len(response.json()) == 7
    assert response.json()[0]["id"] == "first-game"


@pytest.mark.asyncio
async def test_achievement_catalog(client):
    response = await client.get("/api/gamification/achievements")

    assert response.status_code == 200
    points = {a["id"]: a["points"] for a in response.json()}
    assert points["welcome"] == 50
    assert points["perfect-score"] == 100


@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "operational"


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "healthy"


@pytest.mark.asyncio
async def test_config_outside_production(client):
    response = await client.get("/config")

    assert response.status_code == 200
    assert response.json()["points_per_level"] == 100
    assert response.json()["leaderboard"]["size"] == 100
