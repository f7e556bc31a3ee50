from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient

from conftest import make_days, make_series
from gitaura.core.config import settings
from gitaura.core.exceptions import UpstreamFetchError
from gitaura.services.rank_service import current_month_year


def recent_days_payload(counts: list[int]) -> list[dict]:
    """Contribution days ending today, oldest first."""
    today = datetime.now(UTC).date()
    start = today - timedelta(days=len(counts) - 1)
    return [
        {"date": (start + timedelta(days=i)).isoformat(), "contributionCount": count}
        for i, count in enumerate(counts)
    ]


async def sync(client: AsyncClient, user_id: int, counts: list[int]):
    return await client.post(
        "/api/v1/aura/sync",
        json={"user_id": user_id, "contributionDays": recent_days_payload(counts)},
    )


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_monthly_leaderboard_empty(client: AsyncClient) -> None:
    response = await client.get("/api/v1/leaderboard/monthly", params={"month_year": "2024-03"})
    assert response.status_code == 200
    data = response.json()
    assert data["month_year"] == "2024-03"
    assert data["entries"] == []
    assert data["total"] == 0
    assert data["user_rank"] is None


@pytest.mark.asyncio
async def test_monthly_leaderboard_defaults_to_current_month(client: AsyncClient) -> None:
    response = await client.get("/api/v1/leaderboard/monthly")
    assert response.status_code == 200
    assert response.json()["month_year"] == current_month_year()


@pytest.mark.asyncio
async def test_monthly_leaderboard_rejects_bad_month(client: AsyncClient) -> None:
    response = await client.get("/api/v1/leaderboard/monthly", params={"month_year": "2024-13"})
    assert response.status_code == 400
    assert "YYYY-MM" in response.json()["detail"]


@pytest.mark.asyncio
async def test_sync_then_rank(client: AsyncClient, make_user) -> None:
    """A live sync lands unranked until the recalculation assigns a rank."""
    user = await make_user("octocat")
    user_id = user.id

    response = await sync(client, user_id, [1, 1, 1])
    assert response.status_code == 200
    data = response.json()
    assert data["total_aura"] == 3 * 5 + 50
    assert data["current_streak"] == 3
    assert data["monthly_updated"] is True

    unranked = await client.get("/api/v1/leaderboard/monthly", params={"user_id": user_id})
    assert unranked.json()["entries"][0]["rank"] is None
    assert unranked.json()["user_rank"] is None

    response = await client.post("/api/v1/admin/ranks/recalculate")
    assert response.status_code == 200
    partitions = {r["partition"]: r for r in response.json()}
    assert partitions["global"]["total"] == 1
    assert partitions[current_month_year()]["changed"] == 1

    monthly = (await client.get("/api/v1/leaderboard/monthly", params={"user_id": user_id})).json()
    assert monthly["total"] == 1
    assert monthly["user_rank"] == 1
    assert monthly["entries"][0]["rank"] == 1
    assert monthly["entries"][0]["user"]["username"] == "octocat"

    alltime = (await client.get("/api/v1/leaderboard/alltime")).json()
    assert alltime["entries"][0]["rank"] == 1
    assert alltime["entries"][0]["total_aura"] == 65


@pytest.mark.asyncio
async def test_sync_unknown_user(client: AsyncClient) -> None:
    response = await sync(client, 9999, [1])
    assert response.status_code == 404
    assert response.json()["detail"] == "User 9999 not found"


@pytest.mark.asyncio
async def test_sync_rejects_negative_counts(client: AsyncClient, make_user) -> None:
    user = await make_user("octocat")
    response = await sync(client, user.id, [1, -1])
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_refresh_uses_github(client: AsyncClient, make_user, github) -> None:
    user = await make_user("octocat")
    today = datetime.now(UTC).date()
    github.get_contributions.return_value = make_series(
        make_days(today - timedelta(days=6), [2] * 7)
    )

    response = await client.post(f"/api/v1/aura/{user.id}/refresh")

    assert response.status_code == 200
    assert response.json()["current_streak"] == 7
    assert github.get_contributions.await_args.args == ("octocat",)


@pytest.mark.asyncio
async def test_refresh_upstream_failure(client: AsyncClient, make_user, github) -> None:
    user = await make_user("octocat")
    user_id = user.id
    github.get_contributions.side_effect = UpstreamFetchError("GitHub API error 502 fetching octocat")

    response = await client.post(f"/api/v1/aura/{user_id}/refresh")

    assert response.status_code == 502
    assert "GitHub API error" in response.json()["detail"]


@pytest.mark.asyncio
async def test_ban_and_unban(client: AsyncClient, make_user) -> None:
    user = await make_user("cheater")
    user_id = user.id
    await sync(client, user_id, [5, 5])

    response = await client.post(
        f"/api/v1/admin/users/{user_id}/ban", json={"reason": "botting", "banned_by": "admin"}
    )
    assert response.status_code == 200
    assert response.json() == {
        "user_id": user_id,
        "is_banned": True,
        "removed_monthly_rows": 1,
        "removed_global_rows": 1,
    }
    alltime = (await client.get("/api/v1/leaderboard/alltime")).json()
    assert alltime["entries"] == []

    response = await client.post(f"/api/v1/admin/users/{user_id}/unban")
    assert response.status_code == 200
    assert response.json()["is_banned"] is False
    alltime = (await client.get("/api/v1/leaderboard/alltime")).json()
    assert alltime["entries"] == []


@pytest.mark.asyncio
async def test_ban_unknown_user(client: AsyncClient) -> None:
    response = await client.post("/api/v1/admin/users/9999/ban", json={"reason": "nobody"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_badges_and_winners(client: AsyncClient, make_user) -> None:
    user = await make_user("champ")
    user_id = user.id
    await sync(client, user_id, [4, 4, 4])
    month_year = current_month_year()

    response = await client.post("/api/v1/admin/badges/award", params={"month_year": month_year})
    assert response.status_code == 200
    grants = response.json()
    assert len(grants) == 1
    assert grants[0]["user_id"] == user_id
    assert grants[0]["newly_awarded"] is True

    response = await client.post("/api/v1/admin/winners/capture", params={"month_year": month_year})
    assert response.status_code == 200
    winners = response.json()
    assert [(w["rank"], w["user"]["id"]) for w in winners] == [(1, user_id)]
    assert winners[0]["badge_awarded"] is True

    history = (await client.get("/api/v1/leaderboard/winners")).json()
    assert len(history) == 1
    assert history[0]["month_year"] == month_year

    monthly = (await client.get("/api/v1/leaderboard/monthly")).json()
    assert monthly["entries"][0]["badges"][0]["name"] == f"Monthly Champion - {month_year}"


@pytest.mark.asyncio
async def test_sync_always_writes_as_live(client: AsyncClient, make_user, github) -> None:
    """A sync cannot claim authority to overwrite a fresh refresh."""
    user = await make_user("octocat")
    user_id = user.id
    today = datetime.now(UTC).date()
    github.get_contributions.return_value = make_series(
        make_days(today - timedelta(days=6), [4] * 7)
    )

    refreshed = await client.post(f"/api/v1/aura/{user_id}/refresh")
    assert refreshed.status_code == 200
    monthly_aura = refreshed.json()["monthly"]["aura"]

    response = await client.post(
        "/api/v1/aura/sync",
        json={
            "user_id": user_id,
            "contributionDays": recent_days_payload([0]),
            "source": "authoritative",
        },
    )

    assert response.status_code == 200
    assert response.json()["monthly_updated"] is False
    board = await client.get("/api/v1/leaderboard/monthly", params={"user_id": user_id})
    assert board.json()["entries"][0]["total_aura"] == monthly_aura


@pytest.mark.asyncio
async def test_alltime_page_size_follows_settings(client: AsyncClient) -> None:
    response = await client.get("/api/v1/leaderboard/alltime")
    assert response.status_code == 200
    assert response.json()["page_size"] == settings.api_pagination_default_limit

    too_large = settings.api_pagination_max_limit + 1
    response = await client.get("/api/v1/leaderboard/alltime", params={"page_size": too_large})
    assert response.status_code == 422
