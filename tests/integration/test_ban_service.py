from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from conftest import make_days, make_series
from gitaura.core.exceptions import BanOperationError, UserNotFoundError
from gitaura.db.models import GlobalLeaderboard, MonthlyLeaderboard
from gitaura.services.aura_service import AuraService
from gitaura.services.ban_service import BanService

NOW = datetime(2024, 3, 20, 12, 0, tzinfo=UTC)


async def rows_for(db_session, model, user_id: int) -> int:
    result = await db_session.execute(
        select(func.count()).select_from(model).where(model.user_id == user_id)
    )
    return result.scalar_one()


async def seed_rows(db_session, user) -> None:
    for month_year in ("2024-02", "2024-03"):
        db_session.add(
            MonthlyLeaderboard(user_id=user.id, month_year=month_year, total_aura=100, rank=1)
        )
    db_session.add(
        GlobalLeaderboard(user_id=user.id, total_aura=100, yearly_aura=100, year="2024", rank=1)
    )
    await db_session.commit()


@pytest.mark.integration
class TestBanUser:
    """Banning removes every leaderboard row of the user."""

    @pytest.mark.asyncio
    async def test_ban_removes_all_rows(self, db_session, make_user) -> None:
        user = await make_user("cheater")
        bystander = await make_user("bystander")
        await seed_rows(db_session, user)
        await seed_rows(db_session, bystander)

        removed = await BanService(db_session).ban_user(
            user.id, reason="botting", banned_by="admin", now=NOW
        )

        assert removed == {"monthly": 2, "global": 1}
        assert user.is_banned is True
        assert user.ban_reason == "botting"
        assert user.banned_by == "admin"
        assert await rows_for(db_session, MonthlyLeaderboard, user.id) == 0
        assert await rows_for(db_session, GlobalLeaderboard, user.id) == 0
        assert await rows_for(db_session, MonthlyLeaderboard, bystander.id) == 2

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session) -> None:
        with pytest.raises(UserNotFoundError):
            await BanService(db_session).ban_user(9999, reason="nobody")

    @pytest.mark.asyncio
    async def test_failed_removal_rolls_back_ban(self, db_session, make_user, monkeypatch) -> None:
        user = await make_user("cheater")
        user_id = user.id
        await seed_rows(db_session, user)
        service = BanService(db_session)

        async def fail(_user_id: int) -> dict:
            raise OperationalError("DELETE", {}, Exception("database is locked"))

        monkeypatch.setattr(service, "remove_from_leaderboards", fail)

        with pytest.raises(BanOperationError):
            await service.ban_user(user_id, reason="botting")

        await db_session.refresh(user)
        assert user.is_banned is False
        assert await rows_for(db_session, MonthlyLeaderboard, user_id) == 2


@pytest.mark.integration
class TestUnbanUser:
    """Unbanning never restores removed rows."""

    @pytest.mark.asyncio
    async def test_unban_does_not_restore_rows(self, db_session, make_user, github) -> None:
        user = await make_user("reformed")
        await seed_rows(db_session, user)
        service = BanService(db_session)

        await service.ban_user(user.id, reason="botting", now=NOW)
        await service.unban_user(user.id)

        assert user.is_banned is False
        assert user.ban_reason is None
        assert await rows_for(db_session, MonthlyLeaderboard, user.id) == 0

        # The next aura calculation brings the user back, unranked
        await AuraService(db_session, github).calculate_and_store(
            user.id, make_series(make_days(date(2024, 3, 18), [1, 1, 1])), now=NOW
        )
        result = await db_session.execute(
            select(MonthlyLeaderboard.rank).where(MonthlyLeaderboard.user_id == user.id)
        )
        assert result.scalar_one() == 999999


@pytest.mark.integration
class TestBanStatus:
    """Tests for ban status checks."""

    @pytest.mark.asyncio
    async def test_active_ban(self, db_session, make_user) -> None:
        user = await make_user("cheater")
        await BanService(db_session).ban_user(
            user.id, reason="botting", expires_at=NOW + timedelta(days=7), now=NOW
        )

        status = await BanService(db_session).check_ban_status(user.id, now=NOW)

        assert status.is_banned is True
        assert status.reason == "botting"
        assert status.expired is False

    @pytest.mark.asyncio
    async def test_expired_ban_is_lifted(self, db_session, make_user) -> None:
        user = await make_user("cheater")
        await BanService(db_session).ban_user(
            user.id, reason="botting", expires_at=NOW + timedelta(days=7), now=NOW
        )

        status = await BanService(db_session).check_ban_status(
            user.id, now=NOW + timedelta(days=8)
        )

        assert status.is_banned is False
        assert status.expired is True
        assert user.is_banned is False

    @pytest.mark.asyncio
    async def test_not_banned(self, db_session, make_user) -> None:
        user = await make_user("octocat")

        status = await BanService(db_session).check_ban_status(user.id, now=NOW)

        assert status.is_banned is False
        assert status.expired is False
