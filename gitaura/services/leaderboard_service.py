from datetime import datetime, timedelta

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from gitaura.core.config import settings
from gitaura.db.database import insert_if_absent
from gitaura.db.models.badge import UserBadge
from gitaura.db.models.base import as_utc
from gitaura.db.models.leaderboard import GlobalLeaderboard, MonthlyLeaderboard, WriteSource
from gitaura.db.models.winners import MonthlyWinner
from gitaura.services.scoring_service import MonthlySummary

logger = structlog.get_logger()


def should_apply_monthly_write(
    existing: MonthlyLeaderboard | None,
    source: WriteSource,
    now: datetime,
    grace_window: timedelta,
) -> bool:
    """Merge policy for monthly score fields.

    Authoritative writes always apply. A live write is dropped while the
    row's last authoritative write is younger than ``grace_window``.
    Global leaderboard fields have no such policy and always apply.
    """
    if existing is None or source == WriteSource.AUTHORITATIVE:
        return True
    if existing.last_authoritative_at is None:
        return True
    return now - as_utc(existing.last_authoritative_at) >= grace_window


def live_write_allowed(now: datetime, grace_window: timedelta):
    """SQL form of the live-write rule in ``should_apply_monthly_write``."""
    cutoff = now - grace_window
    return or_(
        MonthlyLeaderboard.last_authoritative_at.is_(None),
        MonthlyLeaderboard.last_authoritative_at <= cutoff,
    )


def _user_info(user) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
        "current_streak": user.current_streak,
    }


def _public_rank(rank: int | None) -> int | None:
    if rank is None or rank <= 0 or rank >= settings.unranked_sentinel:
        return None
    return rank


class LeaderboardService:
    """Service for writing and querying the monthly and all-time leaderboards."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_monthly_entry(self, user_id: int, month_year: str) -> MonthlyLeaderboard | None:
        result = await self.db.execute(
            select(MonthlyLeaderboard).where(
                MonthlyLeaderboard.user_id == user_id,
                MonthlyLeaderboard.month_year == month_year,
            )
        )
        return result.scalar_one_or_none()

    async def get_global_entry(self, user_id: int) -> GlobalLeaderboard | None:
        result = await self.db.execute(
            select(GlobalLeaderboard).where(GlobalLeaderboard.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_user_rank(self, user_id: int, month_year: str | None = None) -> int | None:
        """Public rank of a user in a month, or all-time when ``month_year`` is None."""
        if month_year is None:
            entry = await self.get_global_entry(user_id)
        else:
            entry = await self.get_monthly_entry(user_id, month_year)
        return _public_rank(entry.rank) if entry else None

    async def _update_monthly_entry(
        self,
        user_id: int,
        month_year: str,
        values: dict,
        source: WriteSource,
        now: datetime,
        grace_window: timedelta,
    ) -> bool:
        stmt = (
            update(MonthlyLeaderboard)
            .where(
                MonthlyLeaderboard.user_id == user_id,
                MonthlyLeaderboard.month_year == month_year,
            )
            .values(**values, version=MonthlyLeaderboard.version + 1)
            .execution_options(synchronize_session=False)
        )
        if source == WriteSource.LIVE:
            # Checked against the row as stored, not as this session last saw it
            stmt = stmt.where(live_write_allowed(now, grace_window))
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def upsert_monthly_entry(
        self,
        user_id: int,
        summary: MonthlySummary,
        source: WriteSource,
        now: datetime,
    ) -> bool:
        """Write the month's score fields if the merge policy allows it.

        Returns False when a live write was suppressed. Rank is only set to
        the unranked sentinel on insert and is never touched on update.
        """
        month_year = summary.month_year
        existing = await self.get_monthly_entry(user_id, month_year)
        grace_window = timedelta(seconds=settings.monthly_grace_window_seconds)
        if not should_apply_monthly_write(existing, source, now, grace_window):
            logger.info(
                "Skipping live monthly write inside grace window",
                user_id=user_id,
                month_year=month_year,
            )
            return False

        values = {
            "total_aura": summary.aura,
            "contributions_count": summary.contributions,
            "active_days": summary.active_days,
            "write_source": source.value,
            "updated_at": now,
        }
        if source == WriteSource.AUTHORITATIVE:
            values["last_authoritative_at"] = now

        if existing is None:
            entry = MonthlyLeaderboard(
                user_id=user_id,
                month_year=month_year,
                rank=settings.unranked_sentinel,
                version=1,
                created_at=now,
                **values,
            )
            if await insert_if_absent(self.db, entry):
                return True
            logger.info(
                "Monthly entry created concurrently, updating it",
                user_id=user_id,
                month_year=month_year,
            )

        applied = await self._update_monthly_entry(
            user_id, month_year, values, source, now, grace_window
        )
        if existing is not None:
            await self.db.refresh(existing)
        if not applied:
            logger.info(
                "Skipping live monthly write, authoritative write landed first",
                user_id=user_id,
                month_year=month_year,
            )
        return applied

    async def upsert_global_entry(
        self,
        user_id: int,
        total_aura: int,
        now: datetime,
    ) -> GlobalLeaderboard:
        entry = await self.get_global_entry(user_id)
        if entry is None:
            entry = GlobalLeaderboard(
                user_id=user_id,
                rank=settings.unranked_sentinel,
                total_aura=total_aura,
                yearly_aura=total_aura,
                year=str(now.year),
                last_updated=now,
            )
            if await insert_if_absent(self.db, entry):
                return entry
            logger.info("Global entry created concurrently, updating it", user_id=user_id)
            entry = await self.get_global_entry(user_id)

        entry.total_aura = total_aura
        entry.yearly_aura = total_aura
        entry.year = str(now.year)
        entry.last_updated = now

        await self.db.flush()
        return entry

    async def get_monthly_leaderboard(
        self,
        month_year: str,
        user_id: int | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[dict], int, int | None]:
        """Get one month's ranked entries, the total count, and the user's rank."""
        offset = (page - 1) * page_size

        count_result = await self.db.execute(
            select(func.count(MonthlyLeaderboard.id)).where(
                MonthlyLeaderboard.month_year == month_year
            )
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(MonthlyLeaderboard)
            .options(joinedload(MonthlyLeaderboard.user))
            .where(MonthlyLeaderboard.month_year == month_year)
            .order_by(
                MonthlyLeaderboard.rank,
                MonthlyLeaderboard.total_aura.desc(),
                MonthlyLeaderboard.user_id,
            )
            .offset(offset)
            .limit(page_size)
        )
        entries = result.scalars().all()

        badges_by_user: dict[int, list[dict]] = {}
        if entries:
            badge_result = await self.db.execute(
                select(UserBadge)
                .options(joinedload(UserBadge.badge))
                .where(UserBadge.user_id.in_([e.user_id for e in entries]))
                .order_by(UserBadge.awarded_at)
            )
            for grant in badge_result.scalars().all():
                badges_by_user.setdefault(grant.user_id, []).append(
                    {
                        "name": grant.badge.name,
                        "description": grant.badge.description,
                        "icon": grant.badge.icon,
                        "color": grant.badge.color,
                        "rarity": grant.badge.rarity,
                        "month_year": grant.month_year,
                        "rank": grant.rank,
                    }
                )

        formatted = []
        for entry in entries:
            formatted.append(
                {
                    "rank": _public_rank(entry.rank),
                    "user": _user_info(entry.user),
                    "total_aura": entry.total_aura,
                    "contributions_count": entry.contributions_count,
                    "active_days": entry.active_days,
                    "badges": badges_by_user.get(entry.user_id, []),
                }
            )

        user_rank = (
            await self.get_user_rank(user_id, month_year) if user_id is not None else None
        )

        return formatted, total, user_rank

    async def get_alltime_leaderboard(
        self,
        user_id: int | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[dict], int, int | None]:
        """Get the all-time leaderboard with pagination."""
        offset = (page - 1) * page_size

        count_result = await self.db.execute(select(func.count(GlobalLeaderboard.id)))
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(GlobalLeaderboard)
            .options(joinedload(GlobalLeaderboard.user))
            .order_by(
                GlobalLeaderboard.rank,
                GlobalLeaderboard.total_aura.desc(),
                GlobalLeaderboard.user_id,
            )
            .offset(offset)
            .limit(page_size)
        )
        entries = result.scalars().all()

        formatted = []
        for entry in entries:
            formatted.append(
                {
                    "rank": _public_rank(entry.rank),
                    "user": _user_info(entry.user),
                    "total_aura": entry.total_aura,
                    "yearly_aura": entry.yearly_aura,
                    "last_updated": entry.last_updated,
                }
            )

        user_rank = await self.get_user_rank(user_id) if user_id is not None else None

        return formatted, total, user_rank

    async def get_monthly_winners(self, month_year: str | None = None) -> list[dict]:
        """Captured top-3 snapshots, newest month first."""
        query = select(MonthlyWinner).options(joinedload(MonthlyWinner.user))
        if month_year:
            query = query.where(MonthlyWinner.month_year == month_year)
        result = await self.db.execute(
            query.order_by(MonthlyWinner.month_year.desc(), MonthlyWinner.rank)
        )

        return [
            {
                "month_year": winner.month_year,
                "rank": winner.rank,
                "user": _user_info(winner.user),
                "total_aura": winner.total_aura,
                "contributions_count": winner.contributions_count,
                "badge_awarded": winner.badge_awarded,
                "captured_at": winner.captured_at,
            }
            for winner in result.scalars().all()
        ]
