from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from gitaura.core.config import settings
from gitaura.core.exceptions import InvalidInputError
from gitaura.db.models.leaderboard import GlobalLeaderboard, MonthlyLeaderboard
from gitaura.db.models.user import GitHubUser
from gitaura.services.scoring_service import month_key

logger = structlog.get_logger()

GLOBAL_PARTITION = "global"


@dataclass(frozen=True)
class RankRecalculationResult:
    partition: str
    total: int
    changed: int
    purged: int = 0


def current_month_year(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return month_key(now.year, now.month)


def validate_month_year(month_year: str) -> str:
    try:
        parsed = datetime.strptime(month_year, "%Y-%m")
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid month_year {month_year!r}, expected YYYY-MM") from e
    return month_key(parsed.year, parsed.month)


def _monthly_sort_key(entry: MonthlyLeaderboard) -> tuple:
    return (
        -entry.total_aura,
        -entry.contributions_count,
        -(entry.user.current_streak or 0),
        entry.user_id,
    )


def _global_sort_key(entry: GlobalLeaderboard) -> tuple:
    return (
        -entry.total_aura,
        -entry.yearly_aura,
        -(entry.user.current_streak or 0),
        entry.user_id,
    )


class RankService:
    """Recomputes contiguous 1-based ranks for one leaderboard partition.

    The full order is computed in memory first; only rows whose rank
    changed are written, flushed in batches, and committed once. An aborted
    run leaves the previous ranks in place until the next run.
    """

    def __init__(self, db: AsyncSession, batch_size: int | None = None) -> None:
        self.db = db
        self.batch_size = batch_size or settings.rank_batch_size

    async def _purge_banned(self, model, month_year: str | None = None) -> int:
        banned_ids = select(GitHubUser.id).where(GitHubUser.is_banned.is_(True))
        stmt = delete(model).where(model.user_id.in_(banned_ids))
        if month_year is not None:
            stmt = stmt.where(model.month_year == month_year)
        result = await self.db.execute(stmt)
        purged = result.rowcount or 0
        if purged:
            logger.warning("Purged banned users from leaderboard", rows=purged, month_year=month_year)
        return purged

    async def _apply_ranks(self, ordered: list) -> int:
        changed = 0
        pending = 0
        for position, entry in enumerate(ordered, start=1):
            if entry.rank == position:
                continue
            entry.rank = position
            changed += 1
            pending += 1
            if pending >= self.batch_size:
                await self.db.flush()
                pending = 0
        if pending:
            await self.db.flush()
        return changed

    async def recalculate_monthly(self, month_year: str) -> RankRecalculationResult:
        month_year = validate_month_year(month_year)
        purged = await self._purge_banned(MonthlyLeaderboard, month_year)

        result = await self.db.execute(
            select(MonthlyLeaderboard)
            .options(joinedload(MonthlyLeaderboard.user))
            .where(MonthlyLeaderboard.month_year == month_year)
        )
        ordered = sorted(result.scalars().all(), key=_monthly_sort_key)
        changed = await self._apply_ranks(ordered)
        await self.db.commit()

        logger.info(
            "Monthly ranks recalculated",
            month_year=month_year,
            total=len(ordered),
            changed=changed,
        )
        return RankRecalculationResult(month_year, len(ordered), changed, purged)

    async def recalculate_global(self) -> RankRecalculationResult:
        purged = await self._purge_banned(GlobalLeaderboard)

        result = await self.db.execute(
            select(GlobalLeaderboard).options(joinedload(GlobalLeaderboard.user))
        )
        ordered = sorted(result.scalars().all(), key=_global_sort_key)
        changed = await self._apply_ranks(ordered)
        await self.db.commit()

        logger.info("Global ranks recalculated", total=len(ordered), changed=changed)
        return RankRecalculationResult(GLOBAL_PARTITION, len(ordered), changed, purged)

    async def recalculate(self, partition: str) -> RankRecalculationResult:
        """Recalculate ``"global"`` or a ``YYYY-MM`` month partition."""
        if partition == GLOBAL_PARTITION:
            return await self.recalculate_global()
        return await self.recalculate_monthly(partition)
