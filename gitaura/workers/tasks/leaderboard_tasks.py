import asyncio
import calendar
from datetime import UTC, datetime

import structlog
from sqlalchemy import select

from gitaura.core.config import settings
from gitaura.core.exceptions import AuraError
from gitaura.db.database import create_worker_session_maker
from gitaura.db.models.leaderboard import WriteSource
from gitaura.db.models.user import GitHubUser
from gitaura.services.aura_service import AuraService
from gitaura.services.badge_service import BadgeService
from gitaura.services.github_service import GitHubService
from gitaura.services.rank_service import GLOBAL_PARTITION, RankService, current_month_year
from gitaura.workers.celery_app import celery_app

logger = structlog.get_logger()


def run_async(coro):
    """Run async code in sync context."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()


def is_last_day_of_month(now: datetime) -> bool:
    return now.day == calendar.monthrange(now.year, now.month)[1]


def _failed(partition: str, exc: Exception) -> dict:
    return {"status": "failed", "partition": partition, "error": str(exc)}


@celery_app.task
def recalculate_ranks(partitions: list[str] | None = None) -> dict:
    """Periodic rank recalculation, current month and global by default."""
    return run_async(_recalculate_ranks_async(partitions))


async def _recalculate_ranks_async(partitions: list[str] | None = None) -> dict:
    partitions = partitions or [current_month_year(), GLOBAL_PARTITION]
    results = []

    async with create_worker_session_maker()() as db:
        service = RankService(db)
        for partition in partitions:
            try:
                result = await service.recalculate(partition)
            except Exception as exc:
                # Nothing is committed for this partition; the next run recovers
                await db.rollback()
                logger.error("Rank recalculation failed", partition=partition, error=str(exc))
                results.append(_failed(partition, exc))
                continue
            results.append(
                {
                    "status": "completed",
                    "partition": result.partition,
                    "total": result.total,
                    "changed": result.changed,
                    "purged": result.purged,
                }
            )

    return {"status": "completed", "results": results}


@celery_app.task
def award_monthly_badges(month_year: str | None = None) -> dict:
    """Hourly, idempotent top-3 badge awarding for the current month."""
    return run_async(_award_monthly_badges_async(month_year))


async def _award_monthly_badges_async(month_year: str | None = None) -> dict:
    month_year = month_year or current_month_year()

    async with create_worker_session_maker()() as db:
        try:
            grants = await BadgeService(db).award_monthly_badges(month_year)
        except Exception as exc:
            await db.rollback()
            logger.error("Badge awarding failed", partition=month_year, error=str(exc))
            return _failed(month_year, exc)

    return {
        "status": "completed",
        "partition": month_year,
        "awarded": sum(1 for g in grants if g.newly_awarded),
        "positions": len(grants),
    }


@celery_app.task
def capture_monthly_winners(month_year: str | None = None, force: bool = False) -> dict:
    """Snapshot the month's top 3 on its last day."""
    return run_async(_capture_monthly_winners_async(month_year, force))


async def _capture_monthly_winners_async(
    month_year: str | None = None,
    force: bool = False,
    now: datetime | None = None,
) -> dict:
    now = now or datetime.now(UTC)
    if month_year is None and not force and not is_last_day_of_month(now):
        logger.info("Not the last day of the month, skipping winners capture")
        return {"status": "skipped", "partition": current_month_year(now)}

    month_year = month_year or current_month_year(now)

    async with create_worker_session_maker()() as db:
        try:
            winners = await BadgeService(db).capture_monthly_winners(month_year)
        except Exception as exc:
            await db.rollback()
            logger.error("Winners capture failed", partition=month_year, error=str(exc))
            return _failed(month_year, exc)

    return {
        "status": "completed",
        "partition": month_year,
        "winners": [{"rank": w.rank, "user_id": w.user_id} for w in winners],
    }


@celery_app.task
def refresh_all_users() -> dict:
    """Re-score every non-banned user through the authoritative path."""
    return run_async(_refresh_all_users_async())


async def _refresh_all_users_async() -> dict:
    logger.info("Refreshing all users")

    session_maker = create_worker_session_maker()
    async with session_maker() as db:
        result = await db.execute(
            select(GitHubUser.id).where(GitHubUser.is_banned.is_(False)).order_by(GitHubUser.id)
        )
        user_ids = list(result.scalars().all())

    github = GitHubService()
    refreshed = 0
    failed = 0
    batch_size = settings.refresh_batch_size

    for start in range(0, len(user_ids), batch_size):
        for user_id in user_ids[start : start + batch_size]:
            async with session_maker() as db:
                try:
                    await AuraService(db, github).refresh_user(
                        user_id, source=WriteSource.AUTHORITATIVE
                    )
                    await db.commit()
                    refreshed += 1
                except AuraError as exc:
                    await db.rollback()
                    failed += 1
                    logger.warning("User refresh failed", user_id=user_id, error=exc.message)

        if start + batch_size < len(user_ids):
            await asyncio.sleep(settings.refresh_batch_delay_seconds)

    ranks = await _recalculate_ranks_async()

    logger.info("All users refreshed", refreshed=refreshed, failed=failed)
    return {
        "status": "completed",
        "refreshed": refreshed,
        "failed": failed,
        "ranks": ranks["results"],
    }
