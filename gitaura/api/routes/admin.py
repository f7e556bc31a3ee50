from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gitaura.api.schemas.aura import (
    BadgeGrantResponse,
    BanRequest,
    BanResponse,
    RankRecalculationResponse,
)
from gitaura.api.schemas.leaderboard import MonthlyWinnerEntry
from gitaura.db import get_db
from gitaura.services.badge_service import BadgeService
from gitaura.services.ban_service import BanService
from gitaura.services.leaderboard_service import LeaderboardService
from gitaura.services.rank_service import GLOBAL_PARTITION, RankService, current_month_year

router = APIRouter()


@router.post(
    "/users/{user_id}/ban",
    response_model=BanResponse,
    summary="Ban a user and remove them from all leaderboards",
)
async def ban_user(
    user_id: int,
    payload: BanRequest,
    db: AsyncSession = Depends(get_db),
) -> BanResponse:
    service = BanService(db)
    removed = await service.ban_user(
        user_id,
        reason=payload.reason,
        expires_at=payload.expires_at,
        banned_by=payload.banned_by,
    )
    return BanResponse(
        user_id=user_id,
        is_banned=True,
        removed_monthly_rows=removed["monthly"],
        removed_global_rows=removed["global"],
    )


@router.post(
    "/users/{user_id}/unban",
    response_model=BanResponse,
    summary="Lift a ban; leaderboard rows are not restored",
)
async def unban_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
) -> BanResponse:
    service = BanService(db)
    await service.unban_user(user_id)
    return BanResponse(user_id=user_id, is_banned=False)


@router.post(
    "/ranks/recalculate",
    response_model=list[RankRecalculationResponse],
    summary="Recalculate leaderboard ranks",
)
async def recalculate_ranks(
    partition: list[str] | None = Query(
        None, description="'global' or YYYY-MM; defaults to the current month and global"
    ),
    db: AsyncSession = Depends(get_db),
) -> list[RankRecalculationResponse]:
    service = RankService(db)
    partitions = partition or [current_month_year(), GLOBAL_PARTITION]
    results = [await service.recalculate(p) for p in partitions]
    return [RankRecalculationResponse.model_validate(r) for r in results]


@router.post(
    "/badges/award",
    response_model=list[BadgeGrantResponse],
    summary="Award monthly top-3 badges",
)
async def award_badges(
    month_year: str | None = Query(None, description="Month in YYYY-MM format"),
    db: AsyncSession = Depends(get_db),
) -> list[BadgeGrantResponse]:
    """Idempotent: re-running for the same month grants nothing new."""
    service = BadgeService(db)
    grants = await service.award_monthly_badges(month_year or current_month_year())
    return [BadgeGrantResponse.model_validate(g) for g in grants]


@router.post(
    "/winners/capture",
    response_model=list[MonthlyWinnerEntry],
    summary="Capture the month's top 3 as winners",
)
async def capture_winners(
    month_year: str | None = Query(None, description="Month in YYYY-MM format"),
    db: AsyncSession = Depends(get_db),
) -> list[MonthlyWinnerEntry]:
    """Snapshot the month's winners; positions already captured are kept."""
    month_year = month_year or current_month_year()
    await BadgeService(db).capture_monthly_winners(month_year)
    winners = await LeaderboardService(db).get_monthly_winners(month_year)
    return [MonthlyWinnerEntry.model_validate(w) for w in winners]
