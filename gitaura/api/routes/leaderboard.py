from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from gitaura.api.schemas.leaderboard import (
    AlltimeLeaderboardEntry,
    AlltimeLeaderboardResponse,
    MonthlyLeaderboardEntry,
    MonthlyLeaderboardResponse,
    MonthlyWinnerEntry,
)
from gitaura.core.config import settings
from gitaura.db import get_db
from gitaura.services.leaderboard_service import LeaderboardService
from gitaura.services.rank_service import current_month_year, validate_month_year

router = APIRouter()


@router.get(
    "/monthly",
    response_model=MonthlyLeaderboardResponse,
    summary="Get monthly leaderboard",
)
async def get_monthly_leaderboard(
    month_year: str | None = Query(None, description="Month in YYYY-MM format"),
    user_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(
        settings.api_pagination_default_limit, ge=1, le=settings.api_pagination_max_limit
    ),
    db: AsyncSession = Depends(get_db),
) -> MonthlyLeaderboardResponse:
    """Get one month's ranking, defaulting to the current month."""
    month_year = validate_month_year(month_year) if month_year else current_month_year()
    service = LeaderboardService(db)
    entries, total, user_rank = await service.get_monthly_leaderboard(
        month_year, user_id, page, page_size
    )
    return MonthlyLeaderboardResponse(
        month_year=month_year,
        entries=[MonthlyLeaderboardEntry.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size,
        user_rank=user_rank,
    )


@router.get(
    "/alltime",
    response_model=AlltimeLeaderboardResponse,
    summary="Get all-time leaderboard",
)
async def get_alltime_leaderboard(
    user_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(
        settings.api_pagination_default_limit, ge=1, le=settings.api_pagination_max_limit
    ),
    db: AsyncSession = Depends(get_db),
) -> AlltimeLeaderboardResponse:
    service = LeaderboardService(db)
    entries, total, user_rank = await service.get_alltime_leaderboard(user_id, page, page_size)
    return AlltimeLeaderboardResponse(
        entries=[AlltimeLeaderboardEntry.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size,
        user_rank=user_rank,
    )


@router.get(
    "/winners",
    response_model=list[MonthlyWinnerEntry],
    summary="Get captured monthly winners",
)
async def get_monthly_winners(
    month_year: str | None = Query(None, description="Month in YYYY-MM format"),
    db: AsyncSession = Depends(get_db),
) -> list[MonthlyWinnerEntry]:
    """Historical top-3 snapshots, unaffected by later leaderboard changes."""
    if month_year:
        month_year = validate_month_year(month_year)
    service = LeaderboardService(db)
    winners = await service.get_monthly_winners(month_year)
    return [MonthlyWinnerEntry.model_validate(w) for w in winners]
