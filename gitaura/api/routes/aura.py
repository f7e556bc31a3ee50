from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gitaura.api.schemas.aura import AuraResponse, AuraSyncRequest
from gitaura.api.schemas.contributions import ContributionSeries
from gitaura.db import get_db
from gitaura.db.models.leaderboard import WriteSource
from gitaura.services.aura_service import AuraService
from gitaura.services.github_service import GitHubService

router = APIRouter()


def get_github_service() -> GitHubService:
    return GitHubService()


@router.post(
    "/sync",
    response_model=AuraResponse,
    summary="Score a client-supplied contribution series",
)
async def sync_user_aura(
    payload: AuraSyncRequest,
    db: AsyncSession = Depends(get_db),
    github: GitHubService = Depends(get_github_service),
) -> AuraResponse:
    """Low-latency path used on profile views.

    The series comes from the client, so the write is always live: the
    monthly row is left alone if an authoritative refresh wrote it within
    the grace window.
    """
    service = AuraService(db, github)
    series = ContributionSeries(days=payload.contribution_days)
    result = await service.calculate_and_store(
        payload.user_id,
        series,
        profile=payload.profile,
        source=WriteSource.LIVE,
    )
    return AuraResponse.model_validate(result)


@router.post(
    "/{user_id}/refresh",
    response_model=AuraResponse,
    summary="Fetch fresh GitHub data and rescore a user",
)
async def refresh_user_aura(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    github: GitHubService = Depends(get_github_service),
) -> AuraResponse:
    """Authoritative path triggered by an explicit user action."""
    service = AuraService(db, github)
    result = await service.refresh_user(user_id, source=WriteSource.AUTHORITATIVE)
    return AuraResponse.model_validate(result)
