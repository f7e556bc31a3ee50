from datetime import datetime

from pydantic import BaseModel, Field

from gitaura.api.schemas.contributions import ContributionDay, GitHubProfile


class AuraSyncRequest(BaseModel):
    user_id: int
    contribution_days: list[ContributionDay] = Field(..., alias="contributionDays")
    profile: GitHubProfile | None = None

    model_config = {"populate_by_name": True}


class MonthlyAuraInfo(BaseModel):
    month_year: str
    contributions: int
    active_days: int
    days_in_month: int
    aura: int

    model_config = {"from_attributes": True}


class AuraResponse(BaseModel):
    user_id: int
    total_aura: int
    current_streak: int
    longest_streak: int
    daily_aura: int
    monthly: MonthlyAuraInfo
    monthly_updated: bool
    leaderboards_updated: bool

    model_config = {"from_attributes": True}


class BanRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)
    expires_at: datetime | None = None
    banned_by: str | None = None


class BanResponse(BaseModel):
    user_id: int
    is_banned: bool
    removed_monthly_rows: int = 0
    removed_global_rows: int = 0


class RankRecalculationResponse(BaseModel):
    partition: str
    total: int
    changed: int
    purged: int

    model_config = {"from_attributes": True}


class BadgeGrantResponse(BaseModel):
    position: int
    user_id: int
    badge_name: str
    total_aura: int
    newly_awarded: bool

    model_config = {"from_attributes": True}
