from datetime import datetime

from pydantic import BaseModel


class LeaderboardUserInfo(BaseModel):
    id: int
    username: str
    display_name: str | None
    avatar_url: str | None
    current_streak: int

    model_config = {"from_attributes": True}


class BadgeInfo(BaseModel):
    name: str
    description: str | None
    icon: str | None
    color: str | None
    rarity: str
    month_year: str
    rank: int | None


class MonthlyLeaderboardEntry(BaseModel):
    rank: int | None
    user: LeaderboardUserInfo
    total_aura: int
    contributions_count: int
    active_days: int
    badges: list[BadgeInfo] = []


class AlltimeLeaderboardEntry(BaseModel):
    rank: int | None
    user: LeaderboardUserInfo
    total_aura: int
    yearly_aura: int
    last_updated: datetime | None


class MonthlyLeaderboardResponse(BaseModel):
    month_year: str
    entries: list[MonthlyLeaderboardEntry]
    total: int
    page: int
    page_size: int
    user_rank: int | None = None


class AlltimeLeaderboardResponse(BaseModel):
    entries: list[AlltimeLeaderboardEntry]
    total: int
    page: int
    page_size: int
    user_rank: int | None = None


class MonthlyWinnerEntry(BaseModel):
    month_year: str
    rank: int
    user: LeaderboardUserInfo
    total_aura: int
    contributions_count: int
    badge_awarded: bool
    captured_at: datetime | None
