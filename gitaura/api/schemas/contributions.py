"""Validated structs for data coming from GitHub.

Every external field is optional with an explicit default so that callers
never need ad hoc fallbacks.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator


class ContributionDay(BaseModel):
    date: date
    contribution_count: int = Field(0, ge=0, alias="contributionCount")

    model_config = {"populate_by_name": True, "frozen": True}


class ContributionSeries(BaseModel):
    total_contributions: int = Field(0, ge=0, alias="totalContributions")
    days: list[ContributionDay] = Field(default_factory=list, alias="contributionDays")

    model_config = {"populate_by_name": True}

    @field_validator("days")
    @classmethod
    def dedupe_days(cls, v: list[ContributionDay]) -> list[ContributionDay]:
        # Dates should be unique; if not, the last entry seen for a date wins
        by_date: dict[date, ContributionDay] = {}
        for day in v:
            by_date[day.date] = day
        return sorted(by_date.values(), key=lambda d: d.date)

    def between(self, start: date, end: date) -> list[ContributionDay]:
        """Days within [start, end], inclusive."""
        return [day for day in self.days if start <= day.date <= end]


class GitHubProfile(BaseModel):
    login: str | None = None
    name: str | None = None
    bio: str | None = None
    public_repos: int = Field(0, ge=0)
    followers: int = Field(0, ge=0)
    following: int = Field(0, ge=0)
    avatar_url: str | None = None
    created_at: datetime | None = None

    model_config = {"extra": "ignore"}

    @field_validator("public_repos", "followers", "following", mode="before")
    @classmethod
    def none_as_zero(cls, v: int | None) -> int:
        return 0 if v is None else v
