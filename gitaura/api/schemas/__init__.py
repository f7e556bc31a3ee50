from gitaura.api.schemas.aura import (
    AuraResponse,
    AuraSyncRequest,
    BadgeGrantResponse,
    BanRequest,
    BanResponse,
    RankRecalculationResponse,
)
from gitaura.api.schemas.contributions import ContributionDay, ContributionSeries, GitHubProfile
from gitaura.api.schemas.leaderboard import (
    AlltimeLeaderboardEntry,
    AlltimeLeaderboardResponse,
    MonthlyLeaderboardEntry,
    MonthlyLeaderboardResponse,
    MonthlyWinnerEntry,
)

__all__ = [
    "ContributionDay",
    "ContributionSeries",
    "GitHubProfile",
    "AuraSyncRequest",
    "AuraResponse",
    "BanRequest",
    "BanResponse",
    "RankRecalculationResponse",
    "BadgeGrantResponse",
    "MonthlyLeaderboardEntry",
    "MonthlyLeaderboardResponse",
    "AlltimeLeaderboardEntry",
    "AlltimeLeaderboardResponse",
    "MonthlyWinnerEntry",
]
