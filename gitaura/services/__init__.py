from gitaura.services.aura_service import AuraService
from gitaura.services.badge_service import BadgeService
from gitaura.services.ban_service import BanService
from gitaura.services.github_service import GitHubService
from gitaura.services.leaderboard_service import LeaderboardService
from gitaura.services.rank_service import RankService

__all__ = [
    "AuraService",
    "BadgeService",
    "BanService",
    "GitHubService",
    "LeaderboardService",
    "RankService",
]
