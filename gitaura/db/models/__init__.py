from gitaura.db.models.aura import AuraCalculation
from gitaura.db.models.badge import Badge, BadgeRarity, UserBadge
from gitaura.db.models.base import Base
from gitaura.db.models.leaderboard import GlobalLeaderboard, MonthlyLeaderboard, WriteSource
from gitaura.db.models.user import GitHubUser
from gitaura.db.models.winners import MonthlyWinner

__all__ = [
    "Base",
    "GitHubUser",
    "AuraCalculation",
    "MonthlyLeaderboard",
    "GlobalLeaderboard",
    "WriteSource",
    "Badge",
    "BadgeRarity",
    "UserBadge",
    "MonthlyWinner",
]
