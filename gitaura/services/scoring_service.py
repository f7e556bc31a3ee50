"""Aura score policy and pure scoring functions.

All functions are deterministic and side-effect free: given the same
inputs and the same ``ScoringPolicy`` they return the same value, which the
aggregator relies on when the same user is scored by concurrent requests.
"""

import calendar
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache

from gitaura.api.schemas.contributions import ContributionDay, GitHubProfile
from gitaura.core.config import Settings, get_settings


@dataclass(frozen=True)
class ScoringPolicy:
    zero_contribution_penalty: int
    base_tiers: tuple[tuple[int, int], ...]
    top_tier_multiplier: int
    streak_bonus_tiers: tuple[tuple[int, int], ...]
    consistency_bonus_max: int
    active_day_points: int
    repo_bonus_tiers: tuple[tuple[int, int], ...]
    follower_bonus_tiers: tuple[tuple[int, int], ...]
    bio_bonus: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringPolicy":
        return cls(
            zero_contribution_penalty=settings.aura_zero_contribution_penalty,
            base_tiers=tuple(settings.aura_base_tiers),
            top_tier_multiplier=settings.aura_top_tier_multiplier,
            streak_bonus_tiers=tuple(settings.aura_streak_bonus_tiers),
            consistency_bonus_max=settings.aura_consistency_bonus_max,
            active_day_points=settings.aura_active_day_points,
            repo_bonus_tiers=tuple(settings.aura_repo_bonus_tiers),
            follower_bonus_tiers=tuple(settings.aura_follower_bonus_tiers),
            bio_bonus=settings.aura_bio_bonus,
        )


@lru_cache
def default_policy() -> ScoringPolicy:
    return ScoringPolicy.from_settings(get_settings())


@dataclass(frozen=True)
class MonthlySummary:
    month_year: str
    contributions: int
    active_days: int
    days_in_month: int
    aura: int


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _highest_tier(value: int, tiers: Iterable[tuple[int, int]]) -> int:
    """Bonus of the highest tier whose threshold ``value`` reaches, else 0."""
    bonus = 0
    for threshold, tier_bonus in tiers:
        if value >= threshold:
            bonus = tier_bonus
    return bonus


def base_aura(contributions: int, policy: ScoringPolicy | None = None) -> int:
    """Tiered linear scaling: busier days earn a higher per-contribution rate."""
    policy = policy or default_policy()
    if contributions <= 0:
        return policy.zero_contribution_penalty
    for upper_bound, multiplier in policy.base_tiers:
        if contributions <= upper_bound:
            return contributions * multiplier
    return contributions * policy.top_tier_multiplier


def streak_bonus(streak: int, policy: ScoringPolicy | None = None) -> int:
    policy = policy or default_policy()
    return _highest_tier(streak, policy.streak_bonus_tiers)


def consistency_bonus(
    active_days: int,
    days_in_month: int,
    policy: ScoringPolicy | None = None,
) -> int:
    policy = policy or default_policy()
    if days_in_month <= 0 or active_days <= 0:
        return 0
    ratio = min(active_days, days_in_month) / days_in_month
    # Round half up, not half to even
    return int(ratio * policy.consistency_bonus_max + 0.5)


def quality_bonus(profile: GitHubProfile | None, policy: ScoringPolicy | None = None) -> int:
    """Bonus from static profile signals; missing profile data scores 0."""
    if profile is None:
        return 0
    policy = policy or default_policy()
    bonus = _highest_tier(profile.public_repos, policy.repo_bonus_tiers)
    bonus += _highest_tier(profile.followers, policy.follower_bonus_tiers)
    if profile.bio and profile.bio.strip():
        bonus += policy.bio_bonus
    return bonus


def monthly_aura(
    monthly_contributions: int,
    active_days: int,
    days_in_month: int,
    policy: ScoringPolicy | None = None,
) -> int:
    policy = policy or default_policy()
    return (
        base_aura(monthly_contributions, policy)
        + active_days * policy.active_day_points
        + consistency_bonus(active_days, days_in_month, policy)
    )


def total_aura(
    days: Iterable[ContributionDay],
    current_streak: int,
    policy: ScoringPolicy | None = None,
) -> int:
    """All-time score: daily base aura over the window plus the current streak bonus."""
    policy = policy or default_policy()
    days = list(days)
    if not days:
        return 0
    base = sum(base_aura(day.contribution_count, policy) for day in days)
    return base + streak_bonus(current_streak, policy)


def summarize_month(
    days: Iterable[ContributionDay],
    year: int,
    month: int,
    policy: ScoringPolicy | None = None,
) -> MonthlySummary:
    days_in_month = calendar.monthrange(year, month)[1]
    in_month = [day for day in days if day.date.year == year and day.date.month == month]
    contributions = sum(day.contribution_count for day in in_month)
    active_days = sum(1 for day in in_month if day.contribution_count > 0)
    return MonthlySummary(
        month_year=month_key(year, month),
        contributions=contributions,
        active_days=active_days,
        days_in_month=days_in_month,
        aura=monthly_aura(contributions, active_days, days_in_month, policy),
    )
