from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gitaura.api.schemas.contributions import ContributionSeries, GitHubProfile
from gitaura.core.config import settings
from gitaura.core.exceptions import AuraError, InvalidInputError, UserNotFoundError
from gitaura.db.database import insert_if_absent
from gitaura.db.models.aura import AuraCalculation
from gitaura.db.models.leaderboard import WriteSource
from gitaura.db.models.user import GitHubUser
from gitaura.services.ban_service import BanService
from gitaura.services.github_service import GitHubService
from gitaura.services.leaderboard_service import LeaderboardService
from gitaura.services.scoring_service import (
    MonthlySummary,
    ScoringPolicy,
    base_aura,
    default_policy,
    quality_bonus,
    streak_bonus,
    summarize_month,
    total_aura,
)
from gitaura.services.streak_service import (
    calculate_longest_streak,
    calculate_streak,
    last_contribution_date,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class AuraResult:
    user_id: int
    total_aura: int
    current_streak: int
    longest_streak: int
    daily_aura: int
    monthly: MonthlySummary
    monthly_updated: bool
    leaderboards_updated: bool


class AuraService:
    """Aggregates scores for one user and writes them to the leaderboards.

    Writes happen in a fixed order within a call: the per-day breakdown is
    flushed before either leaderboard row is touched. Ranks are left to the
    rank recalculator.
    """

    def __init__(
        self,
        db: AsyncSession,
        github: GitHubService | None = None,
        policy: ScoringPolicy | None = None,
    ) -> None:
        self.db = db
        self.github = github
        self.policy = policy or default_policy()
        self.leaderboards = LeaderboardService(db)
        self.bans = BanService(db)

    async def _get_user(self, user_id: int) -> GitHubUser:
        result = await self.db.execute(select(GitHubUser).where(GitHubUser.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def _fetch_profile(self, username: str) -> GitHubProfile | None:
        if self.github is None:
            return None
        try:
            return await self.github.get_user_profile(username)
        except AuraError as e:
            # Quality bonus degrades to zero; the score is still computed
            logger.warning("Profile unavailable, quality bonus is 0", username=username, error=e.message)
            return None

    async def _get_daily_breakdown(self, user_id: int, day: date) -> AuraCalculation | None:
        result = await self.db.execute(
            select(AuraCalculation).where(
                AuraCalculation.user_id == user_id,
                AuraCalculation.date == day,
            )
        )
        return result.scalar_one_or_none()

    async def _upsert_daily_breakdown(
        self,
        user_id: int,
        day: date,
        contributions: int,
        streak: int,
        profile: GitHubProfile | None,
    ) -> AuraCalculation:
        base = base_aura(contributions, self.policy)
        bonus = streak_bonus(streak, self.policy)
        quality = quality_bonus(profile, self.policy)

        calculation = await self._get_daily_breakdown(user_id, day)
        if calculation is None:
            calculation = AuraCalculation(user_id=user_id, date=day, contributions_count=contributions)
            if not await insert_if_absent(self.db, calculation):
                # Another request scored this user for the same day first
                calculation = await self._get_daily_breakdown(user_id, day)

        calculation.contributions_count = contributions
        calculation.base_aura = base
        calculation.streak_bonus = bonus
        calculation.consistency_bonus = 0
        calculation.quality_bonus = quality
        calculation.total_aura = base + bonus + quality
        calculation.profile_snapshot = profile.model_dump(mode="json") if profile else None

        await self.db.flush()
        return calculation

    async def calculate_and_store(
        self,
        user_id: int,
        series: ContributionSeries,
        profile: GitHubProfile | None = None,
        source: WriteSource = WriteSource.LIVE,
        now: datetime | None = None,
    ) -> AuraResult:
        """Score a contribution series and persist the results for one user."""
        if user_id is None:
            raise InvalidInputError("user_id is required")
        if series is None:
            raise InvalidInputError("contribution series is required")

        now = now or datetime.now(UTC)
        today = now.date()
        user = await self._get_user(user_id)

        # Days after today are outside the window and ignored
        window_start = today - timedelta(days=settings.contribution_window_days - 1)
        days = [day for day in series.days if day.date <= today]
        windowed = series.between(window_start, today)

        if profile is None:
            profile = await self._fetch_profile(user.username)

        current_streak = calculate_streak(days, today)
        longest_streak = max(user.longest_streak or 0, calculate_longest_streak(days), current_streak)
        score = total_aura(windowed, current_streak, self.policy)
        monthly = summarize_month(days, today.year, today.month, self.policy)
        todays_contributions = next((d.contribution_count for d in days if d.date == today), 0)

        calculation = await self._upsert_daily_breakdown(
            user_id, today, todays_contributions, current_streak, profile
        )

        user.total_aura = score
        user.current_streak = current_streak
        user.longest_streak = longest_streak
        user.last_contribution_date = last_contribution_date(days)
        if profile is not None and profile.avatar_url and not user.avatar_url:
            user.avatar_url = profile.avatar_url
        await self.db.flush()

        ban_status = await self.bans.check_ban_status(user_id, now)
        if ban_status.is_banned:
            logger.info("Skipping leaderboard update for banned user", user_id=user_id)
            return AuraResult(
                user_id=user_id,
                total_aura=score,
                current_streak=current_streak,
                longest_streak=longest_streak,
                daily_aura=calculation.total_aura,
                monthly=monthly,
                monthly_updated=False,
                leaderboards_updated=False,
            )

        await self.leaderboards.upsert_global_entry(user_id, score, now)
        monthly_updated = await self.leaderboards.upsert_monthly_entry(
            user_id, monthly, source, now
        )

        logger.info(
            "Aura calculated",
            user_id=user_id,
            username=user.username,
            total_aura=score,
            monthly_aura=monthly.aura,
            current_streak=current_streak,
            source=source.value,
            monthly_updated=monthly_updated,
        )

        return AuraResult(
            user_id=user_id,
            total_aura=score,
            current_streak=current_streak,
            longest_streak=longest_streak,
            daily_aura=calculation.total_aura,
            monthly=monthly,
            monthly_updated=monthly_updated,
            leaderboards_updated=True,
        )

    async def refresh_user(
        self,
        user_id: int,
        source: WriteSource = WriteSource.AUTHORITATIVE,
        now: datetime | None = None,
    ) -> AuraResult:
        """Fetch fresh GitHub data for a user and score it.

        A contribution fetch failure aborts the whole operation with
        ``UpstreamFetchError``; there is nothing to score without it.
        """
        if self.github is None:
            raise InvalidInputError("A GitHub client is required to refresh a user")

        user = await self._get_user(user_id)
        series = await self.github.get_contributions(user.username, now=now)
        return await self.calculate_and_store(user_id, series, source=source, now=now)
