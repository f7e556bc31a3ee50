from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from gitaura.core.config import settings
from gitaura.db.database import insert_if_absent
from gitaura.db.models.badge import Badge, BadgeRarity, UserBadge
from gitaura.db.models.leaderboard import MonthlyLeaderboard
from gitaura.db.models.user import GitHubUser
from gitaura.db.models.winners import MonthlyWinner
from gitaura.services.rank_service import validate_month_year

logger = structlog.get_logger()


@dataclass(frozen=True)
class MonthlyBadgeDefinition:
    position: int
    name: str
    description: str
    icon: str
    color: str
    rarity: BadgeRarity


TOP_3_BADGES = (
    MonthlyBadgeDefinition(
        position=1,
        name="Monthly Champion",
        description="Crowned #1 developer of the month!",
        icon="🏆",
        color="#FFD700",
        rarity=BadgeRarity.LEGENDARY,
    ),
    MonthlyBadgeDefinition(
        position=2,
        name="Monthly Runner-up",
        description="Amazing work! Secured the #2 position!",
        icon="🥈",
        color="#C0C0C0",
        rarity=BadgeRarity.EPIC,
    ),
    MonthlyBadgeDefinition(
        position=3,
        name="Monthly Bronze",
        description="Excellent performance! Earned the #3 spot!",
        icon="🥉",
        color="#CD7F32",
        rarity=BadgeRarity.RARE,
    ),
)


def monthly_badge_name(definition: MonthlyBadgeDefinition, month_year: str) -> str:
    return f"{definition.name} - {month_year}"


@dataclass(frozen=True)
class BadgeGrant:
    position: int
    user_id: int
    badge_name: str
    total_aura: int
    newly_awarded: bool


class BadgeService:
    """Awards positional badges to a month's top entries and snapshots winners.

    Every step is create-if-absent, so the whole process can run any number
    of times for the same month and converge on the same grants.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _get_badge(self, name: str) -> Badge | None:
        result = await self.db.execute(select(Badge).where(Badge.name == name))
        return result.scalar_one_or_none()

    async def ensure_monthly_badges(self, month_year: str) -> list[Badge]:
        """Upsert this month's positional badge definitions, ordered by position."""
        month_year = validate_month_year(month_year)
        badges = []
        for definition in TOP_3_BADGES[: settings.monthly_badge_positions]:
            name = monthly_badge_name(definition, month_year)
            badge = await self._get_badge(name)
            if badge is None:
                badge = Badge(
                    name=name,
                    description=definition.description,
                    icon=definition.icon,
                    color=definition.color,
                    is_monthly=True,
                    criteria={"rank": definition.position, "monthYear": month_year},
                    rarity=definition.rarity,
                )
                if not await insert_if_absent(self.db, badge):
                    badge = await self._get_badge(name)
            badge.description = definition.description
            badge.icon = definition.icon
            badge.color = definition.color
            badge.is_active = True
            badges.append(badge)

        await self.db.commit()
        return badges

    async def get_top_entries(self, month_year: str, limit: int = 3) -> list[MonthlyLeaderboard]:
        """Current top entries of a month by score, banned users excluded."""
        result = await self.db.execute(
            select(MonthlyLeaderboard)
            .join(GitHubUser, MonthlyLeaderboard.user_id == GitHubUser.id)
            .options(joinedload(MonthlyLeaderboard.user))
            .where(
                MonthlyLeaderboard.month_year == month_year,
                GitHubUser.is_banned.is_(False),
            )
            .order_by(
                MonthlyLeaderboard.total_aura.desc(),
                MonthlyLeaderboard.contributions_count.desc(),
                GitHubUser.current_streak.desc(),
                MonthlyLeaderboard.user_id,
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    async def _has_grant(self, user_id: int, badge_id: int, month_year: str) -> bool:
        result = await self.db.execute(
            select(UserBadge.id).where(
                UserBadge.user_id == user_id,
                UserBadge.badge_id == badge_id,
                UserBadge.month_year == month_year,
            )
        )
        return result.scalar_one_or_none() is not None

    async def _grant_if_absent(
        self,
        user_id: int,
        badge_id: int,
        position: int,
        month_year: str,
        snapshot: dict,
    ) -> bool:
        if await self._has_grant(user_id, badge_id, month_year):
            return False

        now = datetime.now(UTC)
        grant = UserBadge(
            user_id=user_id,
            badge_id=badge_id,
            month_year=month_year,
            rank=position,
            awarded_at=now,
            extra_data={**snapshot, "awardedAt": now.isoformat()},
        )
        if not await insert_if_absent(self.db, grant):
            logger.info(
                "Badge already granted by a concurrent run",
                user_id=user_id,
                badge_id=badge_id,
                month_year=month_year,
            )
            return False
        await self.db.commit()
        return True

    async def _award_positions(
        self,
        month_year: str,
        standings: list[tuple[int, int, int, int]],
    ) -> list[BadgeGrant]:
        """Grant positional badges for ``(position, user_id, total_aura, contributions)`` rows."""
        badges = await self.ensure_monthly_badges(month_year)
        # Plain values, unaffected by a grant whose savepoint rolls back
        badge_by_position = {
            position: (badge.id, badge.name) for position, badge in enumerate(badges, start=1)
        }

        grants = []
        for position, user_id, total_aura, contributions in standings:
            if position not in badge_by_position:
                continue
            badge_id, badge_name = badge_by_position[position]
            awarded = await self._grant_if_absent(
                user_id,
                badge_id,
                position,
                month_year,
                {"totalAura": total_aura, "contributionsCount": contributions},
            )
            if awarded:
                logger.info("Awarded badge", badge=badge_name, user_id=user_id, position=position)
            grants.append(
                BadgeGrant(
                    position=position,
                    user_id=user_id,
                    badge_name=badge_name,
                    total_aura=total_aura,
                    newly_awarded=awarded,
                )
            )

        logger.info(
            "Badge awarding completed",
            month_year=month_year,
            awarded=sum(1 for g in grants if g.newly_awarded),
        )
        return grants

    async def award_monthly_badges(self, month_year: str) -> list[BadgeGrant]:
        """Award badges to the month's current top entries."""
        month_year = validate_month_year(month_year)
        top_entries = await self.get_top_entries(month_year, limit=settings.monthly_badge_positions)

        if not top_entries:
            logger.info("No users found in monthly leaderboard", month_year=month_year)
            return []

        standings = [
            (position, entry.user_id, entry.total_aura, entry.contributions_count)
            for position, entry in enumerate(top_entries, start=1)
        ]
        return await self._award_positions(month_year, standings)

    async def capture_monthly_winners(self, month_year: str) -> list[MonthlyWinner]:
        """Snapshot the month's top 3 and award badges to the snapshot.

        Positions already captured are never rewritten. Free positions are
        filled in standings order from users not yet captured, and badges
        follow the captured winners rather than the live standings.
        """
        month_year = validate_month_year(month_year)
        positions = settings.monthly_badge_positions

        existing = await self._captured_winners(month_year)
        taken_ranks = {rank for rank, *_ in existing}
        taken_users = {user_id for _, user_id, *_ in existing}
        free_ranks = [rank for rank in range(1, positions + 1) if rank not in taken_ranks]

        if free_ranks:
            top_entries = await self.get_top_entries(month_year, limit=positions + len(existing))
            candidates = [entry for entry in top_entries if entry.user_id not in taken_users]
            for rank, entry in zip(free_ranks, candidates):
                winner = MonthlyWinner(
                    month_year=month_year,
                    rank=rank,
                    user_id=entry.user_id,
                    total_aura=entry.total_aura,
                    contributions_count=entry.contributions_count,
                )
                if await insert_if_absent(self.db, winner):
                    logger.info(
                        "Captured monthly winner", month_year=month_year, rank=rank, user_id=entry.user_id
                    )
                else:
                    # A concurrent capture got there first; its snapshot stands
                    logger.info("Monthly winner already captured", month_year=month_year, rank=rank)
            await self.db.commit()

        standings = await self._captured_winners(month_year)
        await self._award_positions(month_year, standings)

        await self.db.execute(
            update(MonthlyWinner)
            .where(MonthlyWinner.month_year == month_year)
            .values(badge_awarded=True)
        )
        await self.db.commit()

        result = await self.db.execute(
            select(MonthlyWinner)
            .where(MonthlyWinner.month_year == month_year)
            .order_by(MonthlyWinner.rank)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _captured_winners(self, month_year: str) -> list[tuple[int, int, int, int]]:
        """``(rank, user_id, total_aura, contributions)`` rows already captured."""
        result = await self.db.execute(
            select(
                MonthlyWinner.rank,
                MonthlyWinner.user_id,
                MonthlyWinner.total_aura,
                MonthlyWinner.contributions_count,
            )
            .where(MonthlyWinner.month_year == month_year)
            .order_by(MonthlyWinner.rank)
        )
        return [tuple(row) for row in result.all()]
