from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gitaura.core.exceptions import BanOperationError, UserNotFoundError
from gitaura.db.models.base import as_utc
from gitaura.db.models.leaderboard import GlobalLeaderboard, MonthlyLeaderboard
from gitaura.db.models.user import GitHubUser

logger = structlog.get_logger()


@dataclass(frozen=True)
class BanStatus:
    is_banned: bool
    reason: str | None = None
    banned_at: datetime | None = None
    expires_at: datetime | None = None
    expired: bool = False


class BanService:
    """Ban administration and the leaderboard consistency guard.

    Banning removes every leaderboard row of the user at once. Unbanning
    restores nothing: the user re-enters the leaderboards through the next
    aura calculation, starting from an unranked row.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _get_user(self, user_id: int) -> GitHubUser:
        result = await self.db.execute(select(GitHubUser).where(GitHubUser.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def remove_from_leaderboards(self, user_id: int) -> dict[str, int]:
        """Delete all of a user's monthly and global leaderboard rows."""
        monthly = await self.db.execute(
            delete(MonthlyLeaderboard).where(MonthlyLeaderboard.user_id == user_id)
        )
        global_ = await self.db.execute(
            delete(GlobalLeaderboard).where(GlobalLeaderboard.user_id == user_id)
        )
        removed = {"monthly": monthly.rowcount or 0, "global": global_.rowcount or 0}
        logger.info("Removed user from leaderboards", user_id=user_id, **removed)
        return removed

    async def ban_user(
        self,
        user_id: int,
        reason: str | None = None,
        expires_at: datetime | None = None,
        banned_by: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, int]:
        """Ban a user and remove their leaderboard rows in the same transaction.

        Raises ``BanOperationError`` if the removal fails; nothing is
        committed in that case and the ban can be retried.
        """
        now = now or datetime.now(UTC)
        user = await self._get_user(user_id)

        try:
            user.is_banned = True
            user.ban_reason = reason
            user.banned_at = now
            user.banned_by = banned_by
            user.ban_expires_at = expires_at
            await self.db.flush()
            removed = await self.remove_from_leaderboards(user_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Ban failed", user_id=user_id, error=str(e))
            raise BanOperationError(f"Failed to ban user {user_id}: {e}") from e

        logger.info(
            "User banned",
            user_id=user_id,
            reason=reason,
            expires_at=expires_at.isoformat() if expires_at else None,
        )
        return removed

    async def unban_user(self, user_id: int) -> None:
        user = await self._get_user(user_id)
        self._clear_ban(user)
        await self.db.commit()
        logger.info("User unbanned", user_id=user_id)

    @staticmethod
    def _clear_ban(user: GitHubUser) -> None:
        user.is_banned = False
        user.ban_reason = None
        user.banned_at = None
        user.banned_by = None
        user.ban_expires_at = None

    async def check_ban_status(self, user_id: int, now: datetime | None = None) -> BanStatus:
        """Current ban state; an expired temporary ban is lifted on the way."""
        now = now or datetime.now(UTC)
        user = await self._get_user(user_id)

        if not user.is_banned:
            return BanStatus(is_banned=False)

        if user.ban_expires_at is not None and now > as_utc(user.ban_expires_at):
            self._clear_ban(user)
            await self.db.flush()
            logger.info("Lifted expired ban", user_id=user_id)
            return BanStatus(is_banned=False, expired=True)

        return BanStatus(
            is_banned=True,
            reason=user.ban_reason,
            banned_at=user.banned_at,
            expires_at=user.ban_expires_at,
        )
