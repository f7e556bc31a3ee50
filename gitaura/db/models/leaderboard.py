from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gitaura.db.models.base import Base, TimestampMixin, utcnow


class WriteSource(str, Enum):
    LIVE = "live"
    AUTHORITATIVE = "authoritative"


class MonthlyLeaderboard(Base, TimestampMixin):
    __tablename__ = "monthly_leaderboards"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("github_users.id", ondelete="CASCADE"),
        nullable=False,
    )
    month_year: Mapped[str] = mapped_column(String(7), nullable=False)
    total_aura: Mapped[int] = mapped_column(default=0)
    contributions_count: Mapped[int] = mapped_column(default=0)
    active_days: Mapped[int] = mapped_column(default=0)
    rank: Mapped[int] = mapped_column(nullable=False)

    # Write bookkeeping for the live/authoritative merge policy
    write_source: Mapped[WriteSource] = mapped_column(String(20), default=WriteSource.LIVE)
    last_authoritative_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(default=1)

    # Relationships
    user = relationship("GitHubUser", back_populates="monthly_leaderboard_entries")

    __table_args__ = (
        Index("idx_monthly_leaderboard_user_month", "user_id", "month_year", unique=True),
        Index("idx_monthly_leaderboard_month_rank", "month_year", "rank"),
        Index("idx_monthly_leaderboard_month_score", "month_year", "total_aura"),
    )

    def __repr__(self) -> str:
        return f"<MonthlyLeaderboard user_id={self.user_id} month={self.month_year} rank={self.rank}>"


class GlobalLeaderboard(Base, TimestampMixin):
    __tablename__ = "global_leaderboard"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("github_users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    total_aura: Mapped[int] = mapped_column(default=0)
    yearly_aura: Mapped[int] = mapped_column(default=0)
    year: Mapped[str] = mapped_column(String(4), nullable=False)
    rank: Mapped[int] = mapped_column(nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    user = relationship("GitHubUser", back_populates="global_leaderboard_entry")

    __table_args__ = (
        Index("idx_global_leaderboard_rank", "rank"),
        Index("idx_global_leaderboard_score", "total_aura"),
    )

    def __repr__(self) -> str:
        return f"<GlobalLeaderboard user_id={self.user_id} rank={self.rank}>"
