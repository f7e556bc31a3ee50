from datetime import date, datetime

from sqlalchemy import BigInteger, Date, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gitaura.db.models.base import Base, TimestampMixin


class GitHubUser(Base, TimestampMixin):
    __tablename__ = "github_users"

    id: Mapped[int] = mapped_column(primary_key=True)
    github_id: Mapped[int | None] = mapped_column(BigInteger, unique=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255))
    avatar_url: Mapped[str | None] = mapped_column(Text)

    # Denormalized score fields, written by the aura aggregator
    total_aura: Mapped[int] = mapped_column(default=0)
    current_streak: Mapped[int] = mapped_column(default=0)
    longest_streak: Mapped[int] = mapped_column(default=0)
    last_contribution_date: Mapped[date | None] = mapped_column(Date)

    # Ban fields, written by the ban administration path
    is_banned: Mapped[bool] = mapped_column(default=False)
    ban_reason: Mapped[str | None] = mapped_column(Text)
    banned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    banned_by: Mapped[str | None] = mapped_column(String(255))
    ban_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    aura_calculations = relationship(
        "AuraCalculation",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    monthly_leaderboard_entries = relationship(
        "MonthlyLeaderboard",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    global_leaderboard_entry = relationship(
        "GlobalLeaderboard",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    badges = relationship(
        "UserBadge",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_github_users_username", "username"),
        Index("idx_github_users_banned", "is_banned"),
    )

    def __repr__(self) -> str:
        return f"<GitHubUser {self.username}>"
