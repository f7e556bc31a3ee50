from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gitaura.db.models.base import Base, utcnow


class MonthlyWinner(Base):
    """Top-3 standings captured for a month.

    Rows are never rewritten once captured, so historical winners survive
    later leaderboard changes such as bans. Only ``badge_awarded`` flips.
    """

    __tablename__ = "monthly_winners"

    id: Mapped[int] = mapped_column(primary_key=True)
    month_year: Mapped[str] = mapped_column(String(7), nullable=False)
    rank: Mapped[int] = mapped_column(nullable=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("github_users.id", ondelete="CASCADE"),
        nullable=False,
    )
    total_aura: Mapped[int] = mapped_column(default=0)
    contributions_count: Mapped[int] = mapped_column(default=0)
    badge_awarded: Mapped[bool] = mapped_column(default=False)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    user = relationship("GitHubUser")

    __table_args__ = (
        Index("idx_monthly_winners_month_rank", "month_year", "rank", unique=True),
        Index("idx_monthly_winners_user_month", "user_id", "month_year", unique=True),
    )

    def __repr__(self) -> str:
        return f"<MonthlyWinner month={self.month_year} rank={self.rank} user_id={self.user_id}>"
