import datetime as dt

from sqlalchemy import Date, ForeignKey, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gitaura.db.models.base import Base, TimestampMixin


class AuraCalculation(Base, TimestampMixin):
    """Per-day score breakdown, one row per user per day."""

    __tablename__ = "aura_calculations"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("github_users.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    contributions_count: Mapped[int] = mapped_column(default=0)
    base_aura: Mapped[int] = mapped_column(default=0)
    streak_bonus: Mapped[int] = mapped_column(default=0)
    consistency_bonus: Mapped[int] = mapped_column(default=0)
    quality_bonus: Mapped[int] = mapped_column(default=0)
    total_aura: Mapped[int] = mapped_column(default=0)
    profile_snapshot: Mapped[dict | None] = mapped_column(JSONB)

    # Relationships
    user = relationship("GitHubUser", back_populates="aura_calculations")

    __table_args__ = (
        Index("idx_aura_calculations_user_date", "user_id", "date", unique=True),
    )

    def __repr__(self) -> str:
        return f"<AuraCalculation user_id={self.user_id} date={self.date} total={self.total_aura}>"
