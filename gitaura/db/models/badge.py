from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gitaura.db.models.base import Base, TimestampMixin, utcnow


class BadgeRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class Badge(Base, TimestampMixin):
    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(32))
    color: Mapped[str | None] = mapped_column(String(16))
    rarity: Mapped[BadgeRarity] = mapped_column(String(20), default=BadgeRarity.COMMON)
    is_monthly: Mapped[bool] = mapped_column(default=False)
    is_active: Mapped[bool] = mapped_column(default=True)
    criteria: Mapped[dict | None] = mapped_column(JSONB)

    # Relationships
    grants = relationship("UserBadge", back_populates="badge", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Badge {self.name}>"


class UserBadge(Base):
    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("github_users.id", ondelete="CASCADE"),
        nullable=False,
    )
    badge_id: Mapped[int] = mapped_column(
        ForeignKey("badges.id", ondelete="CASCADE"),
        nullable=False,
    )
    month_year: Mapped[str] = mapped_column(String(7), nullable=False)
    rank: Mapped[int | None] = mapped_column()
    # "metadata" is reserved by the declarative base
    extra_data: Mapped[dict | None] = mapped_column("metadata", JSONB)
    awarded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    user = relationship("GitHubUser", back_populates="badges")
    badge = relationship("Badge", back_populates="grants")

    __table_args__ = (
        Index("idx_user_badges_grant", "user_id", "badge_id", "month_year", unique=True),
        Index("idx_user_badges_month", "month_year"),
    )

    def __repr__(self) -> str:
        return f"<UserBadge user_id={self.user_id} badge_id={self.badge_id} month={self.month_year}>"
