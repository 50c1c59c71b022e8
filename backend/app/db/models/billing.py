"""Plan, subscription and monthly usage ORM models."""

from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db.base import Base
from backend.app.db.mixins import TimestampMixin, UserScopedMixin


class Plan(Base):
    """Subscription plan catalogue."""

    __tablename__ = "plans"

    id: Mapped[str] = mapped_column(Text, primary_key=True)  # free | pro | business
    name: Mapped[str] = mapped_column(Text, nullable=False)
    analysis_limit: Mapped[int] = mapped_column(
        Integer, nullable=False
    )  # -1 = unlimited

    def __repr__(self) -> str:
        return f"<Plan(id={self.id!r}, analysis_limit={self.analysis_limit})>"


class Subscription(UserScopedMixin, TimestampMixin, Base):
    """A user's subscription to a plan (maintained by the billing webhook)."""

    __tablename__ = "subscriptions"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    plan_id: Mapped[str] = mapped_column(
        ForeignKey("plans.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="active"
    )  # active | canceled | past_due

    plan: Mapped[Plan] = relationship("Plan", lazy="joined")

    def __repr__(self) -> str:
        return f"<Subscription(user_id={self.user_id}, plan_id={self.plan_id!r}, status={self.status!r})>"


class Usage(UserScopedMixin, TimestampMixin, Base):
    """Per-user, per-month analysis counter."""

    __tablename__ = "usage"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period: Mapped[str] = mapped_column(Text, nullable=False)  # 'YYYY-MM'
    analysis_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # The period-qualified key is what makes each month start from zero
    __table_args__ = (UniqueConstraint("user_id", "period", name="uq_usage_user_period"),)

    def __repr__(self) -> str:
        return f"<Usage(user_id={self.user_id}, period={self.period!r}, count={self.analysis_count})>"
