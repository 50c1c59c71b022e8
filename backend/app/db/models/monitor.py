"""Brand monitor, question and check ORM models."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db.base import Base, JSONType
from backend.app.db.mixins import TimestampMixin, UserScopedMixin
from backend.app.db.models.status import RunStatus


class BrandMonitor(UserScopedMixin, TimestampMixin, Base):
    """Brand visibility monitor configuration."""

    __tablename__ = "brand_monitors"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    brand_names: Mapped[list[str]] = mapped_column(JSONType, nullable=False)
    competitor_brands: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )  # [{"name": str, "aliases": [str]}]
    industry_keywords: Mapped[list[str]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    brand_website: Mapped[str] = mapped_column(Text, nullable=False, default="")
    brand_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    locale: Mapped[str] = mapped_column(Text, nullable=False, default="zh")

    questions: Mapped[list["MonitorQuestion"]] = relationship(
        "MonitorQuestion", back_populates="monitor", cascade="all, delete-orphan"
    )
    checks: Mapped[list["MonitorCheck"]] = relationship(
        "MonitorCheck", back_populates="monitor", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<BrandMonitor(id={self.id}, name={self.name!r})>"


class MonitorQuestion(UserScopedMixin, TimestampMixin, Base):
    """Pre-configured buyer-intent question asked during a check."""

    __tablename__ = "monitor_questions"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    monitor_id: Mapped[UUID] = mapped_column(
        ForeignKey("brand_monitors.id", ondelete="CASCADE"), nullable=False
    )
    core_keyword: Mapped[str] = mapped_column(Text, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    intent_type: Mapped[str] = mapped_column(
        Text, nullable=False, default="recommendation"
    )
    search_volume: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    monitor: Mapped[BrandMonitor] = relationship("BrandMonitor", back_populates="questions")

    __table_args__ = (Index("idx_questions_monitor", "monitor_id", "core_keyword", "sort_order"),)


class MonitorCheck(UserScopedMixin, TimestampMixin, Base):
    """One streamed brand monitor check."""

    __tablename__ = "monitor_checks"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    monitor_id: Mapped[UUID] = mapped_column(
        ForeignKey("brand_monitors.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=RunStatus.running.value
    )
    summary: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    detail: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    query_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    engine_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # ms

    monitor: Mapped[BrandMonitor] = relationship("BrandMonitor", back_populates="checks")

    __table_args__ = (Index("idx_checks_monitor_created", "monitor_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<MonitorCheck(id={self.id}, monitor_id={self.monitor_id}, status={self.status!r})>"
