"""Content analysis record ORM model."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.db.base import Base, JSONType
from backend.app.db.mixins import TimestampMixin, UserScopedMixin
from backend.app.db.models.status import RunStatus


class Analysis(UserScopedMixin, TimestampMixin, Base):
    """One streamed content analysis run by a logged-in user."""

    __tablename__ = "analyses"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    content_type: Mapped[str] = mapped_column(Text, nullable=False)  # text | url
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    locale: Mapped[str] = mapped_column(Text, nullable=False, default="zh")
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=RunStatus.running.value
    )
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    results: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # ms

    __table_args__ = (Index("idx_analyses_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<Analysis(id={self.id}, user_id={self.user_id}, status={self.status!r})>"
