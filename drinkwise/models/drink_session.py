from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from drinkwise.models.base import Base


class DrinkSession(Base):
    """Bounded window of drink logging owned by one user."""

    __tablename__ = "sessions"
    __table_args__ = (
        # at most one active session per user
        Index(
            "uq_sessions_user_active",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False, default="Session")
    start_time = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    end_time = Column(DateTime(timezone=True))
    is_active = Column(Boolean, nullable=False, default=True)
    # bumped on every end/resume/auto-close; guards concurrent transitions
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    drinks = relationship(
        "Drink",
        back_populates="session",
        order_by="Drink.timestamp",
        lazy="selectin",
        passive_deletes=True,
    )
