from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from drinkwise.models.base import Base

DEFAULT_DRINK_NAME = "Standard Drink"


class Drink(Base):
    __tablename__ = "drinks"
    __table_args__ = (
        CheckConstraint("units > 0", name="drinks_units_check"),
        CheckConstraint("buzz_level BETWEEN 0 AND 10", name="drinks_buzz_level_check"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    units = Column(Float, nullable=False)
    buzz_level = Column(Integer, nullable=False)
    drink_name = Column(String(255), nullable=False, default=DEFAULT_DRINK_NAME)
    notes = Column(String)
    timestamp = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    session = relationship("DrinkSession", back_populates="drinks")
