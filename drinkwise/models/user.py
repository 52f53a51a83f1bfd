from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from drinkwise.models.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(320), nullable=False)
    name = Column(String(255))
    google_id = Column(String(255), nullable=False, unique=True)
    picture = Column(String)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


__all__ = ["User"]
