"""SQLAlchemy ORM models for the food log.

The `Meal` row is the only persisted entity. `date` and `meal_type` are
snapshots taken from the resolved capture time at ingestion and are edited
independently of `photo_taken_at` afterwards.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Meal(Base):
    """ORM model for one photographed meal and its nutrition estimate."""

    __tablename__ = "meals"
    id = Column(String(36), primary_key=True)
    date = Column(String(10), nullable=False, index=True)
    meal_type = Column(String, nullable=False)
    photo_path = Column(String, nullable=False)
    food_name = Column(String, nullable=False)
    calories = Column(Integer, nullable=False)
    protein = Column(Integer, nullable=False, default=0)
    carbs = Column(Integer, nullable=False, default=0)
    fat = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=False, default="")
    # ISO-8601 string; NULL means the capture time is unknown.
    photo_taken_at = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
