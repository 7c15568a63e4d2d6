"""Schemas for meal records, partial updates and daily summaries."""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional


class MealType(str, Enum):
    """Time-of-day bucket a meal is filed under."""

    breakfast = "Breakfast"
    lunch = "Lunch"
    dinner = "Dinner"
    snack = "Snack"


class NutritionEstimate(BaseModel):
    """All-or-nothing result of one nutrition estimate."""

    food_name: str
    calories: int = Field(..., ge=0)
    protein: int = Field(..., ge=0)
    carbs: int = Field(..., ge=0)
    fat: int = Field(..., ge=0)


class MealResponse(BaseModel):
    """Representation of a persisted meal in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    date: str
    meal_type: MealType
    photo_path: str
    food_name: str
    calories: int
    protein: int
    carbs: int
    fat: int
    notes: str = ""
    photo_taken_at: Optional[str] = None
    created_at: datetime


class MealUpdateRequest(BaseModel):
    """Partial meal update.

    Every field is optional; fields that are not sent are left untouched and
    unknown keys (including ``id``, ``created_at`` and ``photo_path``) are
    ignored.
    """

    model_config = ConfigDict(extra="ignore")

    date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    meal_type: Optional[MealType] = None
    food_name: Optional[str] = Field(None, min_length=1)
    calories: Optional[int] = Field(None, ge=0)
    protein: Optional[int] = Field(None, ge=0)
    carbs: Optional[int] = Field(None, ge=0)
    fat: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    photo_taken_at: Optional[datetime] = None

    def changes(self) -> Dict[str, object]:
        """Return only the fields the client actually sent.

        An explicit ``null`` is kept for ``photo_taken_at`` (clearing the
        capture time) and dropped for every other field. A capture time is
        stored as local time with its offset, like one set at upload, so
        records of one day sort chronologically. Naive values are read as
        local time.
        """
        changes = {}
        for key, value in self.model_dump(exclude_unset=True).items():
            if key == "photo_taken_at":
                changes[key] = value.astimezone().isoformat() if value is not None else None
            elif isinstance(value, MealType):
                changes[key] = value.value
            elif value is not None:
                changes[key] = value
        return changes


class NutritionTotals(BaseModel):
    calories: int = 0
    protein: int = 0
    carbs: int = 0
    fat: int = 0


class DailySummary(BaseModel):
    """Aggregate totals for one day of the log."""

    date: str
    meal_count: int = Field(0, ge=0)
    totals: NutritionTotals = NutritionTotals()
    by_meal_type: Dict[MealType, NutritionTotals] = {}
    meals: List[MealResponse] = []
