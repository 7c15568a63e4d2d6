"""Pydantic schema package for request and response models."""

from .meal_schema import (
    DailySummary,
    MealResponse,
    MealType,
    MealUpdateRequest,
    NutritionEstimate,
    NutritionTotals,
)

__all__ = [
    "DailySummary",
    "MealResponse",
    "MealType",
    "MealUpdateRequest",
    "NutritionEstimate",
    "NutritionTotals",
]
