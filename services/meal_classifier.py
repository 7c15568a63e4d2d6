"""Map a local hour of day to a meal-type bucket."""

from schemas.meal_schema import MealType

# Half-open [start, end) hour ranges; every other hour is a snack.
MEAL_WINDOWS = (
    (5, 10, MealType.breakfast),
    (11, 14, MealType.lunch),
    (17, 21, MealType.dinner),
)


def classify_meal(hour: int) -> MealType:
    """Return the meal type for a local hour in ``0..23``.

    Hours outside the breakfast, lunch and dinner windows, including the
    gaps between them, are classified as `MealType.snack`.
    """
    for start, end, meal_type in MEAL_WINDOWS:
        if start <= hour < end:
            return meal_type
    return MealType.snack
