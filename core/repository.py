"""Repository classes for database operations.

`BaseRepository` carries the generic CRUD helpers; `MealRepository` adds the
date-partitioned listing and partial-update rules of the food log.
"""

from sqlalchemy.orm import Session
from typing import TypeVar, Generic, Type, Optional, List, Any, Dict
from database.models import Base, Meal

T = TypeVar('T', bound=Base)

# Columns a client may never change after creation.
IMMUTABLE_MEAL_FIELDS = frozenset({"id", "created_at"})


class BaseRepository(Generic[T]):
    """Generic repository for common database operations.

    Attributes:
        model: SQLAlchemy model class to operate on.
        session: Database session for executing queries.
    """

    def __init__(self, model: Type[T], session: Session):
        self.model = model
        self.session = session

    def create(self, obj: T) -> T:
        """Add, commit and refresh a new object."""
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def get_by_id(self, id: Any) -> Optional[T]:
        """Retrieve an object by its primary key, or None if not found."""
        return self.session.get(self.model, id)

    def update(self, obj: T) -> T:
        """Commit changes to an existing object and refresh."""
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def delete(self, obj: T) -> None:
        """Delete an object and commit."""
        self.session.delete(obj)
        self.session.commit()

    def count(self) -> int:
        return self.session.query(self.model).count()


class MealRepository(BaseRepository[Meal]):
    """Record Store for `Meal` rows, keyed by id and partitioned by date."""

    def __init__(self, session: Session):
        super().__init__(Meal, session)

    def list_by_date(self, date: str) -> List[Meal]:
        """Return the meals logged for `date`.

        Ordered by capture time ascending; meals with an unknown capture time
        come last, and ties fall back to creation order.
        """
        return (
            self.session.query(Meal)
            .filter(Meal.date == date)
            .order_by(
                Meal.photo_taken_at.is_(None),
                Meal.photo_taken_at.asc(),
                Meal.created_at.asc(),
            )
            .all()
        )

    def update_fields(self, meal: Meal, fields: Dict[str, Any]) -> Meal:
        """Apply a partial update and commit.

        Keys that are not Meal columns, and the immutable ``id`` and
        ``created_at``, are ignored. An empty update commits nothing.
        """
        columns = set(Meal.__table__.columns.keys()) - IMMUTABLE_MEAL_FIELDS
        changes = {key: value for key, value in fields.items() if key in columns}
        if not changes:
            return meal
        for key, value in changes.items():
            setattr(meal, key, value)
        return self.update(meal)

    def list_ids(self) -> List[str]:
        return [row[0] for row in self.session.query(Meal.id).all()]
