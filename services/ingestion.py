"""Photo ingestion pipeline.

Turns one uploaded photo into one persisted `Meal`:

1. reject an empty upload before touching anything,
2. normalize the image,
3. resolve the capture time and classification hour,
4. write the image blob under a fresh id,
5. estimate nutrition,
6. classify the meal type,
7. derive the log date,
8. insert the record pointing at the blob.

The blob is always written before the record. A failure in between leaves
an orphaned image that `BlobStore.collect_orphans` can reclaim, never a
record that points at a missing file.
"""

import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import AppException, IngestionError, ValidationError
from core.logger import get_logger
from core.repository import MealRepository
from database import models
from services.blob_store import BlobStore
from services.image_normalizer import ImageNormalizer
from services.meal_classifier import classify_meal
from services.nutrition_estimator import NutritionEstimator
from services.timestamp_resolver import TimestampResolver

logger = get_logger("services.ingestion")


@dataclass
class PhotoUpload:
    """One upload request as received from the client."""

    data: bytes
    filename: str
    timestamp: Optional[str] = None
    hour: Optional[str] = None


class MealIngestor:
    """Sequences normalization, time resolution, storage and estimation."""

    def __init__(
        self,
        blob_store: BlobStore,
        estimator: NutritionEstimator,
        normalizer: Optional[ImageNormalizer] = None,
        resolver: Optional[TimestampResolver] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.blob_store = blob_store
        self.estimator = estimator
        self.normalizer = normalizer or ImageNormalizer()
        self.resolver = resolver or TimestampResolver()
        self.id_factory = id_factory

    def ingest(self, session: Session, upload: Optional[PhotoUpload]) -> models.Meal:
        """Run the pipeline for one upload and return the persisted meal.

        Raises:
            ValidationError: If no photo was supplied (no side effects).
            IngestionError: If normalization or persistence fails.
        """
        if upload is None or not upload.data:
            raise ValidationError("No photo provided", field="photo")

        try:
            normalized = self.normalizer.normalize(upload.data, upload.filename)
            resolved = self.resolver.resolve(
                client_timestamp=upload.timestamp,
                client_hour=upload.hour,
                image_bytes=normalized.data,
            )

            meal_id = self.id_factory()
            photo_path = self.blob_store.save(meal_id, normalized.data, normalized.extension)

            estimate = self.estimator.estimate(normalized.data)
            meal_type = classify_meal(resolved.classification_hour)

            meal = models.Meal(
                id=meal_id,
                date=resolved.date,
                meal_type=meal_type.value,
                photo_path=photo_path,
                food_name=estimate.food_name,
                calories=estimate.calories,
                protein=estimate.protein,
                carbs=estimate.carbs,
                fat=estimate.fat,
                notes="",
                photo_taken_at=resolved.photo_taken_at.isoformat() if resolved.photo_taken_at else None,
            )
            meal = MealRepository(session).create(meal)
        except AppException as exc:
            session.rollback()
            raise IngestionError(exc.message) from exc
        except (SQLAlchemyError, OSError) as exc:
            session.rollback()
            logger.exception("Failed to persist meal from %s", upload.filename)
            raise IngestionError(str(exc)) from exc

        logger.info(
            "Logged meal %s: %s (%s, %s kcal, time from %s)",
            meal.id,
            meal.food_name,
            meal.meal_type,
            meal.calories,
            resolved.source,
        )
        return meal
