"""Meals API router.

Upload a meal photo, list a day's meals, read, edit and delete single
meals. Meal records are returned in `MealResponse` format.
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session
from datetime import date as date_cls
from typing import List, Optional
import uuid
from database.deps import get_blob_store, get_db, get_ingestor
from core.exceptions import NotFoundError, ValidationError
from core.logger import get_logger
from core.repository import MealRepository
from database import models
from schemas import DailySummary, MealResponse, MealType, MealUpdateRequest, NutritionTotals
from services.blob_store import BlobStore
from services.ingestion import MealIngestor, PhotoUpload

logger = get_logger("api.meals")
router = APIRouter(tags=["meals"])

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def _today() -> str:
    return date_cls.today().isoformat()


def _load_meal(meal_id: str, repo: MealRepository) -> models.Meal:
    """Fetch a meal or raise: 400 for a malformed id, 404 for an unknown one."""
    try:
        uuid.UUID(meal_id)
    except ValueError:
        raise ValidationError(f"Malformed meal id '{meal_id}'", field="id")
    meal = repo.get_by_id(meal_id)
    if meal is None:
        raise NotFoundError("Meal", meal_id)
    return meal


def _add(totals: NutritionTotals, meal: models.Meal) -> None:
    totals.calories += meal.calories
    totals.protein += meal.protein
    totals.carbs += meal.carbs
    totals.fat += meal.fat


@router.get("/meals", response_model=List[MealResponse])
def list_meals(
    date: Optional[str] = Query(None, pattern=DATE_PATTERN, description="YYYY-MM-DD, defaults to today"),
    db: Session = Depends(get_db),
):
    """Return the meals logged on `date`, earliest capture time first."""
    day = date or _today()
    return MealRepository(db).list_by_date(day)


@router.get("/meals/summary", response_model=DailySummary)
def daily_summary(
    date: Optional[str] = Query(None, pattern=DATE_PATTERN, description="YYYY-MM-DD, defaults to today"),
    db: Session = Depends(get_db),
):
    """Return daily and per-meal-type nutrition totals for `date`."""
    day = date or _today()
    meals = MealRepository(db).list_by_date(day)

    totals = NutritionTotals()
    by_meal_type = {}
    for meal in meals:
        _add(totals, meal)
        _add(by_meal_type.setdefault(MealType(meal.meal_type), NutritionTotals()), meal)

    return DailySummary(
        date=day,
        meal_count=len(meals),
        totals=totals,
        by_meal_type=by_meal_type,
        meals=[MealResponse.model_validate(meal) for meal in meals],
    )


@router.post("/meals", response_model=MealResponse)
def create_meal(
    photo: Optional[UploadFile] = File(None),
    timestamp: Optional[str] = Form(None),
    hour: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    ingestor: MealIngestor = Depends(get_ingestor),
):
    """Ingest an uploaded meal photo and return the stored meal.

    Raises:
        ValidationError: If no photo was uploaded.
        IngestionError: If the photo could not be processed or stored.
    """
    if photo is None or not photo.filename:
        raise ValidationError("No photo provided", field="photo")

    upload = PhotoUpload(
        data=photo.file.read(),
        filename=photo.filename,
        timestamp=timestamp,
        hour=hour,
    )
    logger.info("Ingesting photo %s (%d bytes)", upload.filename, len(upload.data))
    return ingestor.ingest(db, upload)


@router.get("/meals/{meal_id}", response_model=MealResponse)
def get_meal(meal_id: str, db: Session = Depends(get_db)):
    return _load_meal(meal_id, MealRepository(db))


@router.patch("/meals/{meal_id}", response_model=MealResponse)
def update_meal(meal_id: str, payload: MealUpdateRequest, db: Session = Depends(get_db)):
    """Apply a partial update; fields that are not sent stay unchanged."""
    repo = MealRepository(db)
    meal = _load_meal(meal_id, repo)
    changes = payload.changes()
    if changes:
        logger.info("Updating meal %s: %s", meal_id, sorted(changes))
    return repo.update_fields(meal, changes)


@router.delete("/meals/{meal_id}")
def delete_meal(
    meal_id: str,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
):
    """Delete a meal and its photo.

    The photo is removed before the record. If the record delete then
    fails, the record is left pointing at a missing image.
    """
    repo = MealRepository(db)
    meal = _load_meal(meal_id, repo)
    blob_store.delete(meal.photo_path)
    repo.delete(meal)
    logger.info("Deleted meal %s", meal_id)
    return {"success": True}
