"""Dependency helpers for FastAPI endpoints.

Each collaborator is built once by `create_app` and stored on
``app.state``; these functions hand them to route handlers so tests can
swap in fakes without touching module globals.
"""

from typing import Iterator

from fastapi import Request
from sqlalchemy.orm import Session

from services.blob_store import BlobStore
from services.ingestion import MealIngestor


def get_db(request: Request) -> Iterator[Session]:
    """Yield a request-scoped DB session from the app's `Database`."""
    yield from request.app.state.database.session_scope()


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_ingestor(request: Request) -> MealIngestor:
    return request.app.state.ingestor
