"""Database package: ORM models and session helpers."""

from .database import Database
from . import models

__all__ = [
    "Database",
    "models",
]
