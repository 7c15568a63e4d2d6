"""Application settings.

Settings are read from environment variables by `Settings.from_env()`, after
loading a `.env` file if one exists (variables already set win). They are
passed explicitly into `create_app`, so tests can build an app against a
temporary database and uploads directory.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ[name])
    except (KeyError, TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ[name])
    except (KeyError, TypeError, ValueError):
        return default


@dataclass
class Settings:
    """Runtime configuration for the food log service."""

    database_url: str = "sqlite:///" + str(BASE_DIR / "calories.db")
    uploads_dir: Path = BASE_DIR / "uploads"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_timeout: float = 30.0
    openai_max_retries: int = 1
    image_max_dimension: int = 1600
    image_jpeg_quality: int = 80
    heic_jpeg_quality: int = 90
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "Settings":
        """Build settings from environment variables, falling back to defaults.

        `env_file` defaults to `.env` at the project root.
        """
        load_dotenv(env_file if env_file is not None else BASE_DIR / ".env")
        defaults = cls()
        cors = os.environ.get("CORS_ORIGINS", "*")
        if cors.strip() == "*":
            origins = ["*"]
        else:
            origins = [origin.strip() for origin in cors.split(",") if origin.strip()]

        return cls(
            database_url=os.environ.get("DATABASE_URL") or defaults.database_url,
            uploads_dir=Path(os.environ.get("UPLOADS_DIR") or defaults.uploads_dir).expanduser().resolve(),
            openai_api_key=(os.environ.get("OPENAI_API_KEY") or "").strip() or None,
            openai_model=os.environ.get("OPENAI_VISION_MODEL") or defaults.openai_model,
            openai_timeout=_env_float("OPENAI_TIMEOUT", defaults.openai_timeout),
            openai_max_retries=_env_int("OPENAI_MAX_RETRIES", defaults.openai_max_retries),
            image_max_dimension=_env_int("IMAGE_MAX_DIMENSION", defaults.image_max_dimension),
            image_jpeg_quality=_env_int("IMAGE_JPEG_QUALITY", defaults.image_jpeg_quality),
            heic_jpeg_quality=_env_int("HEIC_JPEG_QUALITY", defaults.heic_jpeg_quality),
            cors_origins=origins,
            log_level=(os.environ.get("LOG_LEVEL") or defaults.log_level).upper(),
        )
