"""Shared fixtures: an app on a temporary database and image root."""
import io

import pytest
from fastapi.testclient import TestClient
from PIL import ExifTags, Image
from pillow_heif import register_heif_opener

from core.config import Settings
from main import create_app

register_heif_opener()


def make_exif(taken_at, primary_ifd=False):
    """EXIF block with DateTimeOriginal in the Exif sub-IFD, where cameras write it.

    `primary_ifd` puts the tag in IFD0 instead, as some editors do.
    """
    exif = Image.Exif()
    if primary_ifd:
        exif[ExifTags.Base.DateTimeOriginal] = taken_at
    else:
        exif[ExifTags.IFD.Exif] = {ExifTags.Base.DateTimeOriginal: taken_at}
    return exif


def make_jpeg(size=(64, 48), color=(200, 120, 40), taken_at=None, fmt="JPEG", primary_ifd=False):
    """Return encoded image bytes, optionally carrying an EXIF DateTimeOriginal."""
    image = Image.new("RGB", size, color)
    buffer = io.BytesIO()
    if taken_at:
        image.save(buffer, format=fmt, exif=make_exif(taken_at, primary_ifd).tobytes())
    else:
        image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_heic(size=(64, 48), color=(90, 160, 60), taken_at=None):
    """Return HEIF-encoded bytes as a phone camera would upload them."""
    image = Image.new("RGB", size, color)
    buffer = io.BytesIO()
    options = {"format": "HEIF", "quality": 90}
    if taken_at:
        options["exif"] = make_exif(taken_at).tobytes()
    image.save(buffer, **options)
    return buffer.getvalue()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'meals.db'}",
        uploads_dir=tmp_path / "uploads",
        openai_api_key=None,
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
