"""Normalize uploaded photos into bounded-size JPEGs.

HEIC/HEIF photos from phone cameras are first converted to a high-quality
JPEG. Every image is then orientation-corrected, shrunk so its longest side
fits `max_dimension` and re-encoded as JPEG, so browsers and the estimator
only ever see one format. EXIF metadata is carried over so the capture time
can still be read from the normalized bytes.
"""

import io
from dataclasses import dataclass
from pathlib import PurePath

from PIL import Image, ImageOps
from pillow_heif import register_heif_opener

from core.exceptions import ImageProcessingError
from core.logger import get_logger

register_heif_opener()

logger = get_logger("services.image_normalizer")

HEIC_EXTENSIONS = frozenset({".heic", ".heif"})
OUTPUT_EXTENSION = "jpg"
OUTPUT_CONTENT_TYPE = "image/jpeg"


def is_heic_filename(filename: str) -> bool:
    return PurePath(filename or "").suffix.lower() in HEIC_EXTENSIONS


def _exif_bytes(image: Image.Image) -> bytes:
    exif = image.getexif()
    return exif.tobytes() if exif else b""


def _encode_jpeg(image: Image.Image, quality: int, exif: bytes) -> bytes:
    if image.mode != "RGB":
        image = image.convert("RGB")
    buffer = io.BytesIO()
    options = {"format": "JPEG", "quality": quality, "optimize": True}
    if exif:
        options["exif"] = exif
    image.save(buffer, **options)
    return buffer.getvalue()


@dataclass(frozen=True)
class NormalizedImage:
    data: bytes
    width: int
    height: int
    extension: str = OUTPUT_EXTENSION
    content_type: str = OUTPUT_CONTENT_TYPE


class ImageNormalizer:
    """Turns raw upload bytes into a decodable, size-bounded JPEG."""

    def __init__(self, max_dimension: int = 1600, quality: int = 80, heic_quality: int = 90):
        self.max_dimension = max_dimension
        self.quality = quality
        self.heic_quality = heic_quality

    def convert_heic(self, data: bytes) -> bytes:
        """Convert a HEIC/HEIF container into a high-quality JPEG."""
        with Image.open(io.BytesIO(data)) as image:
            exif = _exif_bytes(image)
            return _encode_jpeg(image, self.heic_quality, exif)

    def normalize(self, data: bytes, filename: str) -> NormalizedImage:
        """Return the normalized JPEG for an upload.

        Raises:
            ImageProcessingError: If the bytes cannot be decoded or re-encoded.
        """
        try:
            if is_heic_filename(filename):
                data = self.convert_heic(data)
                logger.debug("Converted HEIC upload %s to JPEG", filename)

            with Image.open(io.BytesIO(data)) as opened:
                image = ImageOps.exif_transpose(opened)
                exif = _exif_bytes(image)
                image.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)
                encoded = _encode_jpeg(image, self.quality, exif)
                width, height = image.size
        except Exception as exc:
            logger.warning("Image normalization failed for %s: %s", filename, exc)
            raise ImageProcessingError(f"Could not process image: {exc}", filename=filename) from exc

        return NormalizedImage(data=encoded, width=width, height=height)
