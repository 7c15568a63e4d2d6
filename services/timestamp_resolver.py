"""Resolve the capture time of an uploaded photo.

Candidate sources are tried in a fixed order, first hit wins:

1. the timestamp the client sent with the upload,
2. the ``DateTimeOriginal`` EXIF tag embedded in the image,
3. the server clock (in which case the capture time is reported as unknown).

A malformed candidate is treated exactly like a missing one. Independently,
a client-supplied hour overrides the hour used for meal classification
without touching the stored timestamp.
"""

import io
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence, Tuple

from PIL import ExifTags, Image

from core.logger import get_logger

logger = get_logger("services.timestamp_resolver")

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"

SOURCE_CLIENT = "client"
SOURCE_EXIF = "exif"
SOURCE_SERVER_CLOCK = "server_clock"


@dataclass(frozen=True)
class ResolvedTime:
    """Outcome of timestamp resolution.

    Attributes:
        moment: Timezone-aware local time used to derive the meal date.
        photo_taken_at: The capture time to persist, or None when unknown.
        classification_hour: Local hour used to pick the meal type.
        source: Which candidate produced `moment`.
    """

    moment: datetime
    photo_taken_at: Optional[datetime]
    classification_hour: int
    source: str

    @property
    def date(self) -> str:
        return self.moment.strftime("%Y-%m-%d")


def parse_client_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp sent by the client.

    Naive values are interpreted as server-local time. Returns None for
    missing or malformed input.
    """
    if raw is None:
        return None
    cleaned = raw.strip()
    if not cleaned:
        return None
    if cleaned.endswith(("Z", "z")):
        cleaned = cleaned[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(cleaned)
    except ValueError:
        logger.debug("Ignoring malformed client timestamp: %r", raw)
        return None
    return parsed.astimezone()


def parse_client_hour(raw: Optional[str]) -> Optional[int]:
    """Parse a client-supplied local hour.

    Whole numbers in 0..23 are accepted, including float spellings such as
    ``"8.0"``. Anything else returns None.
    """
    if raw is None:
        return None
    try:
        number = float(str(raw).strip())
    except (TypeError, ValueError):
        logger.debug("Ignoring malformed client hour: %r", raw)
        return None
    if not number.is_integer():
        logger.debug("Ignoring fractional client hour: %r", raw)
        return None
    hour = int(number)
    if 0 <= hour <= 23:
        return hour
    logger.debug("Ignoring out-of-range client hour: %r", raw)
    return None


def parse_exif_datetime(value: object) -> Optional[datetime]:
    """Parse an EXIF ``YYYY:MM:DD HH:MM:SS`` value as server-local time."""
    if value is None:
        return None
    text = value.decode("ascii", "ignore") if isinstance(value, bytes) else str(value)
    text = text.strip().rstrip("\x00")
    try:
        parsed = datetime.strptime(text, EXIF_DATETIME_FORMAT)
    except ValueError:
        logger.debug("Ignoring malformed EXIF DateTimeOriginal: %r", value)
        return None
    return parsed.astimezone()


def extract_capture_time(image_bytes: Optional[bytes]) -> Optional[datetime]:
    """Read ``DateTimeOriginal`` from the image's EXIF block, if any.

    The tag normally lives in the Exif sub-IFD; some writers put it in the
    primary IFD, so both are checked.
    """
    if not image_bytes:
        return None
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            exif = image.getexif()
            raw = exif.get_ifd(ExifTags.IFD.Exif).get(ExifTags.Base.DateTimeOriginal)
            if raw is None:
                raw = exif.get(ExifTags.Base.DateTimeOriginal)
    except Exception as exc:
        logger.debug("Failed to read image metadata: %s", exc)
        return None
    return parse_exif_datetime(raw)


TimeSource = Tuple[str, Callable[[], Optional[datetime]]]


class TimestampResolver:
    """Runs the ordered capture-time lookups for one upload."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def sources(self, client_timestamp: Optional[str], image_bytes: Optional[bytes]) -> Sequence[TimeSource]:
        return (
            (SOURCE_CLIENT, lambda: parse_client_timestamp(client_timestamp)),
            (SOURCE_EXIF, lambda: extract_capture_time(image_bytes)),
        )

    def resolve(
        self,
        client_timestamp: Optional[str] = None,
        client_hour: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
    ) -> ResolvedTime:
        photo_taken_at = None
        source = SOURCE_SERVER_CLOCK
        for name, lookup in self.sources(client_timestamp, image_bytes):
            found = lookup()
            if found is not None:
                photo_taken_at = found
                source = name
                break

        moment = photo_taken_at if photo_taken_at is not None else self.clock().astimezone()

        hour = parse_client_hour(client_hour)
        if hour is None:
            hour = moment.hour

        logger.debug("Resolved capture time from %s: %s (hour=%s)", source, moment.isoformat(), hour)
        return ResolvedTime(
            moment=moment,
            photo_taken_at=photo_taken_at,
            classification_hour=hour,
            source=source,
        )
