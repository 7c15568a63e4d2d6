"""File storage for normalized meal photos.

Blobs are named ``{meal_id}.{ext}`` directly under the store root. Writes go
through a temporary file and an atomic rename so a reader never sees a
half-written image, and reads refuse any path that resolves outside the root.
"""

import os
import tempfile
import time
from pathlib import Path, PurePosixPath
from typing import Iterable, List

from core.exceptions import InvalidPathError, NotFoundError, StorageError
from core.logger import get_logger

logger = get_logger("services.blob_store")

CONTENT_TYPES = {
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".heic": "image/heic",
}
DEFAULT_CONTENT_TYPE = "image/jpeg"

# Uploads hold their blob without a record while the estimator runs.
DEFAULT_ORPHAN_MIN_AGE = 3600.0


def content_type_for(name: str) -> str:
    """Infer an image content type from the file extension."""
    return CONTENT_TYPES.get(PurePosixPath(name).suffix.lower(), DEFAULT_CONTENT_TYPE)


class BlobStore:
    """Image blobs keyed by meal id under one root directory."""

    def __init__(self, root: Path):
        self.root = Path(root).expanduser().resolve()

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def blob_name(self, meal_id: str, ext: str) -> str:
        return f"{meal_id}.{ext.lstrip('.')}"

    def resolve(self, relative: str) -> Path:
        """Return the absolute path for `relative`.

        Raises:
            InvalidPathError: If the path escapes the store root.
        """
        candidate = (self.root / relative).resolve()
        if candidate == self.root or not candidate.is_relative_to(self.root):
            raise InvalidPathError(relative)
        return candidate

    def save(self, meal_id: str, data: bytes, ext: str = "jpg") -> str:
        """Write `data` as the blob for `meal_id` and return its relative name."""
        name = self.blob_name(meal_id, ext)
        target = self.resolve(name)
        self.ensure_root()
        fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=".upload-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_path, target)
        except OSError as exc:
            Path(tmp_path).unlink(missing_ok=True)
            raise StorageError(f"Failed to store image: {exc}", operation="write") from exc
        logger.info("Stored image %s (%d bytes)", name, len(data))
        return name

    def read(self, relative: str) -> bytes:
        """Return the blob bytes.

        Raises:
            InvalidPathError: If the path escapes the store root.
            NotFoundError: If no such blob exists.
        """
        path = self.resolve(relative)
        if not path.is_file():
            raise NotFoundError("Image", relative)
        return path.read_bytes()

    def exists(self, relative: str) -> bool:
        try:
            return self.resolve(relative).is_file()
        except InvalidPathError:
            return False

    def delete(self, relative: str) -> bool:
        """Remove a blob; returns False when it was already gone."""
        path = self.resolve(relative)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning("Image %s already missing on delete", relative)
            return False
        except OSError as exc:
            raise StorageError(f"Failed to delete image: {exc}", operation="delete") from exc
        logger.info("Deleted image %s", relative)
        return True

    def iter_blobs(self) -> List[Path]:
        if not self.root.is_dir():
            return []
        return sorted(p for p in self.root.iterdir() if p.is_file() and not p.name.startswith("."))

    def find_orphans(self, known_ids: Iterable[str], min_age: float = DEFAULT_ORPHAN_MIN_AGE) -> List[Path]:
        """Blobs with no record that were last written at least `min_age` seconds ago.

        Younger blobs may belong to an upload whose record is not committed yet.
        """
        known = set(known_ids)
        cutoff = time.time() - min_age
        return [
            path for path in self.iter_blobs()
            if path.stem not in known and path.stat().st_mtime <= cutoff
        ]

    def collect_orphans(self, known_ids: Iterable[str], min_age: float = DEFAULT_ORPHAN_MIN_AGE) -> List[str]:
        """Delete orphaned blobs (see `find_orphans`); return the removed names."""
        removed = []
        for path in self.find_orphans(known_ids, min_age):
            self.delete(path.name)
            removed.append(path.name)
        if removed:
            logger.info("Collected %d orphaned image(s)", len(removed))
        return removed
