"""Images API router: serves stored meal photos."""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from database.deps import get_blob_store
from services.blob_store import BlobStore, content_type_for

router = APIRouter(tags=["images"])

CACHE_CONTROL = "public, max-age=31536000, immutable"


@router.get("/images/{path:path}")
def get_image(path: str, blob_store: BlobStore = Depends(get_blob_store)):
    """Return raw image bytes for a stored photo.

    Raises:
        InvalidPathError: If the path resolves outside the image root (400).
        NotFoundError: If no such image exists (404).
    """
    data = blob_store.read(path)
    return Response(
        content=data,
        media_type=content_type_for(path),
        headers={"Cache-Control": CACHE_CONTROL},
    )
