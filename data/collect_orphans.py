"""Reclaim meal photos that have no meal record.

An upload that fails after its image was written leaves the image behind
with no record pointing at it. `collect_orphans` deletes those files; it
never touches an image whose meal still exists. Images younger than
`min_age` seconds are skipped, since an upload in progress writes its image
before its record and may still be waiting on the nutrition estimate.
"""
from __future__ import annotations

from typing import List, Optional

from core.config import Settings
from core.logger import get_logger
from core.repository import MealRepository
from database import Database
from services.blob_store import DEFAULT_ORPHAN_MIN_AGE, BlobStore

logger = get_logger("data.collect_orphans")


def collect_orphans(
    database: Database,
    blob_store: BlobStore,
    dry_run: bool = False,
    min_age: float = DEFAULT_ORPHAN_MIN_AGE,
) -> List[str]:
    """Delete (or with `dry_run`, just list) images without a meal record.

    Returns:
        Names of the orphaned images.
    """
    session = database.session()
    try:
        known_ids = MealRepository(session).list_ids()
    finally:
        session.close()

    if dry_run:
        orphans = [p.name for p in blob_store.find_orphans(known_ids, min_age)]
        logger.info("Found %s orphaned images (dry run)", len(orphans))
        return orphans
    return blob_store.collect_orphans(known_ids, min_age)


def main(argv: Optional[List[str]] = None) -> int:
    import argparse

    p = argparse.ArgumentParser("Delete stored meal photos that have no meal record")
    p.add_argument("--dry-run", action="store_true", help="only list orphaned images")
    p.add_argument(
        "--min-age-seconds",
        type=float,
        default=DEFAULT_ORPHAN_MIN_AGE,
        help="skip images written more recently than this (default: %(default)s)",
    )
    args = p.parse_args(argv)

    settings = Settings.from_env()
    database = Database(settings.database_url)
    database.init()
    try:
        removed = collect_orphans(
            database,
            BlobStore(settings.uploads_dir),
            dry_run=args.dry_run,
            min_age=args.min_age_seconds,
        )
    finally:
        database.dispose()
    for name in removed:
        print(name)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
