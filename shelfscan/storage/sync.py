"""
Catalog Sync

Persists a batch of enriched books: uploads each book's shelf photo to the
image store, resolves its location, and writes the book document. One bad
book is counted and skipped; the rest of the batch still syncs.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Sequence, Union

from loguru import logger

from shelfscan.identification.records import UnifiedRecord
from shelfscan.storage.catalog_repository import CatalogRepository
from shelfscan.storage.image_store import ImageStore, hash_file


@dataclass
class SyncItem:
    """An enriched book and the photo it should be filed under."""

    record: UnifiedRecord
    location: str
    image_source: Optional[str] = None

    @property
    def photo_id(self) -> Optional[str]:
        if self.image_source:
            return self.image_source
        return self.record.sources[0] if self.record.sources else None


@dataclass
class SyncResult:
    """Outcome of a batch sync."""

    total: int
    synced: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "synced": self.synced,
            "failed": self.failed,
            "errors": list(self.errors),
        }


class CatalogSync:
    """
    Batch persistence of enriched books.

    Photos are read from ``<photo_root>/<location>/<image_source>``.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        image_store: ImageStore,
        photo_root: Union[str, Path],
    ):
        self.repository = repository
        self.image_store = image_store
        self.photo_root = Path(photo_root)

    def sync(self, items: Sequence[SyncItem]) -> SyncResult:
        """
        Persist every item.

        Returns:
            SyncResult with per-book failures listed in ``errors``
        """
        result = SyncResult(total=len(items))

        # Location ids resolved once per batch
        location_cache: dict[str, str] = {}

        for item in items:
            title = item.record.title
            photo_id = item.photo_id

            if not photo_id:
                result.failed += 1
                result.errors.append(f"No source photo for: {title}")
                continue

            image_path = self.photo_root / item.location / photo_id
            file_data = hash_file(image_path)
            if file_data is None:
                result.failed += 1
                result.errors.append(f"Image not found: {title} ({image_path})")
                continue

            file_hash, data = file_data

            try:
                upload = self.image_store.upload(data, key=file_hash)

                location_id = location_cache.get(item.location)
                if location_id is None:
                    location = self.repository.get_or_create_location(item.location, photo_id)
                    location_id = location.id
                    location_cache[item.location] = location_id
                else:
                    self.repository.add_photos(location_id, [photo_id])

                record = item.record
                if photo_id not in record.sources:
                    record = replace(record, sources=[*record.sources, photo_id])

                self.repository.create_book(
                    record,
                    location_id=location_id,
                    image_path=upload.url,
                    file_hash=file_hash,
                )
                result.synced += 1

            except Exception as e:
                logger.error(f"Error syncing '{title}': {e}")
                result.failed += 1
                result.errors.append(f"Error syncing {title}: {e}")

        logger.info(
            f"Batch sync complete: {result.synced} synced, "
            f"{result.failed} failed of {result.total}"
        )
        return result
