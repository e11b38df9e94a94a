"""
Storage Module for ShelfScan

Persistent storage for the catalog:
- SQLAlchemy repository for locations and books
- Content-addressed image store for shelf photos
- Batch sync of enriched books
"""

from shelfscan.storage.catalog_repository import (
    CatalogRepository,
    StoredBook,
    StoredLocation,
)
from shelfscan.storage.image_store import (
    ImageStore,
    UploadResult,
    hash_bytes,
    hash_file,
)
from shelfscan.storage.sync import (
    CatalogSync,
    SyncItem,
    SyncResult,
)

__all__ = [
    # Catalog
    "CatalogRepository",
    "StoredBook",
    "StoredLocation",
    # Images
    "ImageStore",
    "UploadResult",
    "hash_bytes",
    "hash_file",
    # Sync
    "CatalogSync",
    "SyncItem",
    "SyncResult",
]
