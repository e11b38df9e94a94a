"""
API Routes for ShelfScan

Route modules:
- enrichment: Metadata lookup for detected books
- locations: Shelf locations and incremental scans
- books: Catalog listing, sync and re-analysis
- images: Content-addressed photo upload
"""

from shelfscan.api.routes.enrichment import router as enrichment_router
from shelfscan.api.routes.locations import router as locations_router
from shelfscan.api.routes.books import router as books_router
from shelfscan.api.routes.images import router as images_router

__all__ = [
    "enrichment_router",
    "locations_router",
    "books_router",
    "images_router",
]
