"""
Catalog Repository for ShelfScan

Structured storage for shelf locations and catalogued books using
SQLAlchemy:
- PostgreSQL for production
- SQLite for development/testing

The catalog is the only record of which photos have been processed; nothing
is cached between process restarts.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shelfscan.identification.records import UnifiedRecord
from shelfscan.storage.models import Base, BookModel, LocationModel


@dataclass
class StoredLocation:
    """Data class for location data transfer."""

    id: str
    name: str
    photo_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_model(cls, model: LocationModel) -> "StoredLocation":
        return cls(id=model.id, name=model.name, photo_ids=list(model.photo_ids or []))

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "photo_ids": list(self.photo_ids)}


@dataclass
class StoredBook:
    """Data class for book data transfer."""

    id: str
    title: str
    authors: list[str] = field(default_factory=list)
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    publication_date: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    source: Optional[str] = None
    source_url: Optional[str] = None
    sources: list[str] = field(default_factory=list)
    location_id: Optional[str] = None
    image_path: Optional[str] = None
    file_hash: Optional[str] = None
    date_added: Optional[datetime] = None
    synced_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: BookModel) -> "StoredBook":
        """Create from SQLAlchemy model."""
        return cls(
            id=model.id,
            title=model.title,
            authors=list(model.authors or []),
            isbn=model.isbn,
            publisher=model.publisher,
            publication_date=model.publication_date,
            description=model.description,
            cover_url=model.cover_url,
            source=model.source,
            source_url=model.source_url,
            sources=list(model.sources or []),
            location_id=model.location_id,
            image_path=model.image_path,
            file_hash=model.file_hash,
            date_added=model.date_added,
            synced_at=model.synced_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "authors": self.authors,
            "isbn": self.isbn,
            "publisher": self.publisher,
            "publication_date": self.publication_date,
            "description": self.description,
            "cover_url": self.cover_url,
            "source": self.source,
            "source_url": self.source_url,
            "sources": self.sources,
            "location_id": self.location_id,
            "image_path": self.image_path,
            "file_hash": self.file_hash,
            "date_added": self.date_added.isoformat() if self.date_added else None,
            "synced_at": self.synced_at.isoformat() if self.synced_at else None,
        }


class CatalogRepository:
    """
    Repository for the locations and books collections.

    Usage:
        repo = CatalogRepository("sqlite:///./shelfscan.db")

        location = repo.get_or_create_location("Office", photo_id="IMG_0001.jpg")
        repo.create_book(record, location_id=location.id)

        books = repo.list_books(location_id=location.id)
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        sqlite_path: Optional[Path] = None,
    ):
        """
        Initialize repository.

        Args:
            database_url: SQLAlchemy database URL
            sqlite_path: Path for SQLite database
        """
        if database_url:
            # Strip async drivers for sync engine
            self.database_url = database_url.replace("+aiosqlite", "").replace("+asyncpg", "")
        elif sqlite_path:
            self.database_url = f"sqlite:///{sqlite_path}"
        else:
            # Default to in-memory SQLite
            self.database_url = "sqlite:///:memory:"

        engine_kwargs = {}
        if self.database_url == "sqlite:///:memory:":
            # One shared connection so every session sees the same in-memory database
            engine_kwargs = {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }

        self.engine = create_engine(self.database_url, echo=False, **engine_kwargs)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        logger.info(f"CatalogRepository initialized: {self.database_url[:50]}...")

    def get_session(self) -> Session:
        """Get database session."""
        return self.SessionLocal()

    # -------------------------------------------------------------------------
    # Locations
    # -------------------------------------------------------------------------

    def create_location(self, name: str, photo_ids: Iterable[str] = ()) -> StoredLocation:
        """Create a location with its known photos."""
        with self.get_session() as session:
            location = LocationModel(
                id=str(uuid.uuid4()),
                name=name,
                photo_ids=_unique(photo_ids),
            )
            session.add(location)
            session.commit()
            return StoredLocation.from_model(location)

    def get_location(self, location_id: str) -> Optional[StoredLocation]:
        with self.get_session() as session:
            location = session.get(LocationModel, location_id)
            return StoredLocation.from_model(location) if location else None

    def get_location_by_name(self, name: str) -> Optional[StoredLocation]:
        with self.get_session() as session:
            location = session.query(LocationModel).filter(LocationModel.name == name).first()
            return StoredLocation.from_model(location) if location else None

    def list_locations(self) -> list[StoredLocation]:
        with self.get_session() as session:
            locations = session.query(LocationModel).order_by(LocationModel.name).all()
            return [StoredLocation.from_model(loc) for loc in locations]

    def add_photos(self, location_id: str, photo_ids: Iterable[str]) -> Optional[StoredLocation]:
        """
        Register photos for a location, skipping ones already known.

        Returns:
            Updated location, or None if it does not exist
        """
        with self.get_session() as session:
            location = session.get(LocationModel, location_id)
            if location is None:
                return None

            merged = _unique(list(location.photo_ids or []) + list(photo_ids))
            if merged != list(location.photo_ids or []):
                # Reassign so the JSON column is flagged dirty
                location.photo_ids = merged
                session.commit()

            return StoredLocation.from_model(location)

    def get_or_create_location(self, name: str, photo_id: Optional[str] = None) -> StoredLocation:
        """
        Find a location by name, creating it if needed, and register ``photo_id``.
        """
        existing = self.get_location_by_name(name)
        if existing is None:
            logger.info(f"Creating location '{name}'")
            return self.create_location(name, [photo_id] if photo_id else [])

        if photo_id and photo_id not in existing.photo_ids:
            return self.add_photos(existing.id, [photo_id])
        return existing

    # -------------------------------------------------------------------------
    # Books
    # -------------------------------------------------------------------------

    def create_book(
        self,
        record: UnifiedRecord,
        location_id: Optional[str] = None,
        image_path: Optional[str] = None,
        file_hash: Optional[str] = None,
    ) -> StoredBook:
        """Persist a reconciled record."""
        now = datetime.utcnow()

        with self.get_session() as session:
            book = BookModel(
                id=str(uuid.uuid4()),
                title=record.title,
                authors=list(record.authors),
                isbn=record.isbn,
                publisher=record.publisher,
                publication_date=record.publication_date,
                description=record.description,
                cover_url=record.cover_url,
                source=record.source.value if record.source else None,
                source_url=record.source_url,
                sources=list(record.sources),
                location_id=location_id,
                image_path=image_path,
                file_hash=file_hash,
                date_added=now,
                synced_at=now,
            )
            session.add(book)
            session.commit()
            return StoredBook.from_model(book)

    def get_book(self, book_id: str) -> Optional[StoredBook]:
        with self.get_session() as session:
            book = session.get(BookModel, book_id)
            return StoredBook.from_model(book) if book else None

    def list_books(self, location_id: Optional[str] = None) -> list[StoredBook]:
        """List books, optionally only those of one location."""
        with self.get_session() as session:
            query = session.query(BookModel)
            if location_id is not None:
                query = query.filter(BookModel.location_id == location_id)
            books = query.order_by(BookModel.date_added).all()
            return [StoredBook.from_model(book) for book in books]


def _unique(values: Iterable[str]) -> list[str]:
    seen = set()
    unique = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            unique.append(value)
    return unique
