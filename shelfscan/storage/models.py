"""
Database models for ShelfScan.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, JSON, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class LocationModel(Base):
    """A physical shelf location and every photo taken of it."""

    __tablename__ = "locations"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(255), unique=True, index=True, nullable=False)
    photo_ids = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)


class BookModel(Base):
    """A catalogued book: a reconciled record plus where it was found."""

    __tablename__ = "books"

    id = Column(String(36), primary_key=True)  # UUID

    title = Column(String(500), nullable=False, index=True)
    authors = Column(JSON, default=list)
    isbn = Column(String(20), index=True)
    publisher = Column(String(255))
    publication_date = Column(String(50))
    description = Column(Text)
    cover_url = Column(String(1000))

    # Provenance
    source = Column(String(50))
    source_url = Column(String(1000))

    # Photos this book was detected in
    sources = Column(JSON, default=list)
    location_id = Column(String(36), ForeignKey("locations.id"), index=True)

    image_path = Column(String(1000))
    file_hash = Column(String(64))

    date_added = Column(DateTime, default=datetime.utcnow)
    synced_at = Column(DateTime)

    __table_args__ = (
        Index("idx_books_location_title", "location_id", "title"),
    )
