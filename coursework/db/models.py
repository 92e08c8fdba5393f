"""
SQLAlchemy table backing SQLDocumentStore.

All collections share one ``documents`` table. The JSON body is opaque to
SQL; the columns that carry guarantees are ``unique_key`` (one live record
per key per collection) and ``version`` (compare-and-swap updates).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class DocumentRecord(Base):
    """One document of one collection."""

    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("collection", "unique_key", name="uq_documents_collection_key"),
        Index("ix_documents_collection_created", "collection", "created_at"),
    )

    collection: Mapped[str] = mapped_column(Text, primary_key=True)
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    # NULL once released; NULLs never collide under the unique constraint
    unique_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
