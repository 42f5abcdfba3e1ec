"""
Database configuration and session management with SQLAlchemy.

Uses async SQLAlchemy for non-blocking database operations.
Documents are the aggregate root; fields, errors and reviews are owned by a
document and cascade with it.

Design Decisions:
- AsyncSession for non-blocking operations
- Connection pooling with sensible defaults (skipped for SQLite)
- Explicit transaction management in the repository
- Reviews are append-only: nothing in the codebase updates or deletes them
"""

import logging
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from greendocs.config import get_settings

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class DocumentRecord(Base):
    """
    An uploaded document and its processing status.

    The document type is fixed at upload. ``file_url`` is the file
    reference the extraction client resolves (storage path, data URL or
    http(s) URL).
    """
    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_name: Mapped[str] = mapped_column(String(256), index=True)
    installer_company: Mapped[str] = mapped_column(String(256), index=True)
    document_type: Mapped[str] = mapped_column(String(32), index=True)
    status: Mapped[str] = mapped_column(String(32), index=True, default="pending")

    # File info
    filename: Mapped[str] = mapped_column(String(256))
    original_filename: Mapped[str] = mapped_column(String(256))
    content_type: Mapped[str | None] = mapped_column(String(64))
    file_size: Mapped[int | None] = mapped_column(Integer)
    file_url: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    fields: Mapped[list["DocumentFieldRecord"]] = relationship(
        back_populates="document", cascade="all, delete-orphan"
    )
    errors: Mapped[list["DocumentErrorRecord"]] = relationship(
        back_populates="document", cascade="all, delete-orphan"
    )
    reviews: Mapped[list["DocumentReviewRecord"]] = relationship(
        back_populates="document", cascade="all, delete-orphan"
    )


class DocumentFieldRecord(Base):
    """
    One extracted field. The whole set is replaced on every processing run.
    """
    __tablename__ = "document_fields"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    document_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("documents.id", ondelete="CASCADE"), index=True
    )
    field_name: Mapped[str] = mapped_column(String(128))
    field_value: Mapped[str | None] = mapped_column(Text)
    confidence_score: Mapped[float] = mapped_column(Float)
    validation_notes: Mapped[str] = mapped_column(Text, default="")
    is_validated: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    document: Mapped[DocumentRecord] = relationship(back_populates="fields")


class DocumentErrorRecord(Base):
    """
    A compliance issue found by error analysis.

    ``field_name`` is NULL for document-level issues. Only the resolve
    action mutates a row, and only from unresolved to resolved.
    """
    __tablename__ = "document_errors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    document_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("documents.id", ondelete="CASCADE"), index=True
    )
    field_name: Mapped[str | None] = mapped_column(String(128))
    error_message: Mapped[str] = mapped_column(Text)
    suggested_fix: Mapped[str] = mapped_column(Text)
    severity_level: Mapped[str] = mapped_column(String(16))
    error_type: Mapped[str] = mapped_column(String(32))
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    document: Mapped[DocumentRecord] = relationship(back_populates="errors")


class DocumentReviewRecord(Base):
    """
    Audit record of a human review decision.

    Persists every decision independently of the document's current status.
    """
    __tablename__ = "document_reviews"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    document_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("documents.id", ondelete="CASCADE"), index=True
    )
    review_status: Mapped[str] = mapped_column(String(32))
    review_notes: Mapped[str | None] = mapped_column(Text)
    reviewer_name: Mapped[str] = mapped_column(String(128))
    reviewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    document: Mapped[DocumentRecord] = relationship(back_populates="reviews")


# Engine and session factory (initialized lazily)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, with pooling options only where the driver supports them."""
    if make_url(url).get_backend_name() == "sqlite":
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_for(settings.database_url, echo=settings.debug)
        url = make_url(settings.database_url)
        logger.info(f"Database engine created for {url.get_backend_name()}:{url.host or url.database}")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for creating database sessions."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        _session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def init_db(engine: AsyncEngine | None = None) -> None:
    """
    Initialize database tables.

    Call this on application startup to ensure tables exist.
    In production, use Alembic migrations instead.
    """
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


async def close_db() -> None:
    """Close database connections on shutdown."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
    logger.info("Database connections closed")
