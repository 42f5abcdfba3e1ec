"""
Persistence operations for documents and their owned records.

Every public method runs in its own session. Methods that must be atomic
(field replacement, review decisions) run inside a single transaction, so a
partially applied unit is never visible to other readers.

Status changes are conditional updates: a write only lands if the document
is in a state the transition table allows, which is what keeps two
concurrent runs from both claiming the same document.
"""

import logging
from collections.abc import Iterable
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from greendocs.domain.errors import InvalidStateError, NotFoundError, StorageError
from greendocs.domain.models import (
    AI_ANALYSIS_ERROR_TYPE,
    POST_PROCESSING_STATUSES,
    DetectedError,
    DocumentStatus,
    ExtractedField,
    ReviewDecision,
    SeverityLevel,
    sources_for,
)

from .database import (
    DocumentErrorRecord,
    DocumentFieldRecord,
    DocumentRecord,
    DocumentReviewRecord,
    get_session_factory,
    utcnow,
)

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DocumentRepository:
    """
    Data access for the document aggregate.

    Example:
        repo = DocumentRepository(session_factory)
        if await repo.claim_for_processing(document_id):
            ...
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database operation failed: {e}")
            raise StorageError(f"Database operation failed: {e}") from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(self, **values) -> DocumentRecord:
        """Insert a new pending document."""
        now = utcnow()
        record = DocumentRecord(
            status=DocumentStatus.PENDING.value,
            uploaded_at=now,
            created_at=now,
            updated_at=now,
            **values,
        )
        async with self._session() as session:
            async with session.begin():
                session.add(record)
        return record

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        async with self._session() as session:
            return await session.get(DocumentRecord, document_id)

    async def update_metadata(self, document_id: str, values: dict) -> DocumentRecord | None:
        """Update descriptive columns. Returns None if the document does not exist."""
        async with self._session() as session:
            async with session.begin():
                record = await session.get(DocumentRecord, document_id)
                if record is None:
                    return None
                for key, value in values.items():
                    setattr(record, key, value)
                record.updated_at = utcnow()
            return record

    async def claim_for_processing(self, document_id: str) -> bool:
        """
        Move a document to ``processing`` and commit immediately.

        Returns False if the document is already being processed.
        """
        stmt = (
            update(DocumentRecord)
            .where(DocumentRecord.id == document_id)
            .where(DocumentRecord.status.in_(sources_for(DocumentStatus.PROCESSING)))
            .values(status=DocumentStatus.PROCESSING.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return result.rowcount == 1

    async def mark_rejected(self, document_id: str) -> bool:
        """Resolve an unfinished processing run to ``rejected``."""
        stmt = (
            update(DocumentRecord)
            .where(DocumentRecord.id == document_id)
            .where(DocumentRecord.status == DocumentStatus.PROCESSING.value)
            .values(status=DocumentStatus.REJECTED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    async def replace_fields(
        self,
        document_id: str,
        fields: Iterable[ExtractedField],
    ) -> list[DocumentFieldRecord]:
        """
        Replace the document's field set and mark it reviewed, atomically.

        Earlier fields (and their manual validation flags) are discarded.

        Raises:
            InvalidStateError: If the document is no longer in ``processing``.
        """
        now = utcnow()
        records = [
            DocumentFieldRecord(
                document_id=document_id,
                field_name=f.field_name,
                field_value=f.field_value,
                confidence_score=f.confidence_score,
                validation_notes=f.validation_notes,
                is_validated=False,
                created_at=now,
            )
            for f in fields
        ]
        mark_reviewed = (
            update(DocumentRecord)
            .where(DocumentRecord.id == document_id)
            .where(DocumentRecord.status == DocumentStatus.PROCESSING.value)
            .values(
                status=DocumentStatus.REVIEWED.value,
                processed_at=now,
                reviewed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            async with session.begin():
                await session.execute(
                    delete(DocumentFieldRecord).where(DocumentFieldRecord.document_id == document_id)
                )
                session.add_all(records)
                result = await session.execute(mark_reviewed)
                if result.rowcount != 1:
                    raise InvalidStateError(
                        f"Document {document_id} left the processing state during extraction"
                    )
        return records

    async def list_fields(self, document_id: str) -> list[DocumentFieldRecord]:
        stmt = (
            select(DocumentFieldRecord)
            .where(DocumentFieldRecord.document_id == document_id)
            .order_by(DocumentFieldRecord.field_name)
        )
        async with self._session() as session:
            return list((await session.scalars(stmt)).all())

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    async def insert_errors(
        self,
        document_id: str,
        errors: Iterable[DetectedError],
        error_type: str = AI_ANALYSIS_ERROR_TYPE,
    ) -> list[DocumentErrorRecord]:
        """Bulk-insert the errors of one analysis run."""
        now = utcnow()
        records = [
            DocumentErrorRecord(
                document_id=document_id,
                field_name=e.field_name,
                error_message=e.error_message,
                suggested_fix=e.suggested_fix,
                severity_level=SeverityLevel(e.severity_level).value,
                error_type=error_type,
                is_resolved=False,
                created_at=now,
                updated_at=now,
            )
            for e in errors
        ]
        if not records:
            return []
        async with self._session() as session:
            async with session.begin():
                session.add_all(records)
        return records

    async def list_errors(self, document_id: str) -> list[DocumentErrorRecord]:
        """Errors of a document, most severe first, then newest first."""
        stmt = (
            select(DocumentErrorRecord)
            .where(DocumentErrorRecord.document_id == document_id)
            .order_by(DocumentErrorRecord.created_at.desc())
        )
        async with self._session() as session:
            rows = list((await session.scalars(stmt)).all())
        # Stable sort keeps the newest-first order within a severity.
        rows.sort(key=lambda r: SeverityLevel(r.severity_level).rank)
        return rows

    async def resolve_error(self, error_id: str) -> bool:
        """Mark one error resolved. Returns False if no such error exists."""
        stmt = (
            update(DocumentErrorRecord)
            .where(DocumentErrorRecord.id == error_id)
            .values(is_resolved=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return result.rowcount == 1

    async def get_error(self, error_id: str) -> DocumentErrorRecord | None:
        async with self._session() as session:
            return await session.get(DocumentErrorRecord, error_id)

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    async def apply_review(
        self,
        document_id: str,
        decision: ReviewDecision,
        notes: str | None,
        reviewer: str,
    ) -> DocumentReviewRecord:
        """
        Set the document status and append an audit row in one transaction.

        Raises:
            NotFoundError: If the document does not exist.
            InvalidStateError: If the document has not finished processing.
        """
        now = utcnow()
        status_update = (
            update(DocumentRecord)
            .where(DocumentRecord.id == document_id)
            .where(DocumentRecord.status.in_([s.value for s in POST_PROCESSING_STATUSES]))
            .values(status=decision.value, reviewed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        review = DocumentReviewRecord(
            document_id=document_id,
            review_status=decision.value,
            review_notes=notes,
            reviewer_name=reviewer,
            reviewed_at=now,
            created_at=now,
        )
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(status_update)
                if result.rowcount != 1:
                    current = await session.scalar(
                        select(DocumentRecord.status).where(DocumentRecord.id == document_id)
                    )
                    if current is None:
                        raise NotFoundError(f"Document with ID {document_id} not found.")
                    raise InvalidStateError(
                        f"Document {document_id} is '{current}' and cannot be reviewed yet"
                    )
                session.add(review)
        return review

    async def list_reviews(self, document_id: str) -> list[DocumentReviewRecord]:
        stmt = (
            select(DocumentReviewRecord)
            .where(DocumentReviewRecord.document_id == document_id)
            .order_by(DocumentReviewRecord.created_at.desc())
        )
        async with self._session() as session:
            return list((await session.scalars(stmt)).all())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_documents(
        self,
        *,
        page: int,
        page_size: int,
        status: DocumentStatus | None = None,
        document_type: str | None = None,
        search_query: str | None = None,
    ) -> tuple[list[DocumentRecord], int]:
        """One page of documents (newest upload first) and the total match count."""
        conditions = []
        if status is not None:
            conditions.append(DocumentRecord.status == DocumentStatus(status).value)
        if document_type is not None:
            conditions.append(DocumentRecord.document_type == str(document_type))
        if search_query:
            term = f"%{_escape_like(search_query)}%"
            conditions.append(
                or_(
                    DocumentRecord.project_name.ilike(term, escape="\\"),
                    DocumentRecord.installer_company.ilike(term, escape="\\"),
                )
            )

        page_stmt = (
            select(DocumentRecord)
            .where(*conditions)
            .order_by(DocumentRecord.uploaded_at.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        count_stmt = select(func.count(DocumentRecord.id)).where(*conditions)

        async with self._session() as session:
            documents = list((await session.scalars(page_stmt)).all())
            total = await session.scalar(count_stmt)
        return documents, int(total or 0)

    async def status_counts(self) -> dict[str, int]:
        stmt = select(DocumentRecord.status, func.count(DocumentRecord.id)).group_by(
            DocumentRecord.status
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).all()
        return {status: int(count) for status, count in rows if status}

    async def recent_activity(self, limit: int = 5) -> list[DocumentRecord]:
        stmt = select(DocumentRecord).order_by(DocumentRecord.updated_at.desc()).limit(limit)
        async with self._session() as session:
            return list((await session.scalars(stmt)).all())
