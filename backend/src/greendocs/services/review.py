"""
Manual review decisions and error resolution.

Each decision updates the document and appends an immutable review row in
one transaction. Reviews are the audit trail and are never modified.
"""

import logging

from greendocs.domain.errors import NotFoundError, ValidationError
from greendocs.domain.models import ReviewDecision
from greendocs.infrastructure.database import DocumentErrorRecord, DocumentReviewRecord
from greendocs.infrastructure.repository import DocumentRepository

from .pipeline import parse_id

logger = logging.getLogger(__name__)


class ReviewService:
    """Applies reviewer decisions to documents and errors."""

    def __init__(self, repository: DocumentRepository, default_reviewer: str = "System") -> None:
        self.repository = repository
        self.default_reviewer = default_reviewer

    async def set_status(
        self,
        document_id: str,
        status: ReviewDecision | str,
        notes: str | None = None,
        reviewer: str | None = None,
    ) -> DocumentReviewRecord:
        """
        Record a review decision.

        Raises:
            ValidationError: If the id is malformed or the status is not a
                review decision.
            NotFoundError: If the document does not exist.
            InvalidStateError: If the document has not finished processing.
        """
        document_id = parse_id(document_id)
        try:
            decision = ReviewDecision(status)
        except ValueError:
            allowed = ", ".join(d.value for d in ReviewDecision)
            raise ValidationError(f"Invalid review status '{status}', expected one of: {allowed}") from None

        review = await self.repository.apply_review(
            document_id,
            decision,
            notes=notes,
            reviewer=(reviewer or "").strip() or self.default_reviewer,
        )
        logger.info(f"Document {document_id}: {decision.value} by {review.reviewer_name}")
        return review

    async def resolve_error(self, error_id: str) -> DocumentErrorRecord:
        """
        Mark a document error resolved.

        Resolving an already resolved error succeeds and changes nothing
        but its ``updated_at``.

        Raises:
            ValidationError: If the id is malformed.
            NotFoundError: If the error does not exist.
        """
        error_id = parse_id(error_id, label="error")
        if not await self.repository.resolve_error(error_id):
            raise NotFoundError("Document error not found.")

        logger.info(f"Error {error_id} resolved")
        return await self.repository.get_error(error_id)
