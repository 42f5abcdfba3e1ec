"""
Read side of the document aggregate: listings, details and analytics.
"""

from dataclasses import dataclass

from greendocs.domain.errors import NotFoundError, ValidationError
from greendocs.domain.models import DocumentStatus, DocumentType
from greendocs.infrastructure.database import (
    DocumentErrorRecord,
    DocumentFieldRecord,
    DocumentRecord,
    DocumentReviewRecord,
)
from greendocs.infrastructure.repository import DocumentRepository

from .pipeline import parse_id

MAX_PAGE_SIZE = 100
RECENT_ACTIVITY_LIMIT = 5


@dataclass
class DocumentPage:
    documents: list[DocumentRecord]
    total_count: int
    page: int
    page_size: int


@dataclass
class DocumentDetails:
    document: DocumentRecord
    fields: list[DocumentFieldRecord]
    reviews: list[DocumentReviewRecord]


@dataclass
class DocumentAnalytics:
    status_counts: dict[str, int]
    recent_activity: list[DocumentRecord]


class DocumentService:
    """Queries over documents plus metadata edits."""

    def __init__(self, repository: DocumentRepository) -> None:
        self.repository = repository

    async def list_documents(
        self,
        page: int = 1,
        page_size: int = 10,
        status: DocumentStatus | None = None,
        document_type: DocumentType | None = None,
        search_query: str | None = None,
    ) -> DocumentPage:
        if page < 1 or not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(f"page must be >= 1 and page_size between 1 and {MAX_PAGE_SIZE}")

        documents, total = await self.repository.list_documents(
            page=page,
            page_size=page_size,
            status=status,
            document_type=DocumentType(document_type).value if document_type else None,
            search_query=(search_query or "").strip() or None,
        )
        return DocumentPage(documents=documents, total_count=total, page=page, page_size=page_size)

    async def _require(self, document_id: str) -> DocumentRecord:
        document_id = parse_id(document_id)
        document = await self.repository.get_document(document_id)
        if document is None:
            raise NotFoundError("Document not found")
        return document

    async def get_details(self, document_id: str) -> DocumentDetails:
        document = await self._require(document_id)
        return DocumentDetails(
            document=document,
            fields=await self.repository.list_fields(document.id),
            reviews=await self.repository.list_reviews(document.id),
        )

    async def list_errors(self, document_id: str) -> list[DocumentErrorRecord]:
        document = await self._require(document_id)
        return await self.repository.list_errors(document.id)

    async def analytics(self) -> DocumentAnalytics:
        return DocumentAnalytics(
            status_counts=await self.repository.status_counts(),
            recent_activity=await self.repository.recent_activity(RECENT_ACTIVITY_LIMIT),
        )

    async def update_metadata(
        self,
        document_id: str,
        project_name: str | None = None,
        installer_company: str | None = None,
    ) -> DocumentRecord:
        """
        Edit descriptive fields. Type and status are not editable here.

        Raises:
            ValidationError: If nothing to update was given or a value is blank.
            NotFoundError: If the document does not exist.
        """
        document_id = parse_id(document_id)
        values = {
            key: value.strip()
            for key, value in (("project_name", project_name), ("installer_company", installer_company))
            if value is not None
        }
        if not values:
            raise ValidationError("No fields to update provided.")
        if not all(values.values()):
            raise ValidationError("Updated values must not be blank.")

        document = await self.repository.update_metadata(document_id, values)
        if document is None:
            raise NotFoundError(f"Document with ID {document_id} not found.")
        return document
