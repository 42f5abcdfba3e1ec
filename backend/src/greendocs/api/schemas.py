"""
Pydantic schemas for API request/response validation.

These schemas define the contract between frontend and backend.
Response models read straight from ORM records (``from_attributes``).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from greendocs.domain.models import (
    DocumentStatus,
    DocumentType,
    ReviewDecision,
    SeverityLevel,
)


class _ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Request Schemas
# =============================================================================

class UpdateDocumentRequest(BaseModel):
    """Edit document metadata."""
    id: str
    project_name: str | None = Field(default=None, max_length=256)
    installer_company: str | None = Field(default=None, max_length=256)


class SetStatusRequest(BaseModel):
    """Manual review decision."""
    status: ReviewDecision
    review_notes: str | None = None
    reviewer_name: str | None = Field(default=None, max_length=128)


# =============================================================================
# Response Schemas
# =============================================================================

class DocumentResponse(_ORMModel):
    """A document without its file content."""
    id: str
    project_name: str
    installer_company: str
    document_type: DocumentType
    status: DocumentStatus
    filename: str
    original_filename: str
    content_type: str | None = None
    file_size: int | None = None
    uploaded_at: datetime
    processed_at: datetime | None = None
    reviewed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ExtractedFieldResponse(_ORMModel):
    """A field as returned by an extraction run."""
    field_name: str
    field_value: str | None
    confidence_score: float
    validation_notes: str = ""


class DocumentFieldResponse(_ORMModel):
    """A stored field."""
    id: str
    field_name: str
    field_value: str | None
    confidence_score: float
    validation_notes: str = ""
    is_validated: bool


class DocumentErrorResponse(_ORMModel):
    """A stored error."""
    id: str
    document_id: str
    field_name: str | None
    error_message: str
    suggested_fix: str
    severity_level: SeverityLevel
    error_type: str
    is_resolved: bool
    created_at: datetime
    updated_at: datetime


class DocumentReviewResponse(_ORMModel):
    """An audit record of a review decision."""
    id: str
    review_status: ReviewDecision
    review_notes: str | None
    reviewer_name: str
    reviewed_at: datetime


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total_count: int
    page: int
    page_size: int


class DocumentDetailsResponse(BaseModel):
    document: DocumentResponse
    fields: list[DocumentFieldResponse]
    reviews: list[DocumentReviewResponse]


class AnalyticsResponse(BaseModel):
    status_counts: dict[str, int]
    recent_activity: list[DocumentResponse]


class ProcessResponse(BaseModel):
    document_id: str
    fields: list[ExtractedFieldResponse]


class AnalyzeErrorsResponse(BaseModel):
    document_id: str
    errors: list[DocumentErrorResponse]


class SetStatusResponse(BaseModel):
    success: bool = True
    document_id: str
    review: DocumentReviewResponse


class ResolveErrorResponse(BaseModel):
    success: bool = True
    error: DocumentErrorResponse


class FailureDetail(BaseModel):
    """Structured description of a failed stage."""
    error: str
    code: str
    retryable: bool
    upstream_status: int | None = None


class UploadResponse(BaseModel):
    """Uploaded document, plus the outcome of automatic processing if requested."""
    document: DocumentResponse
    fields: list[ExtractedFieldResponse] | None = None
    errors: list[DocumentErrorResponse] | None = None
    failed_stage: str | None = None
    failure: FailureDetail | None = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    extraction_model: str
    analysis_model: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: str | None = None
    code: str | None = None
    retryable: bool = False
