"""
Review endpoints.

Records reviewer decisions and resolves detected errors.
"""

from fastapi import APIRouter, Depends

from greendocs.api.dependencies import get_review_service
from greendocs.api.schemas import (
    DocumentErrorResponse,
    DocumentReviewResponse,
    ErrorResponse,
    ResolveErrorResponse,
    SetStatusRequest,
    SetStatusResponse,
)
from greendocs.services.review import ReviewService

router = APIRouter(tags=["review"])


@router.post(
    "/documents/{document_id}/status",
    response_model=SetStatusResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Document not found"},
        409: {"model": ErrorResponse, "description": "Document has not finished processing"},
    },
)
async def set_document_status(
    document_id: str,
    request: SetStatusRequest,
    service: ReviewService = Depends(get_review_service),
) -> SetStatusResponse:
    """Approve, reject or mark a document reviewed, recording an audit entry."""
    review = await service.set_status(
        document_id,
        request.status,
        notes=request.review_notes,
        reviewer=request.reviewer_name,
    )
    return SetStatusResponse(
        document_id=review.document_id,
        review=DocumentReviewResponse.model_validate(review),
    )


@router.post(
    "/errors/{error_id}/resolve",
    response_model=ResolveErrorResponse,
    responses={404: {"model": ErrorResponse, "description": "Error not found"}},
)
async def resolve_error(
    error_id: str,
    service: ReviewService = Depends(get_review_service),
) -> ResolveErrorResponse:
    """Mark a detected error resolved. Resolving twice is allowed."""
    error = await service.resolve_error(error_id)
    return ResolveErrorResponse(error=DocumentErrorResponse.model_validate(error))
