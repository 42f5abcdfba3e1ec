"""
Pipeline endpoints.

Triggers AI extraction and error analysis for a stored document.
"""

import logging

from fastapi import APIRouter, Depends

from greendocs.api.dependencies import get_pipeline
from greendocs.api.schemas import (
    AnalyzeErrorsResponse,
    DocumentErrorResponse,
    ErrorResponse,
    ExtractedFieldResponse,
    ProcessResponse,
)
from greendocs.services.pipeline import DocumentPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["processing"])

_FAILURE_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid document ID"},
    404: {"model": ErrorResponse, "description": "Document not found"},
    409: {"model": ErrorResponse, "description": "Document has no file or is already being processed"},
    502: {"model": ErrorResponse, "description": "Model unavailable or returned a malformed answer"},
}


@router.post(
    "/{document_id}/process",
    response_model=ProcessResponse,
    responses=_FAILURE_RESPONSES,
)
async def process_document(
    document_id: str,
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> ProcessResponse:
    """
    Run AI extraction and replace the document's fields.

    **Process:**
    1. Status -> processing
    2. Extract fields with the vision model
    3. Replace stored fields, status -> reviewed

    On failure the document is rejected and the error is returned.
    Error analysis is not run; call ``analyze-errors`` for that.
    """
    fields = await pipeline.process_document(document_id)
    return ProcessResponse(
        document_id=document_id,
        fields=[ExtractedFieldResponse.model_validate(f) for f in fields],
    )


@router.post(
    "/{document_id}/analyze-errors",
    response_model=AnalyzeErrorsResponse,
    responses=_FAILURE_RESPONSES,
)
async def analyze_errors(
    document_id: str,
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> AnalyzeErrorsResponse:
    """Detect compliance errors in the document's current fields."""
    errors = await pipeline.analyze_document_errors(document_id)
    return AnalyzeErrorsResponse(
        document_id=document_id,
        errors=[DocumentErrorResponse.model_validate(e) for e in errors],
    )
