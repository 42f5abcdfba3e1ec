"""
Document endpoints.

Handles upload, listing, details, metadata edits and analytics.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from greendocs.api.dependencies import get_document_service, get_pipeline
from greendocs.api.schemas import (
    AnalyticsResponse,
    DocumentDetailsResponse,
    DocumentErrorResponse,
    DocumentFieldResponse,
    DocumentListResponse,
    DocumentResponse,
    DocumentReviewResponse,
    ExtractedFieldResponse,
    FailureDetail,
    UpdateDocumentRequest,
    UploadResponse,
)
from greendocs.domain.models import DocumentStatus, DocumentType
from greendocs.services.documents import MAX_PAGE_SIZE, DocumentService
from greendocs.services.pipeline import DocumentPipeline, UploadRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        400: {"description": "Invalid file or metadata"},
    },
)
async def upload_document(
    file: Annotated[UploadFile, File(description="Document file (PDF/image)")],
    project_name: Annotated[str, Form()],
    installer_company: Annotated[str, Form()],
    document_type: Annotated[DocumentType, Form()],
    auto_process: Annotated[bool, Form(description="Process and analyse right after upload")] = False,
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> UploadResponse:
    """
    Upload a document.

    With ``auto_process`` the document is also processed and analysed. A
    failure in those stages does not fail the upload: the response names
    the failed stage and the document keeps its last state.
    """
    upload = UploadRequest(
        content=await file.read(),
        filename=file.filename or "document",
        content_type=file.content_type or "application/octet-stream",
        project_name=project_name,
        installer_company=installer_company,
        document_type=document_type.value,
    )

    if not auto_process:
        document = await pipeline.upload_document(upload)
        return UploadResponse(document=DocumentResponse.model_validate(document))

    result = await pipeline.upload_and_process(upload)
    return UploadResponse(
        document=DocumentResponse.model_validate(result.document),
        fields=(
            [ExtractedFieldResponse.model_validate(f) for f in result.fields]
            if result.fields is not None else None
        ),
        errors=(
            [DocumentErrorResponse.model_validate(e) for e in result.errors]
            if result.errors is not None else None
        ),
        failed_stage=result.failed_stage,
        failure=FailureDetail(**result.failure) if result.failure else None,
    )


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 10,
    status: DocumentStatus | None = None,
    document_type: DocumentType | None = None,
    search_query: str | None = None,
    service: DocumentService = Depends(get_document_service),
) -> DocumentListResponse:
    """List documents, newest upload first."""
    result = await service.list_documents(
        page=page,
        page_size=page_size,
        status=status,
        document_type=document_type,
        search_query=search_query,
    )
    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(d) for d in result.documents],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
    )


@router.post("", response_model=DocumentResponse)
async def update_document(
    request: UpdateDocumentRequest,
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    """Edit project name and installer company."""
    document = await service.update_metadata(
        request.id,
        project_name=request.project_name,
        installer_company=request.installer_company,
    )
    return DocumentResponse.model_validate(document)


@router.get("/analytics", response_model=AnalyticsResponse)
async def document_analytics(
    service: DocumentService = Depends(get_document_service),
) -> AnalyticsResponse:
    """Status counts and the most recently updated documents."""
    result = await service.analytics()
    return AnalyticsResponse(
        status_counts=result.status_counts,
        recent_activity=[DocumentResponse.model_validate(d) for d in result.recent_activity],
    )


@router.get(
    "/{document_id}",
    response_model=DocumentDetailsResponse,
    responses={404: {"description": "Document not found"}},
)
async def document_details(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> DocumentDetailsResponse:
    """A document with its fields and review history."""
    details = await service.get_details(document_id)
    return DocumentDetailsResponse(
        document=DocumentResponse.model_validate(details.document),
        fields=[DocumentFieldResponse.model_validate(f) for f in details.fields],
        reviews=[DocumentReviewResponse.model_validate(r) for r in details.reviews],
    )


@router.get(
    "/{document_id}/errors",
    response_model=list[DocumentErrorResponse],
    responses={404: {"description": "Document not found"}},
)
async def document_errors(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> list[DocumentErrorResponse]:
    """Errors of a document, most severe first."""
    errors = await service.list_errors(document_id)
    return [DocumentErrorResponse.model_validate(e) for e in errors]
