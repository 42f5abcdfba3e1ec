"""
Service wiring for the API.

Services are built once from settings and shared. Routes receive them via
``Depends`` so tests can swap them with ``app.dependency_overrides``.
"""

from greendocs.config import get_settings
from greendocs.infrastructure.repository import DocumentRepository
from greendocs.infrastructure.storage import FileStore
from greendocs.services.documents import DocumentService
from greendocs.services.error_analysis import ErrorAnalysisClient
from greendocs.services.extraction import ExtractionClient
from greendocs.services.inference import InferenceClient, InferenceConfig
from greendocs.services.pipeline import DocumentPipeline
from greendocs.services.review import ReviewService

# Service instances (built lazily on first use)
_repository: DocumentRepository | None = None
_pipeline: DocumentPipeline | None = None


def get_repository() -> DocumentRepository:
    """Get or create the shared repository."""
    global _repository
    if _repository is None:
        _repository = DocumentRepository()
    return _repository


def get_pipeline() -> DocumentPipeline:
    """Get or create the pipeline orchestrator and its clients."""
    global _pipeline
    if _pipeline is None:
        settings = get_settings()
        inference = InferenceClient(InferenceConfig.from_settings(settings))
        files = FileStore()
        _pipeline = DocumentPipeline(
            repository=get_repository(),
            files=files,
            extraction=ExtractionClient(inference, files),
            analysis=ErrorAnalysisClient(inference),
            max_upload_bytes=settings.max_upload_bytes,
        )
    return _pipeline


def get_review_service() -> ReviewService:
    return ReviewService(get_repository(), default_reviewer=get_settings().default_reviewer)


def get_document_service() -> DocumentService:
    return DocumentService(get_repository())


def reset_services() -> None:
    """Drop cached services (on shutdown, so a restart rebuilds them)."""
    global _repository, _pipeline
    _repository = None
    _pipeline = None
