"""
Document pipeline orchestrator.

Coordinates the processing of one document:
1. Claim the document (status -> processing, committed immediately)
2. AI field extraction
3. Field replacement and status -> reviewed, in one transaction
4. On any failure, status -> rejected and the original error is raised

Error analysis is a separate operation. The upload workflow chains
upload -> process -> analyse; manual re-processing does not analyse.

A document must never be left in ``processing``: every failure path after
the claim attempts to resolve it to ``rejected``.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from greendocs.domain.errors import GreenDocsError, InvalidStateError, NotFoundError, ValidationError
from greendocs.domain.models import DocumentType, ExtractedField
from greendocs.infrastructure.database import DocumentErrorRecord, DocumentFieldRecord, DocumentRecord
from greendocs.infrastructure.repository import DocumentRepository
from greendocs.infrastructure.storage import FileStore

from .error_analysis import ErrorAnalysisClient
from .extraction import ExtractionClient

logger = logging.getLogger(__name__)

ACCEPTED_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "application/pdf"})


def parse_id(value: str, label: str = "document") -> str:
    """Normalise an id, raising ValidationError if it is not a UUID."""
    try:
        return str(UUID(str(value)))
    except ValueError:
        raise ValidationError(f"Invalid {label} ID format.") from None


def field_from_record(record: DocumentFieldRecord) -> ExtractedField:
    return ExtractedField(
        field_name=record.field_name,
        field_value=record.field_value,
        confidence_score=min(max(record.confidence_score, 0.0), 1.0),
        validation_notes=record.validation_notes or "",
    )


def describe_failure(exc: BaseException) -> dict:
    """Structured description of a failure for API responses."""
    if isinstance(exc, GreenDocsError):
        return exc.to_dict()
    return {"error": str(exc) or type(exc).__name__, "code": "internal_error", "retryable": False}


@dataclass
class UploadWorkflowResult:
    """
    Outcome of upload -> process -> analyse.

    The upload itself always succeeded if this exists. ``failed_stage`` names
    the first later stage that failed, if any.
    """
    document: DocumentRecord
    fields: list[ExtractedField] | None = None
    errors: list[DocumentErrorRecord] | None = None
    failed_stage: str | None = None
    failure: dict | None = None

    @property
    def completed(self) -> bool:
        return self.failed_stage is None


@dataclass
class UploadRequest:
    """An uploaded file with its metadata."""
    content: bytes
    filename: str
    content_type: str
    project_name: str
    installer_company: str
    document_type: str


class DocumentPipeline:
    """
    Orchestrates extraction and error analysis for documents.

    Example:
        pipeline = DocumentPipeline(
            repository=DocumentRepository(),
            files=FileStore(),
            extraction=ExtractionClient(inference, files),
            analysis=ErrorAnalysisClient(inference),
        )

        fields = await pipeline.process_document(document_id)
    """

    def __init__(
        self,
        repository: DocumentRepository,
        files: FileStore,
        extraction: ExtractionClient,
        analysis: ErrorAnalysisClient,
        max_upload_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self.repository = repository
        self.files = files
        self.extraction = extraction
        self.analysis = analysis
        self.max_upload_bytes = max_upload_bytes
        # Documents with a run in progress in this worker.
        self._in_flight: set[str] = set()

    async def upload_document(self, upload: UploadRequest) -> DocumentRecord:
        """
        Validate and store an upload, creating a pending document.

        Raises:
            ValidationError: If the file or its metadata is unacceptable.
        """
        self._validate_upload(upload)

        stored = await self.files.store_upload(upload.content, upload.filename, upload.content_type)
        try:
            document = await self.repository.create_document(
                project_name=upload.project_name.strip(),
                installer_company=upload.installer_company.strip(),
                document_type=DocumentType(upload.document_type).value,
                filename=Path(stored.path).name,
                original_filename=upload.filename,
                content_type=upload.content_type,
                file_size=stored.size_bytes,
                file_url=stored.reference,
            )
        except Exception:
            await self.files.discard(stored)
            raise

        logger.info(f"Document {document.id} uploaded: type={document.document_type}, file={upload.filename}")
        return document

    def _validate_upload(self, upload: UploadRequest) -> None:
        problems = []
        if not upload.content:
            problems.append("File is required.")
        elif len(upload.content) > self.max_upload_bytes:
            problems.append(f"File size should be less than {self.max_upload_bytes // (1024 * 1024)}MB.")
        if upload.content_type not in ACCEPTED_CONTENT_TYPES:
            problems.append("Only .jpg, .png, .webp and .pdf files are accepted.")
        if not upload.project_name or not upload.project_name.strip():
            problems.append("Project name is required.")
        if not upload.installer_company or not upload.installer_company.strip():
            problems.append("Installer company is required.")
        try:
            DocumentType(upload.document_type)
        except ValueError:
            problems.append(f"Invalid document type: {upload.document_type}")

        if problems:
            raise ValidationError("Validation failed: " + " ".join(problems))

    async def process_document(self, document_id: str) -> list[ExtractedField]:
        """
        Run AI extraction for a document and replace its fields.

        Returns:
            The extracted fields now stored for the document.

        Raises:
            ValidationError: If the id is malformed.
            NotFoundError: If the document does not exist.
            InvalidStateError: If it has no file or is already being processed.
            UpstreamUnavailableError, MalformedAIResponseError, StorageError:
                After the document has been moved to ``rejected``.
        """
        document_id = parse_id(document_id)
        document = await self.repository.get_document(document_id)
        if document is None:
            raise NotFoundError(f"Document with ID {document_id} not found.")
        if not document.file_url:
            raise InvalidStateError(f"Document with ID {document_id} has no file URL.")

        if document_id in self._in_flight:
            raise InvalidStateError(f"Document {document_id} is already being processed.")
        self._in_flight.add(document_id)
        try:
            return await self._run(document)
        finally:
            self._in_flight.discard(document_id)

    async def _run(self, document: DocumentRecord) -> list[ExtractedField]:
        if not await self.repository.claim_for_processing(document.id):
            raise InvalidStateError(f"Document {document.id} is already being processed.")
        logger.info(f"Document {document.id}: processing started")

        try:
            fields = await self.extraction.extract(document.file_url, document.document_type)
        except (Exception, asyncio.CancelledError) as e:
            logger.error(f"Document {document.id}: extraction failed: {e}")
            await self._reject(document.id)
            raise

        try:
            await self.repository.replace_fields(document.id, fields)
        except Exception as e:
            logger.error(f"Document {document.id}: storing {len(fields)} fields failed: {e}")
            await self._reject(document.id)
            raise

        logger.info(f"Document {document.id}: reviewed with {len(fields)} fields")
        return fields

    async def _reject(self, document_id: str) -> None:
        """Best-effort move to ``rejected``; a failure here is logged, not raised."""
        try:
            await self.repository.mark_rejected(document_id)
            logger.info(f"Document {document_id}: marked rejected")
        except Exception as e:
            logger.error(f"Failed to update document {document_id} status to rejected: {e}")

    async def analyze_document_errors(self, document_id: str) -> list[DocumentErrorRecord]:
        """
        Run error analysis on a document's current fields and store the errors.

        The document's status is not changed.

        Raises:
            ValidationError: If the id is malformed.
            NotFoundError: If the document does not exist.
            UpstreamUnavailableError, MalformedAIResponseError: From the model.
        """
        document_id = parse_id(document_id)
        document = await self.repository.get_document(document_id)
        if document is None:
            raise NotFoundError(f"Document with ID {document_id} not found.")

        records = await self.repository.list_fields(document_id)
        fields = [field_from_record(r) for r in records]

        detected = await self.analysis.analyze_errors(document.document_type, fields)
        stored = await self.repository.insert_errors(document_id, detected)
        logger.info(f"Document {document_id}: {len(stored)} errors recorded")
        return stored

    async def upload_and_process(self, upload: UploadRequest) -> UploadWorkflowResult:
        """
        Upload, then process, then analyse.

        Only the upload is fatal. A later failure is reported on the result
        and the document keeps the state the failed stage left it in.
        """
        document = await self.upload_document(upload)
        result = UploadWorkflowResult(document=document)

        try:
            result.fields = await self.process_document(document.id)
        except Exception as e:
            logger.warning(f"Document {document.id}: automatic processing failed: {e}")
            result.failed_stage, result.failure = "process", describe_failure(e)
        else:
            try:
                result.errors = await self.analyze_document_errors(document.id)
            except Exception as e:
                logger.warning(f"Document {document.id}: automatic error analysis failed: {e}")
                result.failed_stage, result.failure = "analyze", describe_failure(e)

        result.document = await self.repository.get_document(document.id) or document
        return result
