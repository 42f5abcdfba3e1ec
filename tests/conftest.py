"""
Shared fixtures: in-memory database, temporary file storage and a scripted
stand-in for the inference client.
"""

import base64
import os

# Settings are read when greendocs.main is imported; keep them test-local.
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from greendocs.infrastructure.database import DocumentRecord, init_db
from greendocs.infrastructure.repository import DocumentRepository
from greendocs.infrastructure.storage import FileStore, LocalStorageBackend
from greendocs.services.error_analysis import ErrorAnalysisClient
from greendocs.services.extraction import ExtractionClient
from greendocs.services.inference import InferenceConfig
from greendocs.services.pipeline import DocumentPipeline
from greendocs.services.review import ReviewService

PNG_BYTES = b"\x89PNG\r\n\x1a\nnot-really-a-png"
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


class FakeInference:
    """
    Scripted replacement for InferenceClient.

    Each call pops the next queued response; an exception instance is raised
    instead of returned.
    """

    def __init__(self, *responses):
        self.config = InferenceConfig(api_key="test-key")
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def complete_json(self, *, model, prompt, image_url=None):
        self.calls.append({"model": model, "prompt": prompt, "image_url": image_url})
        if not self.responses:
            raise AssertionError("Unexpected inference call")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def repository(session_factory):
    return DocumentRepository(session_factory)


@pytest.fixture
def file_store(tmp_path):
    return FileStore(backend=LocalStorageBackend(tmp_path / "storage"), fetch_timeout=5)


@pytest.fixture
def inference():
    return FakeInference()


@pytest.fixture
def pipeline(repository, file_store, inference):
    return DocumentPipeline(
        repository=repository,
        files=file_store,
        extraction=ExtractionClient(inference, file_store),
        analysis=ErrorAnalysisClient(inference),
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
def review_service(repository):
    return ReviewService(repository, default_reviewer="System")


@pytest.fixture
def make_document(repository):
    """Insert a pending document pointing at an inline PNG."""

    async def _make(**overrides):
        values = {
            "project_name": "Maple Street Solar",
            "installer_company": "SunBright Installations",
            "document_type": "rebate_form",
            "filename": "rebate.png",
            "original_filename": "rebate.png",
            "content_type": "image/png",
            "file_size": len(PNG_BYTES),
            "file_url": PNG_DATA_URL,
        }
        values.update(overrides)
        return await repository.create_document(**values)

    return _make


@pytest.fixture
def force_status(session_factory):
    """Put a document into a given status, bypassing the state machine."""

    async def _force(document_id, status):
        async with session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(DocumentRecord)
                    .where(DocumentRecord.id == document_id)
                    .values(status=status)
                )

    return _force
