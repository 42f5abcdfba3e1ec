"""
HTTP-level tests: routing, request validation and the error response shape.
"""

import json
import uuid

import httpx
import pytest
import pytest_asyncio

from greendocs.api.dependencies import get_document_service, get_pipeline, get_review_service
from greendocs.domain.models import DetectedError, SeverityLevel
from greendocs.main import create_app
from greendocs.services.documents import DocumentService

from conftest import PNG_BYTES


@pytest_asyncio.fixture
async def client(pipeline, review_service, repository):
    app = create_app()
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_review_service] = lambda: review_service
    app.dependency_overrides[get_document_service] = lambda: DocumentService(repository)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


def _form(**overrides):
    data = {
        "project_name": "Maple Street Solar",
        "installer_company": "SunBright Installations",
        "document_type": "rebate_form",
    }
    data.update(overrides)
    return data


async def _upload(client, **form):
    return await client.post(
        "/api/v1/documents/upload",
        data=_form(**form),
        files={"file": ("rebate.png", PNG_BYTES, "image/png")},
    )


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["extraction_model"] == "gpt-4o"


@pytest.mark.asyncio
async def test_upload_then_process_then_review(client, inference):
    response = await _upload(client)
    assert response.status_code == 200
    document = response.json()["document"]
    assert document["status"] == "pending"
    assert response.json()["failed_stage"] is None

    inference.queue(json.dumps({
        "fields": [{"fieldName": "applicantName", "fieldValue": "Jane Doe", "confidenceScore": 0.9}]
    }))
    response = await client.post(f"/api/v1/documents/{document['id']}/process")
    assert response.status_code == 200
    assert response.json()["fields"][0]["field_name"] == "applicantName"

    response = await client.post(
        f"/api/v1/documents/{document['id']}/status",
        json={"status": "approved", "review_notes": "looks good", "reviewer_name": "Dana"},
    )
    assert response.status_code == 200
    assert response.json()["review"]["review_status"] == "approved"

    response = await client.get(f"/api/v1/documents/{document['id']}")
    details = response.json()
    assert details["document"]["status"] == "approved"
    assert [f["field_name"] for f in details["fields"]] == ["applicantName"]
    assert len(details["reviews"]) == 1


@pytest.mark.asyncio
async def test_upload_with_auto_process_runs_analysis(client, inference):
    inference.queue('{"fields": []}')

    response = await _upload(client, auto_process="true")

    body = response.json()
    assert response.status_code == 200
    assert body["document"]["status"] == "reviewed"
    assert body["fields"] == []
    assert body["failed_stage"] is None
    assert body["errors"][0]["field_name"] is None
    assert body["errors"][0]["severity_level"] == "high"


@pytest.mark.asyncio
async def test_upload_rejects_unsupported_file(client):
    response = await client.post(
        "/api/v1/documents/upload",
        data=_form(),
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_process_failure_shape(client, inference, make_document):
    document = await make_document()
    inference.queue('{"unexpected": true}')

    response = await client.post(f"/api/v1/documents/{document.id}/process")

    assert response.status_code == 502
    assert response.json() == {
        "error": "AI response was not in the expected format (array of fields).",
        "code": "malformed_ai_response",
        "retryable": True,
    }

    response = await client.get(f"/api/v1/documents/{document.id}")
    assert response.json()["document"]["status"] == "rejected"


@pytest.mark.asyncio
async def test_process_conflict(client, make_document, force_status):
    document = await make_document()
    await force_status(document.id, "processing")

    response = await client.post(f"/api/v1/documents/{document.id}/process")

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_unknown_and_malformed_ids(client):
    response = await client.post(f"/api/v1/documents/{uuid.uuid4()}/process")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"

    response = await client.post("/api/v1/documents/abc/analyze-errors")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid document ID format."


@pytest.mark.asyncio
async def test_review_requires_known_decision(client, make_document):
    document = await make_document()

    response = await client.post(f"/api/v1/documents/{document.id}/status", json={"status": "pending"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_errors_and_resolve(client, repository, make_document):
    document = await make_document()
    await repository.insert_errors(
        document.id,
        [
            DetectedError("rebateAmount", "Too high.", "Check it.", SeverityLevel.LOW),
            DetectedError(None, "Unsigned.", "Sign it.", SeverityLevel.CRITICAL),
        ],
    )

    response = await client.get(f"/api/v1/documents/{document.id}/errors")
    errors = response.json()
    assert [e["severity_level"] for e in errors] == ["critical", "low"]

    for _ in range(2):
        response = await client.post(f"/api/v1/errors/{errors[0]['id']}/resolve")
        assert response.status_code == 200
        assert response.json()["error"]["is_resolved"] is True

    response = await client.post(f"/api/v1/errors/{uuid.uuid4()}/resolve")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_update_and_analytics(client, make_document):
    document = await make_document()
    await make_document(project_name="Oak Avenue Battery")

    response = await client.get("/api/v1/documents", params={"search_query": "oak"})
    assert response.json()["total_count"] == 1

    response = await client.post(
        "/api/v1/documents",
        json={"id": document.id, "installer_company": "Bright Roofs"},
    )
    assert response.status_code == 200
    assert response.json()["installer_company"] == "Bright Roofs"

    response = await client.post("/api/v1/documents", json={"id": document.id})
    assert response.status_code == 400

    response = await client.get("/api/v1/documents/analytics")
    assert response.json()["status_counts"] == {"pending": 2}
