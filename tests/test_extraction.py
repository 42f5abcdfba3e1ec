"""
Tests for parsing and filtering of extraction responses, and for the
extraction client end to end over a scripted model.
"""

import json

import pytest

from greendocs.domain.errors import MalformedAIResponseError, UpstreamUnavailableError
from greendocs.domain.models import DocumentType, ExtractedField
from greendocs.services.extraction import ExtractionClient, parse_extraction_payload

from conftest import PNG_BYTES, PNG_DATA_URL, FakeInference


class TestParseExtractionPayload:
    """Tests for parse_extraction_payload()."""

    def test_well_formed_fields(self):
        raw = json.dumps({
            "fields": [
                {"fieldName": "fullName", "fieldValue": "Jane Doe", "confidenceScore": 0.97, "validationNotes": ""},
                {"fieldName": "idNumber", "fieldValue": None, "confidenceScore": 0.2, "validationNotes": "glare"},
            ]
        })

        assert parse_extraction_payload(raw) == [
            ExtractedField("fullName", "Jane Doe", 0.97, ""),
            ExtractedField("idNumber", None, 0.2, "glare"),
        ]

    def test_array_under_any_key(self):
        raw = json.dumps({
            "model": "v1",
            "extracted": [{"fieldName": "location", "fieldValue": "Rooftop", "confidenceScore": 1}],
        })

        fields = parse_extraction_payload(raw)

        assert [f.field_name for f in fields] == ["location"]

    def test_first_array_wins(self):
        raw = json.dumps({
            "a": [{"fieldName": "first", "fieldValue": "1", "confidenceScore": 0.5}],
            "b": [{"fieldName": "second", "fieldValue": "2", "confidenceScore": 0.5}],
        })

        assert [f.field_name for f in parse_extraction_payload(raw)] == ["first"]

    def test_malformed_elements_are_dropped(self):
        raw = json.dumps({
            "fields": [
                {"fieldName": "ok", "fieldValue": "yes", "confidenceScore": 0.9},
                {"fieldName": "noValueKey", "confidenceScore": 0.9},
                {"fieldValue": "no name", "confidenceScore": 0.9},
                {"fieldName": "noConfidence", "fieldValue": "x"},
                {"fieldName": "badConfidence", "fieldValue": "x", "confidenceScore": "high"},
                "just a string",
                None,
            ]
        })

        assert [f.field_name for f in parse_extraction_payload(raw)] == ["ok"]

    def test_values_are_normalised(self):
        raw = json.dumps({
            "fields": [
                {"fieldName": "isSigned", "fieldValue": True, "confidenceScore": 1.4},
                {"fieldName": "loanAmount", "fieldValue": 25000, "confidenceScore": -0.2},
                {"fieldName": "interestRate", "fieldValue": "4.5", "confidenceScore": "0.8"},
            ]
        })

        fields = parse_extraction_payload(raw)

        assert fields[0] == ExtractedField("isSigned", "true", 1.0, "")
        assert fields[1] == ExtractedField("loanAmount", "25000", 0.0, "")
        assert fields[2].confidence_score == 0.8

    def test_empty_array_is_valid(self):
        assert parse_extraction_payload('{"fields": []}') == []

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "not json",
            "[1, 2, 3]",
            '{"fields": "none"}',
            '{"count": 3, "status": "ok"}',
            "{}",
        ],
    )
    def test_malformed_response(self, raw):
        with pytest.raises(MalformedAIResponseError):
            parse_extraction_payload(raw)


class TestExtractionClient:
    """Tests for ExtractionClient.extract()."""

    @pytest.mark.asyncio
    async def test_sends_prompt_and_image(self, file_store):
        inference = FakeInference(
            '{"fields": [{"fieldName": "applicantName", "fieldValue": "Jane", "confidenceScore": 0.9}]}'
        )
        client = ExtractionClient(inference, file_store)

        fields = await client.extract(PNG_DATA_URL, DocumentType.REBATE_FORM)

        assert fields == [ExtractedField("applicantName", "Jane", 0.9)]
        (call,) = inference.calls
        assert call["model"] == "gpt-4o"
        assert call["image_url"] == PNG_DATA_URL
        assert '"applicantName"' in call["prompt"]

    @pytest.mark.asyncio
    async def test_reads_local_storage(self, file_store):
        stored = await file_store.store_upload(PNG_BYTES, "form.png", "image/png")
        inference = FakeInference('{"fields": []}')
        client = ExtractionClient(inference, file_store, model="vision-test")

        assert await client.extract(stored.reference, "rebate_form") == []
        assert inference.calls[0]["model"] == "vision-test"
        assert inference.calls[0]["image_url"] == PNG_DATA_URL

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates(self, file_store):
        inference = FakeInference(UpstreamUnavailableError("rate limited", status_code=429))
        client = ExtractionClient(inference, file_store)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await client.extract(PNG_DATA_URL, DocumentType.HOMEOWNER_ID)

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_response_without_array(self, file_store):
        client = ExtractionClient(FakeInference('{"result": "ok"}'), file_store)

        with pytest.raises(MalformedAIResponseError):
            await client.extract(PNG_DATA_URL, DocumentType.LOAN_DOC)
