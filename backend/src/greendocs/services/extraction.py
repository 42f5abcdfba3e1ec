"""
AI field extraction from document images.

The vision model's answer is treated as untrusted: it is parsed into a
plain JSON object, the field array is located, and every element is checked
before it becomes an ``ExtractedField``. Elements that do not carry the
required keys are dropped rather than failing the whole extraction.
"""

import asyncio
import logging
import math
from typing import Any

from greendocs.domain.errors import MalformedAIResponseError
from greendocs.domain.models import DocumentType, ExtractedField
from greendocs.domain.prompts import build_extraction_instructions
from greendocs.infrastructure.storage import FileStore

from .imaging import to_data_url, to_model_image
from .inference import InferenceClient, load_json_object

logger = logging.getLogger(__name__)

REQUIRED_FIELD_KEYS = ("fieldName", "fieldValue", "confidenceScore")


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return value if isinstance(value, str) else str(value)


def _to_field(item: Any) -> ExtractedField | None:
    """Convert one array element, or return None if it is malformed."""
    if not isinstance(item, dict):
        return None
    if any(key not in item for key in REQUIRED_FIELD_KEYS):
        return None

    name = item["fieldName"]
    if not isinstance(name, str) or not name.strip():
        return None

    confidence = item["confidenceScore"]
    if isinstance(confidence, bool):
        return None
    try:
        confidence = float(confidence)
    except (TypeError, ValueError):
        return None
    if math.isnan(confidence):
        return None

    notes = item.get("validationNotes")
    return ExtractedField(
        field_name=name.strip(),
        field_value=_as_text(item["fieldValue"]),
        confidence_score=min(max(confidence, 0.0), 1.0),
        validation_notes="" if notes is None else _as_text(notes),
    )


def parse_extraction_payload(raw: str) -> list[ExtractedField]:
    """
    Turn the raw model answer into extracted fields.

    The answer must be a JSON object with at least one array-valued entry;
    the first such array is used, whatever its key.

    Raises:
        MalformedAIResponseError: If the answer is empty, not a JSON object,
            or contains no array.
    """
    payload = load_json_object(raw, "field extraction")

    items = next((value for value in payload.values() if isinstance(value, list)), None)
    if items is None:
        logger.error(f"Extraction response has no array value, keys: {list(payload.keys())}")
        raise MalformedAIResponseError(
            "AI response was not in the expected format (array of fields)."
        )

    fields = []
    for item in items:
        field = _to_field(item)
        if field is None:
            logger.debug(f"Dropping malformed extraction entry: {item!r}")
            continue
        fields.append(field)

    if len(fields) < len(items):
        logger.info(f"Kept {len(fields)} of {len(items)} extracted entries")
    return fields


class ExtractionClient:
    """
    Extracts typed fields from a stored document using the vision model.

    Example:
        client = ExtractionClient(inference=InferenceClient(config), files=FileStore())
        fields = await client.extract("local:ab/cd/abcd.png", DocumentType.REBATE_FORM)
    """

    def __init__(
        self,
        inference: InferenceClient,
        files: FileStore,
        model: str | None = None,
    ) -> None:
        self.inference = inference
        self.files = files
        self.model = model or inference.config.extraction_model

    async def extract(
        self,
        file_reference: str,
        document_type: DocumentType | str,
    ) -> list[ExtractedField]:
        """
        Extract the fields of one document.

        Raises:
            UpstreamUnavailableError: If the file or the model cannot be reached.
            MalformedAIResponseError: If the model answer has the wrong shape.
        """
        doc_type = DocumentType(document_type)
        logger.info(f"Extracting fields: type={doc_type.value}, model={self.model}")

        fetched = await self.files.fetch(file_reference)
        image, content_type = await asyncio.to_thread(
            to_model_image, fetched.content, fetched.content_type
        )

        raw = await self.inference.complete_json(
            model=self.model,
            prompt=build_extraction_instructions(doc_type),
            image_url=to_data_url(image, content_type),
        )
        return parse_extraction_payload(raw)
