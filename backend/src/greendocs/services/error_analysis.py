"""
AI compliance error analysis over extracted fields.
"""

import logging
from collections.abc import Sequence
from typing import Any

from greendocs.domain.errors import MalformedAIResponseError
from greendocs.domain.models import DetectedError, DocumentType, ExtractedField, SeverityLevel
from greendocs.domain.prompts import ERRORS_RESULT_KEY, build_error_analysis_instructions

from .inference import InferenceClient, load_json_object

logger = logging.getLogger(__name__)

REQUIRED_ERROR_KEYS = ("errorMessage", "suggestedFix", "severityLevel")

NO_FIELDS_ERROR = DetectedError(
    field_name=None,
    error_message="No fields were extracted from this document.",
    suggested_fix=(
        "The document may be empty, unreadable, or the initial processing failed. "
        "Please re-process the document or upload a new version."
    ),
    severity_level=SeverityLevel.HIGH,
)


def _to_error(item: Any) -> DetectedError | None:
    """Convert one array element, or return None if it is malformed."""
    if not isinstance(item, dict):
        return None
    if any(key not in item for key in REQUIRED_ERROR_KEYS):
        return None

    message, fix = item["errorMessage"], item["suggestedFix"]
    if not isinstance(message, str) or not isinstance(fix, str):
        return None

    try:
        severity = SeverityLevel(str(item["severityLevel"]).strip().lower())
    except ValueError:
        return None

    field_name = item.get("fieldName")
    if not isinstance(field_name, str) or not field_name.strip():
        field_name = None

    return DetectedError(
        field_name=field_name,
        error_message=message,
        suggested_fix=fix,
        severity_level=severity,
    )


def parse_error_payload(raw: str) -> list[DetectedError]:
    """
    Turn the raw model answer into detected errors.

    Raises:
        MalformedAIResponseError: If the answer is not a JSON object with an
            ``errors`` array.
    """
    payload = load_json_object(raw, "error analysis")

    items = payload.get(ERRORS_RESULT_KEY)
    if not isinstance(items, list):
        logger.error(f"Error analysis response has no '{ERRORS_RESULT_KEY}' array: {payload!r}")
        raise MalformedAIResponseError(
            "AI error analysis response was not in the expected format "
            f"(object with an '{ERRORS_RESULT_KEY}' array)."
        )

    errors = []
    for item in items:
        error = _to_error(item)
        if error is None:
            logger.debug(f"Dropping malformed analysis entry: {item!r}")
            continue
        errors.append(error)
    return errors


class ErrorAnalysisClient:
    """Finds compliance issues in a document's extracted fields."""

    def __init__(self, inference: InferenceClient, model: str | None = None) -> None:
        self.inference = inference
        self.model = model or inference.config.analysis_model

    async def analyze_errors(
        self,
        document_type: DocumentType | str,
        fields: Sequence[ExtractedField],
    ) -> list[DetectedError]:
        """
        Analyse extracted fields for errors.

        With no fields there is nothing to analyse: a single high-severity
        document-level error is returned without calling the model.

        Raises:
            UpstreamUnavailableError: If the model cannot be reached.
            MalformedAIResponseError: If the model answer has the wrong shape.
        """
        doc_type = DocumentType(document_type)
        if not fields:
            logger.info(f"No fields to analyse for {doc_type.value}, skipping model call")
            return [NO_FIELDS_ERROR]

        logger.info(f"Analysing {len(fields)} fields: type={doc_type.value}, model={self.model}")
        raw = await self.inference.complete_json(
            model=self.model,
            prompt=build_error_analysis_instructions(doc_type, fields),
        )
        return parse_error_payload(raw)
