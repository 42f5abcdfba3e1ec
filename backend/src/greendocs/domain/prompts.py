"""
Instruction text for the extraction and error-analysis models.

Both builders are pure: the same document type (and the same fields) always
produce byte-identical text. The output shapes described here are the ones
the extraction and error-analysis clients validate against.
"""

import json
from collections.abc import Iterable

from greendocs.domain.models import DocumentType, ExtractedField, SeverityLevel

# Top-level key the extraction model is asked to put its array under.
EXTRACTION_RESULT_KEY = "fields"

# Top-level key the error-analysis model must put its array under.
ERRORS_RESULT_KEY = "errors"


EXTRACTION_FIELDS: dict[DocumentType, tuple[tuple[str, str], ...]] = {
    DocumentType.HOMEOWNER_ID: (
        ("fullName", ""),
        ("address", ""),
        ("idNumber", ""),
        ("dateOfBirth", "ISO 8601 date, YYYY-MM-DD"),
        ("expirationDate", "ISO 8601 date, YYYY-MM-DD"),
    ),
    DocumentType.REBATE_FORM: (
        ("applicantName", ""),
        ("propertyAddress", ""),
        ("installerCompany", ""),
        ("equipmentModel", ""),
        ("equipmentSerialNumber", ""),
        ("installationDate", "ISO 8601 date, YYYY-MM-DD"),
        ("rebateAmount", "plain number, no currency symbol or separators"),
    ),
    DocumentType.LOAN_DOC: (
        ("borrowerName", ""),
        ("coBorrowerName", "only if present"),
        ("loanAmount", "plain number, no currency symbol or separators"),
        ("interestRate", "annual percentage as a plain number"),
        ("loanTerm", "number of months or years, state the unit"),
        ("lenderName", ""),
        ("isSigned", "boolean: true if a signature is visible, false otherwise"),
    ),
    DocumentType.INSTALLATION_PHOTO: (
        ("equipmentType", "e.g. 'Solar Panel', 'Heat Pump', 'Battery'"),
        ("equipmentBrandAndModel", "only if visible on the equipment"),
        ("location", "e.g. 'Rooftop', 'Basement', 'Exterior Wall'"),
        ("obviousIssues", "visible damage, incorrect wiring or other installation "
                          "problems; if none, exactly \"No obvious issues.\""),
    ),
}

_DOCUMENT_DESCRIPTIONS = {
    DocumentType.HOMEOWNER_ID: "this government-issued ID",
    DocumentType.REBATE_FORM: "this rebate application form",
    DocumentType.LOAN_DOC: "this loan document",
    DocumentType.INSTALLATION_PHOTO: "this installation photo",
}

_EXTRACTION_PREAMBLE = f"""\
You are an expert AI assistant for a clean energy installation company. Your task is to extract specific fields from the provided document image.
Analyze the image and return a JSON object with a single key "{EXTRACTION_RESULT_KEY}" whose value is an array of extracted fields.
Each object in the array must have the following structure: {{"fieldName": "...", "fieldValue": "...", "confidenceScore": 0.0, "validationNotes": "..."}}.
- "fieldName": The name of the field being extracted, exactly as listed below.
- "fieldValue": The extracted value as a string, or a JSON boolean for signature presence. If a value cannot be found, use null.
- "confidenceScore": Your confidence in the accuracy of the extraction, from 0.0 (not confident) to 1.0 (very confident).
- "validationNotes": Notes about the extraction, such as a value that is partially obscured, hard to read or unusual. If there are no notes, use an empty string.

Formatting rules:
- Dates must be ISO 8601 (YYYY-MM-DD).
- Amounts must be plain numbers without currency symbols or thousands separators.
- Signature presence must be a JSON boolean (true or false), not a string.

Do not return any text outside of the JSON object.
"""

_ANALYSIS_CHECKS = {
    DocumentType.HOMEOWNER_ID: """\
Analyze this government-issued ID. Check for:
- Completeness: All fields (fullName, address, idNumber, dateOfBirth, expirationDate) must be present.
- Expiration: The expirationDate must not be in the past.
- Format: dateOfBirth and expirationDate should be valid ISO 8601 dates.
- Quality: If confidence scores are low, suggest that a better quality image might be needed.
""",
    DocumentType.REBATE_FORM: """\
Analyze this rebate form. Check for:
- Completeness: All fields must be filled, especially applicantName, propertyAddress, installationDate and rebateAmount.
- Signatures: Although not an extracted field, mention if a signature section is likely missing or incomplete based on common forms. Suggest checking for a signature.
- Consistency: The information should be logical (e.g. installationDate should be in the past).
- Format: rebateAmount should be a number. installationDate should be a valid ISO 8601 date.
""",
    DocumentType.LOAN_DOC: """\
Analyze this loan document. Check for:
- Completeness: Key fields like borrowerName, loanAmount and lenderName must be present.
- Signatures: The isSigned field is critical. If it is false, this is a high-severity error.
- Consistency: Check that the loan terms seem plausible.
""",
    DocumentType.INSTALLATION_PHOTO: """\
Analyze this installation photo analysis. Check for:
- Critical Issues: The obviousIssues field is most important. If it contains anything other than "No obvious issues.", flag it as a high-severity issue.
- Completeness: Ensure equipmentType and location are identified. If the brand/model is missing, flag it as a low-severity issue.
""",
}

_SEVERITY_CHOICES = ", ".join(f"'{level.value}'" for level in SeverityLevel)


def _require_known(document_type: DocumentType | str) -> DocumentType:
    try:
        return DocumentType(document_type)
    except ValueError:
        raise ValueError(f"Unknown document type: {document_type!r}") from None


def build_extraction_instructions(document_type: DocumentType | str) -> str:
    """
    Build the instruction sent alongside the document image.

    Raises:
        ValueError: If ``document_type`` is not one of the known types.
    """
    doc_type = _require_known(document_type)

    lines = [f"Extract the following fields from {_DOCUMENT_DESCRIPTIONS[doc_type]}:"]
    for name, hint in EXTRACTION_FIELDS[doc_type]:
        lines.append(f'- "{name}" ({hint})' if hint else f'- "{name}"')

    return _EXTRACTION_PREAMBLE + "\n" + "\n".join(lines) + "\n"


def _fields_payload(fields: Iterable[ExtractedField]) -> str:
    payload = [
        {
            "fieldName": f.field_name,
            "fieldValue": f.field_value,
            "confidenceScore": f.confidence_score,
        }
        for f in fields
    ]
    return json.dumps(payload, indent=2, ensure_ascii=False)


def build_error_analysis_instructions(
    document_type: DocumentType | str,
    fields: Iterable[ExtractedField],
) -> str:
    """
    Build the instruction for compliance error analysis.

    The extracted fields are embedded as JSON (name, value and confidence
    only), in the order given.

    Raises:
        ValueError: If ``document_type`` is not one of the known types.
    """
    doc_type = _require_known(document_type)

    return (
        "You are an expert AI compliance officer for a European clean energy installation company. "
        "Your task is to analyze the extracted fields from a document and identify any errors, "
        "inconsistencies or compliance issues.\n"
        "Analyze the fields based on the document type and common requirements for that document "
        "in the European clean energy sector.\n"
        "\n"
        f'Return a JSON object with a key "{ERRORS_RESULT_KEY}" containing an array of error objects.\n'
        'Each error object must have the following structure: {"fieldName": "...", "errorMessage": "...", '
        '"suggestedFix": "...", "severityLevel": "..."}.\n'
        '- "fieldName": The name of the field with the error. Use null for document-level errors '
        "(e.g. multiple missing fields).\n"
        '- "errorMessage": A clear and concise description of the error.\n'
        '- "suggestedFix": A specific, actionable suggestion for how to fix the error.\n'
        f'- "severityLevel": The severity of the error, which must be one of {_SEVERITY_CHOICES}.\n'
        "\n"
        f'If there are no errors, return an empty array: {{"{ERRORS_RESULT_KEY}": []}}.\n'
        "Do not return any text outside of the JSON object.\n"
        "\n"
        + _ANALYSIS_CHECKS[doc_type]
        + "\n"
        "Here are the extracted fields:\n"
        + _fields_payload(fields)
        + "\n"
    )
