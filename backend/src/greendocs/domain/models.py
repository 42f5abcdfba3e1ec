"""
Domain models for clean-energy installation document verification.

These models are the typed values that flow between the pipeline stages.
Anything coming back from the inference model is filtered and converted into
these types before the rest of the application sees it.

Design Decisions:
- Enums carry the wire values stored in the database and used in the API
- Frozen dataclasses for values produced by one stage and consumed by the next
- The document state machine lives here so both the orchestrator and the
  review handler check transitions against the same table
"""

from dataclasses import dataclass
from enum import Enum


class DocumentType(str, Enum):
    """Closed set of document types accepted at upload."""
    HOMEOWNER_ID = "homeowner_id"
    REBATE_FORM = "rebate_form"
    LOAN_DOC = "loan_doc"
    INSTALLATION_PHOTO = "installation_photo"


class DocumentStatus(str, Enum):
    """Processing and review status of a document."""
    PENDING = "pending"
    PROCESSING = "processing"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewDecision(str, Enum):
    """Statuses a human reviewer may set."""
    APPROVED = "approved"
    REJECTED = "rejected"
    REVIEWED = "reviewed"


class SeverityLevel(str, Enum):
    """Ordered severity of a detected error, most urgent first."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 for critical up to 3 for low; lower sorts first."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    SeverityLevel.CRITICAL: 0,
    SeverityLevel.HIGH: 1,
    SeverityLevel.MEDIUM: 2,
    SeverityLevel.LOW: 3,
}


# Provenance tag for errors produced by the analysis model.
AI_ANALYSIS_ERROR_TYPE = "ai_analysis"

# Statuses a manual review decision may be applied to.
POST_PROCESSING_STATUSES = frozenset(
    {DocumentStatus.REVIEWED, DocumentStatus.APPROVED, DocumentStatus.REJECTED}
)

# Allowed status transitions. ``processing`` is transient: a run always
# resolves it to ``reviewed`` or ``rejected``.
TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.REVIEWED, DocumentStatus.REJECTED}),
    DocumentStatus.REVIEWED: frozenset({DocumentStatus.PROCESSING}) | POST_PROCESSING_STATUSES,
    DocumentStatus.APPROVED: frozenset({DocumentStatus.PROCESSING}) | POST_PROCESSING_STATUSES,
    DocumentStatus.REJECTED: frozenset({DocumentStatus.PROCESSING}) | POST_PROCESSING_STATUSES,
}


def can_transition(current: DocumentStatus, target: DocumentStatus) -> bool:
    """True if ``current -> target`` is an edge of the status state machine."""
    return target in TRANSITIONS[DocumentStatus(current)]


def sources_for(target: DocumentStatus) -> list[str]:
    """Status values from which ``target`` may be entered."""
    return sorted(
        status.value for status, targets in TRANSITIONS.items() if target in targets
    )


@dataclass(frozen=True)
class ExtractedField:
    """
    A field extracted from a document by the vision model.

    ``field_value`` is None when the model could not find the field.
    """
    field_name: str
    field_value: str | None
    confidence_score: float
    validation_notes: str = ""

    def __post_init__(self) -> None:
        """Validate confidence range."""
        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValueError(f"Confidence must be 0-1, got {self.confidence_score}")


@dataclass(frozen=True)
class DetectedError:
    """
    A compliance or consistency issue found by error analysis.

    ``field_name`` is None for document-level issues.
    """
    field_name: str | None
    error_message: str
    suggested_fix: str
    severity_level: SeverityLevel
