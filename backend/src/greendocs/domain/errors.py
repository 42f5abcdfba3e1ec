"""
Error taxonomy for the document pipeline.

Every failure the pipeline surfaces is one of these exceptions. The API layer
maps them to structured responses; the orchestrator uses them to decide
whether a document must be moved to ``rejected``.
"""


class GreenDocsError(Exception):
    """Base class for all domain errors."""
    code = "error"
    http_status = 500
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }


class ValidationError(GreenDocsError):
    """Malformed caller input. No state is touched."""
    code = "validation_error"
    http_status = 400


class NotFoundError(GreenDocsError):
    """Referenced document or error does not exist."""
    code = "not_found"
    http_status = 404


class InvalidStateError(GreenDocsError):
    """Operation is not allowed in the document's current state."""
    code = "invalid_state"
    http_status = 409


class UpstreamUnavailableError(GreenDocsError):
    """
    The inference capability (or a remote file) could not be reached.

    Carries the upstream status code when the upstream answered with one.
    """
    code = "upstream_unavailable"
    http_status = 502
    retryable = True

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["upstream_status"] = self.status_code
        return data


class MalformedAIResponseError(GreenDocsError):
    """The model answered, but not in the structure that was asked for."""
    code = "malformed_ai_response"
    http_status = 502
    retryable = True


class StorageError(GreenDocsError):
    """Persistence layer failure."""
    code = "storage_error"
    http_status = 500

