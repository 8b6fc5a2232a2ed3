"""Error taxonomy surfaced to API callers.

Every error carries a stable machine-readable ``kind`` (sent as ``errorType``),
a human-readable ``message`` and optional ``details``. Route handlers never
build error payloads by hand; they raise one of these and the exception
handler in ``main.py`` serializes it.
"""

from __future__ import annotations

from typing import Any


class CvWorkflowError(Exception):
    """Base class for all service errors."""

    kind = "UNKNOWN_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred while processing your CV. Please try again."

    def __init__(self, message: str | None = None, *, details: str | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "errorType": self.kind,
            "details": self.details,
        }


class ConfigError(CvWorkflowError):
    kind = "CONFIG_ERROR"
    default_message = "Server configuration error. Please contact support."


class SubmissionError(CvWorkflowError):
    kind = "WORKFLOW_API_ERROR"
    status_code = 502
    default_message = "Failed to start CV processing workflow. Please try again."

    def __init__(
        self,
        message: str | None = None,
        *,
        details: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.http_status = http_status

    @property
    def is_auth_failure(self) -> bool:
        return self.http_status == 401


class PollError(CvWorkflowError):
    kind = "WORKFLOW_API_ERROR"
    status_code = 502
    default_message = "Failed to check processing status. Please try again."


class ProcessingFailedError(CvWorkflowError):
    kind = "WORKFLOW_PROCESSING_FAILED"
    status_code = 502
    default_message = "CV processing failed. Please check your file and try again."


class WorkflowTimeoutError(CvWorkflowError, TimeoutError):
    kind = "WORKFLOW_TIMEOUT"
    status_code = 504
    default_message = (
        "CV processing timed out. The file might be too large or complex. Please try again."
    )


class NoOutputError(CvWorkflowError):
    kind = "WORKFLOW_NO_OUTPUT"
    status_code = 502
    default_message = "No processed document was generated. Please try again."


class ParseError(CvWorkflowError):
    kind = "WORKFLOW_PARSE_ERROR"
    status_code = 502
    default_message = "Failed to parse CV data returned by the workflow."


class UnrecognizedFormatError(CvWorkflowError):
    kind = "WORKFLOW_INVALID_RESPONSE"
    status_code = 502
    default_message = "Processed document format not recognized. Please contact support."

    def __init__(
        self,
        message: str | None = None,
        *,
        details: str | None = None,
        available_fields: list[str] | None = None,
    ) -> None:
        self.available_fields = list(available_fields or [])
        if details is None and available_fields is not None:
            details = f"Unexpected response format; available fields: {self.available_fields}"
        super().__init__(message, details=details)


class RenderError(CvWorkflowError):
    kind = "RENDER_ERROR"
    default_message = "Failed to generate Word document from CV data."


class UploadRejectedError(CvWorkflowError):
    """Upload gate rejection; ``kind`` is chosen per rejection reason."""

    status_code = 400

    def __init__(self, kind: str, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class UnknownError(CvWorkflowError):
    kind = "UNKNOWN_ERROR"
