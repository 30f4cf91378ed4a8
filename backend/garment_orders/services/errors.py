"""
Error taxonomy shared by the order pipeline services.

Every error carries a human-readable message plus keyword context (field,
code, status transition...) so callers can render a specific message. The
HTTP layer maps ``status_code`` straight onto the response.
"""

from typing import Any


class PipelineError(Exception):
    """Base exception for order pipeline errors."""

    status_code = 500
    code = "pipeline_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(PipelineError):
    """Missing or malformed input; rejected before any write."""

    status_code = 400
    code = "validation_error"


class NotFoundError(PipelineError):
    """Unknown order, item, quotation, client or source order code."""

    status_code = 404
    code = "not_found"


class ConflictError(PipelineError):
    """Duplicate business code after retries, or another unique clash."""

    status_code = 409
    code = "conflict"


class ForbiddenError(PipelineError):
    """Permission check or role/status policy rejected the action."""

    status_code = 403
    code = "forbidden"


class TransientRaceError(PipelineError):
    """
    Uniqueness violation while inserting a freshly sequenced code.

    Retried internally and only surfaced, as ConflictError, once the retry
    budget is spent.
    """

    status_code = 409
    code = "transient_race"
