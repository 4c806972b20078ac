"""Error taxonomy for the pipeline.

Every error carries the HTTP status it maps to at the boundary and a short
machine-readable code. Handlers raise these; the endpoint layer converts them
into ``{"error": message}`` responses.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for errors surfaced to callers."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(PipelineError):
    """Missing or malformed required input."""

    status_code = 400
    code = "validation_error"


class UnauthenticatedError(PipelineError):
    """Missing, malformed, or rejected credential."""

    status_code = 401
    code = "unauthenticated"


class ForbiddenError(PipelineError):
    """Authenticated caller lacks the required role."""

    status_code = 403
    code = "forbidden"


class UnknownActionError(PipelineError):
    """Unrecognized ``action`` discriminator."""

    status_code = 400
    code = "unknown_action"


class StoreError(PipelineError):
    """Backing store failure."""

    status_code = 500
    code = "store_error"


class InternalError(PipelineError):
    """Unexpected failure."""

    status_code = 500
    code = "internal_error"
