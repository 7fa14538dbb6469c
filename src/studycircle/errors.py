"""Typed business-rule failures.

Services raise these; the global error handler turns them into JSON
responses with a stable ``code`` so clients can tell a denial from a
missing row.
"""

from __future__ import annotations


class StudyCircleError(Exception):
    """Base class for expected, recoverable failures."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"detail": self.message, "code": self.code}


class ValidationFailed(StudyCircleError):
    """Malformed input, rejected before any store mutation."""

    status_code = 422
    code = "validation_failed"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, str]:
        return {**super().to_dict(), "field": self.field}


class Forbidden(StudyCircleError):
    status_code = 403
    code = "forbidden"


class NotFound(StudyCircleError):
    status_code = 404
    code = "not_found"


class Conflict(StudyCircleError):
    status_code = 409
    code = "conflict"


class UpstreamFailure(StudyCircleError):
    """The suggestion provider failed or returned something unusable."""

    status_code = 502
    code = "upstream_failure"
