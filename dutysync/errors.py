"""
Exception hierarchy for the scheduling engine and swap workflow.

Each class carries the HTTP status the API layer answers with, so routes can
let them propagate and a single handler renders them.

    DutySyncError (500)
    ├── ScheduleValidationError (400)
    ├── NotFoundError (404)
    ├── SwapWorkflowError (409)
    └── PersistenceError (500)

Coverage shortfalls (nobody eligible for a slot) are not errors; they are
reported as warnings on the planning result.
"""
from __future__ import annotations

from typing import Any


class DutySyncError(Exception):
    status_code = 500
    error_type = "DutySyncError"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_type,
            "message": self.message,
            "status_code": self.status_code,
        }
        if self.details:
            result.update(self.details)
        return result

    def __str__(self) -> str:
        return f"{self.error_type}: {self.message}"


class ScheduleValidationError(DutySyncError):
    """Malformed planning request: inverted or oversized date range."""

    status_code = 400
    error_type = "ValidationError"


class NotFoundError(DutySyncError):
    status_code = 404
    error_type = "NotFound"


class SwapWorkflowError(DutySyncError):
    """A swap transition whose precondition does not hold.

    The message names the precondition, e.g. an approval submitted before the
    previous order was approved.
    """

    status_code = 409
    error_type = "SwapWorkflowError"


class PersistenceError(DutySyncError):
    status_code = 500
    error_type = "PersistenceError"
