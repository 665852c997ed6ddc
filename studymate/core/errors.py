# studymate/core/errors.py
"""
Error taxonomy for plan generation.

Each error carries the HTTP status the API layer answers with, so routers
only need a single exception handler.
"""
from __future__ import annotations

from typing import Optional


class PlannerError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PlanValidationError(PlannerError):
    """Caller mistake: malformed or out-of-range input."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class FeatureGatedError(PlannerError):
    """Usage gate denied the request (quota exhausted / premium feature)."""

    status_code = 402


class UpstreamRateLimited(PlannerError):
    status_code = 429


class UpstreamUnavailable(PlannerError):
    status_code = 503


class MalformedUpstreamOutput(UpstreamUnavailable):
    """Generator output could not be read as a list of sessions."""


class ScheduleInvariantError(PlannerError):
    """The allocator produced an impossible session. This is a bug."""

    status_code = 500
