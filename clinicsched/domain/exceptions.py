"""
Domain-specific exception hierarchy for the clinic scheduling package.

Domain rule violations are reported through a single ``SchedulingError``
tagged with an ``ErrorKind``; the kind's value is the stable error code
handed to callers that map errors onto transport responses.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of domain error kinds. Values are stable error codes."""

    INVALID_TIME_SLOT = "INVALID_TIME_SLOT"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    INVALID_APPOINTMENT = "INVALID_APPOINTMENT"
    APPOINTMENT_CONFLICT = "APPOINTMENT_CONFLICT"
    PATIENT_BUSINESS_RULE = "PATIENT_BUSINESS_RULE_VIOLATION"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    APPOINTMENT_NOT_FOUND = "APPOINTMENT_NOT_FOUND"


class ClinicSchedError(Exception):
    """Base class for all application-level errors."""


class SchedulingError(ClinicSchedError):
    """Raised when a scheduling rule is violated."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def code(self) -> str:
        """Stable error code for this failure."""
        return self.kind.value

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"SchedulingError(kind={self.kind.name}, message={self.message!r})"


class AppointmentDataError(ClinicSchedError):
    """Raised when stored appointment data cannot be read or parsed."""
