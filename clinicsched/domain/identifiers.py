"""
Identifier value objects for appointments, patients and professionals.
"""

import re
import uuid
from dataclasses import dataclass

from .exceptions import ErrorKind, SchedulingError

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def _validate_uuid(value: str, label: str) -> str:
    if value is None or not str(value).strip():
        raise SchedulingError(ErrorKind.INVALID_IDENTIFIER, f"{label} must not be empty")
    value = str(value).strip()
    if not _UUID_PATTERN.match(value):
        raise SchedulingError(
            ErrorKind.INVALID_IDENTIFIER,
            f"{label} must be a valid UUID: {value}",
        )
    return value.lower()


@dataclass(frozen=True)
class AppointmentId:
    """Opaque, immutable appointment identity."""

    value: str

    def __post_init__(self):
        object.__setattr__(self, "value", _validate_uuid(self.value, "Appointment id"))

    @classmethod
    def generate(cls) -> "AppointmentId":
        """Create a fresh random identifier."""
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PatientId:
    value: str

    def __post_init__(self):
        object.__setattr__(self, "value", _validate_uuid(self.value, "Patient id"))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ProfessionalId:
    value: str

    def __post_init__(self):
        object.__setattr__(self, "value", _validate_uuid(self.value, "Professional id"))

    def __str__(self) -> str:
        return self.value
