"""
Appointment categories and their per-type booking policy.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


@dataclass(frozen=True)
class TypePolicy:
    """Read-only booking rules attached to an appointment type."""
    display_name: str
    description: str
    default_duration_minutes: int
    minimum_advance_hours: int
    telemedicine_eligible: bool = False
    same_day_booking: bool = False
    requires_special_preparation: bool = False
    allows_rescheduling: bool = True


class AppointmentType(str, Enum):
    FIRST_CONSULTATION = "FIRST_CONSULTATION"
    FOLLOW_UP = "FOLLOW_UP"
    EMERGENCY = "EMERGENCY"
    PROCEDURE = "PROCEDURE"
    EXAM = "EXAM"
    VACCINATION = "VACCINATION"
    TELEMEDICINE = "TELEMEDICINE"

    @property
    def policy(self) -> TypePolicy:
        return _POLICIES[self]

    @property
    def display_name(self) -> str:
        return self.policy.display_name

    @property
    def default_duration_minutes(self) -> int:
        return self.policy.default_duration_minutes

    @property
    def minimum_advance_hours(self) -> int:
        return self.policy.minimum_advance_hours

    @property
    def is_urgent(self) -> bool:
        return self is AppointmentType.EMERGENCY

    @classmethod
    def from_string(cls, value: str | None) -> "AppointmentType":
        """Parse a type name; blank input yields ``FOLLOW_UP``."""
        if value is None or not value.strip():
            return cls.FOLLOW_UP
        try:
            return cls(value.strip().upper())
        except ValueError as exc:
            raise ValueError(f"Invalid appointment type: {value}") from exc

    @classmethod
    def types_for_new_patient(cls) -> Tuple["AppointmentType", ...]:
        return (cls.FIRST_CONSULTATION, cls.EMERGENCY)

    @classmethod
    def types_for_existing_patient(cls) -> Tuple["AppointmentType", ...]:
        return (
            cls.FOLLOW_UP,
            cls.PROCEDURE,
            cls.EXAM,
            cls.VACCINATION,
            cls.TELEMEDICINE,
            cls.EMERGENCY,
        )


_POLICIES = {
    AppointmentType.FIRST_CONSULTATION: TypePolicy(
        display_name="First consultation",
        description="Initial consultation with a new patient",
        default_duration_minutes=60,
        minimum_advance_hours=24,
        telemedicine_eligible=True,
    ),
    AppointmentType.FOLLOW_UP: TypePolicy(
        display_name="Follow-up",
        description="Follow-up consultation",
        default_duration_minutes=30,
        minimum_advance_hours=4,
        telemedicine_eligible=True,
        same_day_booking=True,
    ),
    AppointmentType.EMERGENCY: TypePolicy(
        display_name="Emergency",
        description="Emergency care",
        default_duration_minutes=45,
        minimum_advance_hours=0,
        same_day_booking=True,
        allows_rescheduling=False,
    ),
    AppointmentType.PROCEDURE: TypePolicy(
        display_name="Procedure",
        description="Specific medical procedure",
        default_duration_minutes=90,
        minimum_advance_hours=48,
        requires_special_preparation=True,
    ),
    AppointmentType.EXAM: TypePolicy(
        display_name="Exam",
        description="Medical examination",
        default_duration_minutes=30,
        minimum_advance_hours=48,
        requires_special_preparation=True,
    ),
    AppointmentType.VACCINATION: TypePolicy(
        display_name="Vaccination",
        description="Vaccine administration",
        default_duration_minutes=15,
        minimum_advance_hours=2,
        same_day_booking=True,
        allows_rescheduling=False,
    ),
    AppointmentType.TELEMEDICINE: TypePolicy(
        display_name="Telemedicine",
        description="Video consultation",
        default_duration_minutes=30,
        minimum_advance_hours=12,
    ),
}
