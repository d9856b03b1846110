"""
Read-only view of a patient used for booking eligibility.

Patient records themselves are managed elsewhere; scheduling only needs to
know who the patient is and whether they may book.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .appointment_time import AppointmentTime, current_time
from .identifiers import PatientId


class PatientStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    BLOCKED = "BLOCKED"


@dataclass(frozen=True)
class PatientProfile:
    patient_id: PatientId
    status: PatientStatus = PatientStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status is PatientStatus.ACTIVE

    def can_schedule_appointment(self, appointment_time: AppointmentTime, now: datetime | None = None) -> bool:
        """Active patients may book future moments inside business hours."""
        if not self.is_active:
            return False
        if appointment_time.value < current_time(now):
            return False
        return appointment_time.is_within_business_hours()
