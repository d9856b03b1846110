"""
Domain layer - Pure scheduling rules with no I/O.
"""

from .appointment import Appointment, Transition
from .appointment_time import AppointmentTime
from .appointment_type import AppointmentType, TypePolicy
from .availability import AvailabilityService, AvailabilityStats
from .events import (
    AppointmentCancelled,
    AppointmentRescheduled,
    AppointmentScheduled,
    AppointmentStatusChanged,
    DomainEvent,
)
from .exceptions import AppointmentDataError, ClinicSchedError, ErrorKind, SchedulingError
from .identifiers import AppointmentId, PatientId, ProfessionalId
from .patient import PatientProfile, PatientStatus
from .status import ALLOWED_TRANSITIONS, AppointmentStatus, can_transition, ensure_transition

__all__ = [
    "Appointment",
    "Transition",
    "AppointmentTime",
    "AppointmentType",
    "TypePolicy",
    "AvailabilityService",
    "AvailabilityStats",
    "AppointmentCancelled",
    "AppointmentRescheduled",
    "AppointmentScheduled",
    "AppointmentStatusChanged",
    "DomainEvent",
    "AppointmentDataError",
    "ClinicSchedError",
    "ErrorKind",
    "SchedulingError",
    "AppointmentId",
    "PatientId",
    "ProfessionalId",
    "PatientProfile",
    "PatientStatus",
    "ALLOWED_TRANSITIONS",
    "AppointmentStatus",
    "can_transition",
    "ensure_transition",
]
