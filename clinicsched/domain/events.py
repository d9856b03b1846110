"""
Domain events emitted by the appointment aggregate.

Events are immutable facts handed to an external publisher; the domain
only produces them.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict

import pendulum
from pendulum import DateTime

from .appointment_time import AppointmentTime
from .appointment_type import AppointmentType
from .identifiers import AppointmentId, PatientId, ProfessionalId
from .status import AppointmentStatus, is_terminal


def _serialize(value: Any) -> Any:
    if isinstance(value, (AppointmentId, PatientId, ProfessionalId)):
        return value.value
    if isinstance(value, AppointmentTime):
        return value.value.to_iso8601_string()
    if isinstance(value, DateTime):
        return value.to_iso8601_string()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base for every appointment event."""
    appointment_id: AppointmentId | None
    occurred_at: DateTime = field(default_factory=lambda: pendulum.now("UTC"))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def event_type(self) -> str:
        return type(self).__name__

    @property
    def aggregate_id(self) -> str | None:
        return self.appointment_id.value if self.appointment_id else None

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the event into a JSON-friendly payload."""
        payload: Dict[str, Any] = {"event_type": self.event_type}
        for f in fields(self):
            payload[f.name] = _serialize(getattr(self, f.name))
        return payload


@dataclass(frozen=True, kw_only=True)
class AppointmentScheduled(DomainEvent):
    patient_id: PatientId
    professional_id: ProfessionalId
    scheduled_time: AppointmentTime
    appointment_type: AppointmentType


@dataclass(frozen=True, kw_only=True)
class AppointmentCancelled(DomainEvent):
    patient_id: PatientId
    professional_id: ProfessionalId
    reason: str

    @property
    def has_reason(self) -> bool:
        return bool(self.reason and self.reason.strip())


@dataclass(frozen=True, kw_only=True)
class AppointmentStatusChanged(DomainEvent):
    previous_status: AppointmentStatus
    new_status: AppointmentStatus

    @property
    def is_final_status(self) -> bool:
        return is_terminal(self.new_status)


@dataclass(frozen=True, kw_only=True)
class AppointmentRescheduled(DomainEvent):
    patient_id: PatientId
    professional_id: ProfessionalId
    previous_time: AppointmentTime
    new_time: AppointmentTime
    reason: str | None = None

    def __post_init__(self):
        if self.previous_time == self.new_time:
            raise ValueError("New time must differ from the previous time")

    def summary(self) -> str:
        return (
            f"Appointment {self.aggregate_id} rescheduled from {self.previous_time} "
            f"to {self.new_time}. Reason: {self.reason or 'not specified'}"
        )
