"""
Appointment aggregate root.

An ``Appointment`` is an immutable value. Every business operation validates
the current status against the transition table and returns a
``Transition``: the successor appointment together with the events that
operation emitted. The receiver is left untouched and is discarded by
convention.

The successor also keeps those events in a pending buffer so that callers
holding only the appointment can read them through ``domain_events`` and
drain them with ``clear_domain_events()`` after publishing.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, NamedTuple, Tuple

from pendulum import DateTime

from .appointment_time import (
    MINIMUM_LEAD,
    NO_SHOW_GRACE,
    AppointmentTime,
    current_time,
    meets_minimum_lead,
)
from .appointment_type import AppointmentType
from .events import (
    AppointmentCancelled,
    AppointmentRescheduled,
    AppointmentScheduled,
    AppointmentStatusChanged,
    DomainEvent,
)
from .exceptions import ErrorKind, SchedulingError
from .identifiers import AppointmentId, PatientId, ProfessionalId
from .status import (
    INITIAL_STATUS,
    AppointmentStatus,
    ensure_transition,
    is_active,
    is_cancellable,
    is_reschedulable,
    is_terminal,
)

NO_SHOW_OBSERVATION = "Patient did not attend"


class Transition(NamedTuple):
    """Result of an aggregate operation: the new state and its events."""
    appointment: "Appointment"
    events: Tuple[DomainEvent, ...]


def _require(value, name: str):
    if value is None:
        raise SchedulingError(ErrorKind.INVALID_APPOINTMENT, f"{name} must not be empty")
    return value


@dataclass(frozen=True, eq=False)
class Appointment:
    id: AppointmentId | None
    patient_id: PatientId
    professional_id: ProfessionalId
    scheduled_time: AppointmentTime
    status: AppointmentStatus
    appointment_type: AppointmentType
    observation: str
    created_at: DateTime
    updated_at: DateTime
    _pending_events: List[DomainEvent] = field(
        default_factory=list, init=False, repr=False, compare=False
    )

    # --- construction -------------------------------------------------

    @classmethod
    def schedule(
        cls,
        patient_id: PatientId,
        professional_id: ProfessionalId,
        scheduled_time: AppointmentTime,
        appointment_type: AppointmentType,
        observation: str = "",
        now: datetime | None = None,
    ) -> Transition:
        """
        Create a new pending appointment and emit ``AppointmentScheduled``.

        The minimum-lead and business-hours rules are checked again here;
        times built with ``AppointmentTime.restore`` skip the lead check.

        Raises:
            SchedulingError: ``INVALID_APPOINTMENT`` for missing arguments,
                ``INVALID_TIME_SLOT`` if the time cannot be booked.
        """
        _require(patient_id, "Patient id")
        _require(professional_id, "Professional id")
        _require(scheduled_time, "Appointment time")
        _require(appointment_type, "Appointment type")

        moment = current_time(now)
        if not meets_minimum_lead(scheduled_time.value, moment):
            raise SchedulingError(
                ErrorKind.INVALID_TIME_SLOT,
                f"Appointments must be booked at least {MINIMUM_LEAD.in_hours()} hours in advance",
            )
        if not scheduled_time.is_within_business_hours():
            raise SchedulingError(
                ErrorKind.INVALID_TIME_SLOT,
                "Appointments must be within business hours",
            )

        appointment = cls(
            id=AppointmentId.generate(),
            patient_id=patient_id,
            professional_id=professional_id,
            scheduled_time=scheduled_time,
            status=INITIAL_STATUS,
            appointment_type=appointment_type,
            observation=observation or "",
            created_at=moment,
            updated_at=moment,
        )
        event = AppointmentScheduled(
            appointment_id=appointment.id,
            patient_id=patient_id,
            professional_id=professional_id,
            scheduled_time=scheduled_time,
            appointment_type=appointment_type,
            occurred_at=moment,
        )
        return appointment._emit(event)

    @classmethod
    def restore(
        cls,
        id: AppointmentId,
        patient_id: PatientId,
        professional_id: ProfessionalId,
        scheduled_time: AppointmentTime,
        status: AppointmentStatus,
        appointment_type: AppointmentType,
        observation: str | None,
        created_at: DateTime,
        updated_at: DateTime,
    ) -> "Appointment":
        """Rebuild an already persisted appointment. No event is emitted."""
        return cls(
            id=_require(id, "Appointment id"),
            patient_id=_require(patient_id, "Patient id"),
            professional_id=_require(professional_id, "Professional id"),
            scheduled_time=_require(scheduled_time, "Appointment time"),
            status=_require(status, "Appointment status"),
            appointment_type=_require(appointment_type, "Appointment type"),
            observation=observation or "",
            created_at=_require(created_at, "Created at"),
            updated_at=_require(updated_at, "Updated at"),
        )

    # --- transitions --------------------------------------------------

    def confirm(self, now: datetime | None = None) -> Transition:
        return self._change_status(AppointmentStatus.CONFIRMED, now)

    def mark_as_scheduled(self, now: datetime | None = None) -> Transition:
        return self._change_status(AppointmentStatus.SCHEDULED, now)

    def start(self, now: datetime | None = None) -> Transition:
        return self._change_status(AppointmentStatus.IN_PROGRESS, now)

    def reopen(self, now: datetime | None = None) -> Transition:
        """Send a rescheduled appointment back for confirmation."""
        return self._change_status(AppointmentStatus.PENDING, now)

    def complete(self, observations: str | None = None, now: datetime | None = None) -> Transition:
        final_observation = observations if observations is not None else self.observation
        return self._change_status(AppointmentStatus.COMPLETED, now, observation=final_observation)

    def cancel(self, reason: str | None, now: datetime | None = None) -> Transition:
        """
        Cancel the appointment, recording ``reason`` as its observation.

        Raises:
            SchedulingError: ``INVALID_STATUS_TRANSITION`` if the status is not
                cancellable, ``INVALID_APPOINTMENT`` if the reason is blank.
        """
        if not is_cancellable(self.status):
            raise SchedulingError(
                ErrorKind.INVALID_STATUS_TRANSITION,
                f"Cannot change appointment status from {self.status.value} "
                f"to {AppointmentStatus.CANCELLED.value}",
            )
        if reason is None or not reason.strip():
            raise SchedulingError(ErrorKind.INVALID_APPOINTMENT, "A cancellation reason is required")

        moment = current_time(now)
        successor = self._successor(
            status=AppointmentStatus.CANCELLED,
            observation=reason,
            updated_at=moment,
        )
        return successor._emit(AppointmentCancelled(
            appointment_id=self.id,
            patient_id=self.patient_id,
            professional_id=self.professional_id,
            reason=reason,
            occurred_at=moment,
        ))

    def mark_as_no_show(self, now: datetime | None = None) -> Transition:
        """
        Record that the patient did not attend.

        Only allowed once the grace period after the scheduled time has passed.
        """
        ensure_transition(self.status, AppointmentStatus.NO_SHOW)
        moment = current_time(now)
        if moment < self.scheduled_time.value + NO_SHOW_GRACE:
            raise SchedulingError(
                ErrorKind.INVALID_APPOINTMENT,
                f"No-show can only be recorded {NO_SHOW_GRACE.in_minutes()} minutes "
                f"after the scheduled time",
            )
        return self._change_status(AppointmentStatus.NO_SHOW, moment, observation=NO_SHOW_OBSERVATION)

    def reschedule(
        self,
        new_time: AppointmentTime,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> Transition:
        """
        Move the appointment to ``new_time`` and mark it ``RESCHEDULED``.

        Raises:
            SchedulingError: ``INVALID_STATUS_TRANSITION`` if the status does not
                allow it, ``INVALID_APPOINTMENT`` if the type cannot be
                rescheduled or the time is unchanged, ``INVALID_TIME_SLOT`` if
                the new time is too close.
        """
        ensure_transition(self.status, AppointmentStatus.RESCHEDULED)
        _require(new_time, "New appointment time")
        if not self.appointment_type.policy.allows_rescheduling:
            raise SchedulingError(
                ErrorKind.INVALID_APPOINTMENT,
                f"{self.appointment_type.display_name} appointments cannot be rescheduled",
            )
        if new_time == self.scheduled_time:
            raise SchedulingError(
                ErrorKind.INVALID_APPOINTMENT,
                "The new time must differ from the current one",
            )
        moment = current_time(now)
        if not meets_minimum_lead(new_time.value, moment):
            raise SchedulingError(
                ErrorKind.INVALID_TIME_SLOT,
                f"Appointments must be booked at least {MINIMUM_LEAD.in_hours()} hours in advance",
            )

        successor = self._successor(
            status=AppointmentStatus.RESCHEDULED,
            scheduled_time=new_time,
            updated_at=moment,
        )
        return successor._emit(AppointmentRescheduled(
            appointment_id=self.id,
            patient_id=self.patient_id,
            professional_id=self.professional_id,
            previous_time=self.scheduled_time,
            new_time=new_time,
            reason=reason,
            occurred_at=moment,
        ))

    # --- plain field replacement --------------------------------------

    def update_observation(self, observation: str | None, now: datetime | None = None) -> "Appointment":
        return self._successor(observation=observation or "", updated_at=current_time(now))

    def with_id(self, appointment_id: AppointmentId) -> "Appointment":
        """Return a copy carrying a storage-assigned identity."""
        return self._successor(id=_require(appointment_id, "Appointment id"))

    # --- queries ------------------------------------------------------

    def conflicts_with(self, other: "Appointment | None") -> bool:
        if other is None or self.professional_id != other.professional_id:
            return False
        return self.scheduled_time.conflicts_with(other.scheduled_time)

    @property
    def is_active(self) -> bool:
        return is_active(self.status)

    @property
    def is_cancellable(self) -> bool:
        return is_cancellable(self.status)

    @property
    def is_reschedulable(self) -> bool:
        return is_reschedulable(self.status)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def belongs_to_patient(self, patient_id: PatientId) -> bool:
        return self.patient_id == patient_id

    def belongs_to_professional(self, professional_id: ProfessionalId) -> bool:
        return self.professional_id == professional_id

    # --- pending events -----------------------------------------------

    @property
    def domain_events(self) -> Tuple[DomainEvent, ...]:
        """Pending events, oldest first."""
        return tuple(self._pending_events)

    def clear_domain_events(self) -> None:
        """Drop pending events once they have been published."""
        self._pending_events.clear()

    # --- internals ----------------------------------------------------

    def _change_status(
        self,
        new_status: AppointmentStatus,
        now: datetime | None,
        **changes,
    ) -> Transition:
        ensure_transition(self.status, new_status)
        moment = current_time(now)
        successor = self._successor(status=new_status, updated_at=moment, **changes)
        return successor._emit(AppointmentStatusChanged(
            appointment_id=self.id,
            previous_status=self.status,
            new_status=new_status,
            occurred_at=moment,
        ))

    def _successor(self, **changes) -> "Appointment":
        # replace() builds a fresh instance, so the pending buffer starts empty
        return replace(self, **changes)

    def _emit(self, *events: DomainEvent) -> Transition:
        self._pending_events.extend(events)
        return Transition(self, tuple(events))

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Appointment):
            return NotImplemented
        return self.id is not None and self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return (
            f"Appointment(id={self.id.value if self.id else 'new'}, "
            f"patient={self.patient_id.value}, professional={self.professional_id.value}, "
            f"time={self.scheduled_time.formatted_datetime()}, status={self.status.value})"
        )
