"""
Application service for appointment scheduling.

The service loads appointments through a repository port, lets the domain
(the ``Appointment`` aggregate and the ``AvailabilityService``) decide,
persists the result and hands the emitted events to a publisher port.
Protocols keep the storage and messaging dependencies swappable, so tests
can plug in the in-memory adapters.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from pendulum import Date

from ..domain.appointment import Appointment, Transition
from ..domain.appointment_time import AppointmentTime, current_time
from ..domain.appointment_type import AppointmentType
from ..domain.availability import AvailabilityService, AvailabilityStats
from ..domain.events import DomainEvent
from ..domain.exceptions import ErrorKind, SchedulingError
from ..domain.identifiers import AppointmentId, PatientId, ProfessionalId
from ..domain.patient import PatientProfile

logger = logging.getLogger(__name__)


class AppointmentRepository(Protocol):
    """Storage operations the service needs for appointments."""

    def save(self, appointment: Appointment) -> Appointment:
        """Persist an appointment and return the stored value."""

    def find_by_id(self, appointment_id: AppointmentId) -> Optional[Appointment]:
        """Return the appointment or ``None``."""

    def find_by_patient(self, patient_id: PatientId) -> List[Appointment]:
        """Return every appointment of a patient."""

    def find_by_professional(self, professional_id: ProfessionalId) -> List[Appointment]:
        """Return every appointment of a professional."""

    def find_by_date_range(self, start_date: Date, end_date: Date) -> List[Appointment]:
        """Return appointments scheduled between two dates, inclusive."""

    def has_conflicting_appointment(
        self,
        professional_id: ProfessionalId,
        appointment_time: AppointmentTime,
        excluding: Optional[AppointmentId] = None,
    ) -> bool:
        """Check for an active appointment overlapping ``appointment_time``."""


class EventPublisher(Protocol):
    """Outbound delivery of domain events."""

    def publish(self, event: DomainEvent) -> None:
        """Hand one event over for delivery."""


class PatientDirectory(Protocol):
    """Lookup of patient booking profiles."""

    def find_patient(self, patient_id: PatientId) -> Optional[PatientProfile]:
        """Return the patient's profile or ``None``."""


class SchedulingService:
    """
    Orchestrates scheduling commands.

    Every command either completes fully (saved and published) or raises a
    ``SchedulingError`` before anything is saved or published.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        publisher: EventPublisher,
        patients: PatientDirectory,
        availability: AvailabilityService | None = None,
    ) -> None:
        self._repository = repository
        self._publisher = publisher
        self._patients = patients
        self._availability = availability or AvailabilityService()

    # --- commands -----------------------------------------------------

    def schedule(
        self,
        *,
        patient_id: PatientId,
        professional_id: ProfessionalId,
        scheduled_at: AppointmentTime | datetime,
        appointment_type: AppointmentType = AppointmentType.FOLLOW_UP,
        observation: str = "",
        now: datetime | None = None,
    ) -> Appointment:
        """
        Book a new appointment after checking every availability policy.
        """
        reference = current_time(now)
        requested_time = self._clinic_time(scheduled_at, reference)

        patient = self._patients.find_patient(patient_id)
        if patient is None:
            raise SchedulingError(
                ErrorKind.PATIENT_BUSINESS_RULE,
                f"Patient {patient_id} not found",
            )

        day = requested_time.value.in_timezone(self._availability.timezone).date()
        existing = self._repository.find_by_date_range(day, day)

        self._availability.validate_appointment_creation(
            patient=patient,
            professional_id=professional_id,
            requested_time=requested_time,
            appointment_type=appointment_type,
            existing_appointments=existing,
            now=reference,
        )

        transition = Appointment.schedule(
            patient_id=patient_id,
            professional_id=professional_id,
            scheduled_time=requested_time,
            appointment_type=appointment_type,
            observation=observation,
            now=reference,
        )
        return self._commit(transition)

    def confirm(self, appointment_id: AppointmentId, now: datetime | None = None) -> Appointment:
        return self._apply(appointment_id, lambda appointment: appointment.confirm(now=now))

    def mark_as_scheduled(self, appointment_id: AppointmentId, now: datetime | None = None) -> Appointment:
        return self._apply(appointment_id, lambda appointment: appointment.mark_as_scheduled(now=now))

    def start(self, appointment_id: AppointmentId, now: datetime | None = None) -> Appointment:
        return self._apply(appointment_id, lambda appointment: appointment.start(now=now))

    def complete(
        self,
        appointment_id: AppointmentId,
        observations: str | None = None,
        now: datetime | None = None,
    ) -> Appointment:
        return self._apply(
            appointment_id,
            lambda appointment: appointment.complete(observations, now=now),
        )

    def cancel(self, appointment_id: AppointmentId, reason: str, now: datetime | None = None) -> Appointment:
        return self._apply(appointment_id, lambda appointment: appointment.cancel(reason, now=now))

    def mark_as_no_show(self, appointment_id: AppointmentId, now: datetime | None = None) -> Appointment:
        return self._apply(appointment_id, lambda appointment: appointment.mark_as_no_show(now=now))

    def reopen(self, appointment_id: AppointmentId, now: datetime | None = None) -> Appointment:
        return self._apply(appointment_id, lambda appointment: appointment.reopen(now=now))

    def reschedule(
        self,
        appointment_id: AppointmentId,
        new_time: AppointmentTime | datetime,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> Appointment:
        """
        Move an appointment to a new time, if the professional is free then.
        """
        reference = current_time(now)
        target = self._clinic_time(new_time, reference)
        appointment = self._load(appointment_id)

        day = target.value.in_timezone(self._availability.timezone).date()
        existing = self._repository.find_by_date_range(day, day)
        if not self._availability.is_time_slot_available(
            appointment.professional_id,
            target,
            existing,
            excluding=appointment.id,
            now=reference,
        ):
            raise SchedulingError(
                ErrorKind.APPOINTMENT_CONFLICT,
                f"Professional {appointment.professional_id} already has a conflicting "
                f"appointment at {target}",
            )

        return self._commit(appointment.reschedule(target, reason, now=reference))

    # --- queries ------------------------------------------------------

    def available_slots(
        self,
        professional_id: ProfessionalId,
        date: Date,
        now: datetime | None = None,
    ) -> List[AppointmentTime]:
        appointments = self._repository.find_by_professional(professional_id)
        return self._availability.generate_available_slots(professional_id, date, appointments, now=now)

    def availability_stats(
        self,
        professional_id: ProfessionalId,
        start_date: Date,
        end_date: Date,
    ) -> AvailabilityStats:
        appointments = self._repository.find_by_date_range(start_date, end_date)
        return self._availability.calculate_availability_stats(
            professional_id, start_date, end_date, appointments
        )

    # --- internals ----------------------------------------------------

    def _clinic_time(self, moment: AppointmentTime | datetime, now: datetime) -> AppointmentTime:
        """Validate a requested start on the clinic's wall clock."""
        if isinstance(moment, AppointmentTime):
            moment = moment.value
        return AppointmentTime.of(moment, now=now, timezone=self._availability.timezone)

    def _load(self, appointment_id: AppointmentId) -> Appointment:
        appointment = self._repository.find_by_id(appointment_id)
        if appointment is None:
            raise SchedulingError(
                ErrorKind.APPOINTMENT_NOT_FOUND,
                f"Appointment {appointment_id} not found",
            )
        return appointment

    def _apply(
        self,
        appointment_id: AppointmentId,
        operation: Callable[[Appointment], Transition],
    ) -> Appointment:
        return self._commit(operation(self._load(appointment_id)))

    def _commit(self, transition: Transition) -> Appointment:
        """Save the new state, then publish and drain its events."""
        saved = self._repository.save(transition.appointment)

        for event in transition.events:
            self._publisher.publish(event)
        transition.appointment.clear_domain_events()

        logger.info(
            "Appointment %s is now %s (%d event(s) published)",
            saved.id,
            saved.status.value,
            len(transition.events),
        )
        return saved
