"""
Cross-appointment availability policies.

This is pure domain logic: every operation works on appointment lists the
caller has already loaded. The service keeps no storage of its own and does
no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Set, Tuple

import pendulum
from pendulum import Date

from .appointment import Appointment
from .appointment_time import (
    BUSINESS_END,
    BUSINESS_START,
    CLINIC_TIMEZONE,
    SLOT_MINUTES,
    SLOTS_PER_DAY,
    AppointmentTime,
    current_time,
    is_within_business_hours,
    meets_minimum_lead,
    to_clinic_time,
    windows_overlap,
)
from .appointment_type import AppointmentType
from .exceptions import ErrorKind, SchedulingError
from .identifiers import AppointmentId, PatientId, ProfessionalId
from .patient import PatientProfile

# Share of calendar days counted as working days (5/7, rounded down).
WORKING_DAY_RATIO = 0.71


@dataclass(frozen=True)
class AvailabilityStats:
    """Occupancy figures for one professional over a date range."""
    total_slots: int
    booked_slots: int
    available_slots: int
    occupancy_rate: float


class AvailabilityService:
    """
    Evaluates booking policies that span several appointments.

    Policies:
    1. A slot is available when it meets the lead-time and business-hours
       rules and no active appointment of the professional overlaps it
    2. A patient may hold one active appointment per calendar day
    3. Each appointment type requires its own minimum advance notice
    """

    def __init__(self, timezone: str = CLINIC_TIMEZONE):
        self.timezone = timezone

    def is_time_slot_available(
        self,
        professional_id: ProfessionalId,
        requested_time: AppointmentTime | datetime,
        existing_appointments: Iterable[Appointment],
        excluding: AppointmentId | None = None,
        now: datetime | None = None,
    ) -> bool:
        """
        Check whether a professional can take a booking at ``requested_time``.

        Args:
            professional_id: Professional whose agenda is checked
            requested_time: Requested start, validated or raw. Naive values
                are read as local time in the service timezone
            existing_appointments: Appointments to check against
            excluding: Appointment to ignore, e.g. the one being rescheduled
            now: Reference time for the lead-time rule

        Returns:
            False if the time is too close or outside business hours, otherwise
            True iff no active appointment of the professional conflicts.
        """
        moment = to_clinic_time(
            requested_time.value
            if isinstance(requested_time, AppointmentTime)
            else requested_time,
            self.timezone,
        )

        if not meets_minimum_lead(moment, now, timezone=self.timezone):
            return False

        if not is_within_business_hours(moment, self.timezone):
            return False

        return not any(
            windows_overlap(appointment.scheduled_time.value, moment, self.timezone)
            for appointment in self._active_for_professional(professional_id, existing_appointments)
            if excluding is None or appointment.id != excluding
        )

    def validate_patient_can_schedule_on_date(
        self,
        patient_id: PatientId,
        date: Date,
        patient_appointments: Iterable[Appointment],
    ) -> None:
        """
        Enforce one active appointment per patient per calendar day.

        Raises:
            SchedulingError: ``PATIENT_BUSINESS_RULE`` if the patient already
                has an active appointment on ``date``.
        """
        has_appointment_on_date = any(
            appointment.belongs_to_patient(patient_id)
            and appointment.is_active
            and self._local_date(appointment) == date
            for appointment in patient_appointments
        )

        if has_appointment_on_date:
            raise SchedulingError(
                ErrorKind.PATIENT_BUSINESS_RULE,
                f"Patient {patient_id} already has an active appointment on {date.isoformat()}",
            )

    def validate_advance_notice(
        self,
        requested_time: AppointmentTime,
        appointment_type: AppointmentType,
        now: datetime | None = None,
    ) -> None:
        """
        Raises:
            SchedulingError: ``INVALID_TIME_SLOT`` if ``requested_time`` is less
                than the type's minimum advance notice away.
        """
        hours = appointment_type.minimum_advance_hours
        minimum_time = current_time(now).add(hours=hours)

        if requested_time.value < minimum_time:
            raise SchedulingError(
                ErrorKind.INVALID_TIME_SLOT,
                f"Time {requested_time} is not valid for booking: "
                f"'{appointment_type.display_name}' requires at least {hours} hours notice",
            )

    def generate_available_slots(
        self,
        professional_id: ProfessionalId,
        date: Date,
        existing_appointments: Iterable[Appointment],
        now: datetime | None = None,
    ) -> List[AppointmentTime]:
        """
        List the bookable slots of a professional on a calendar date.

        Every slot start in business hours is considered, in order. A slot is
        dropped when an active booking starts at it or in the slot right before
        it, or when it is closer than the minimum lead time.
        """
        reference = current_time(now)
        busy = self._busy_slot_starts(professional_id, date, existing_appointments)

        available: List[AppointmentTime] = []
        for slot_start in self._slot_starts(date):
            key = (slot_start.hour, slot_start.minute)
            if key in busy:
                continue
            if not meets_minimum_lead(slot_start, reference):
                continue
            available.append(AppointmentTime.of(slot_start, now=reference, timezone=self.timezone))

        return available

    def calculate_availability_stats(
        self,
        professional_id: ProfessionalId,
        start_date: Date,
        end_date: Date,
        appointments: Iterable[Appointment],
    ) -> AvailabilityStats:
        """
        Summarise occupancy for a professional between two dates, inclusive.

        Working days are approximated as 71% of calendar days.
        """
        if end_date < start_date:
            raise ValueError(f"Start date {start_date} must not be after end date {end_date}")

        total_days = end_date.toordinal() - start_date.toordinal() + 1
        working_days = int(total_days * WORKING_DAY_RATIO)
        total_slots = working_days * SLOTS_PER_DAY

        booked_slots = sum(
            1
            for appointment in self._active_for_professional(professional_id, appointments)
            if start_date <= self._local_date(appointment) <= end_date
        )

        occupancy_rate = booked_slots / total_slots * 100 if total_slots > 0 else 0.0

        return AvailabilityStats(
            total_slots=total_slots,
            booked_slots=booked_slots,
            available_slots=total_slots - booked_slots,
            occupancy_rate=occupancy_rate,
        )

    def validate_appointment_creation(
        self,
        patient: PatientProfile,
        professional_id: ProfessionalId,
        requested_time: AppointmentTime,
        appointment_type: AppointmentType,
        existing_appointments: Iterable[Appointment],
        now: datetime | None = None,
    ) -> None:
        """
        Run every booking policy in order; the first failure is raised.

        Order:
        1. Patient must be active
        2. Patient must be eligible for the requested time
        3. Type-specific advance notice
        4. Slot availability for the professional
        5. One appointment per patient per day
        """
        appointments = list(existing_appointments)
        reference = current_time(now)

        if not patient.is_active:
            raise SchedulingError(
                ErrorKind.PATIENT_BUSINESS_RULE,
                f"Patient {patient.patient_id} is not active and cannot book appointments",
            )

        if not patient.can_schedule_appointment(requested_time, now=reference):
            raise SchedulingError(
                ErrorKind.PATIENT_BUSINESS_RULE,
                f"Patient {patient.patient_id} does not meet the booking criteria",
            )

        self.validate_advance_notice(requested_time, appointment_type, now=reference)

        if not self.is_time_slot_available(professional_id, requested_time, appointments, now=reference):
            raise SchedulingError(
                ErrorKind.APPOINTMENT_CONFLICT,
                f"Professional {professional_id} already has a conflicting appointment "
                f"at {requested_time}",
            )

        self.validate_patient_can_schedule_on_date(
            patient.patient_id,
            self._local_date(requested_time),
            appointments,
        )

    # --- helpers ------------------------------------------------------

    def _active_for_professional(
        self,
        professional_id: ProfessionalId,
        appointments: Iterable[Appointment],
    ) -> List[Appointment]:
        return [
            appointment for appointment in appointments
            if appointment.belongs_to_professional(professional_id) and appointment.is_active
        ]

    def _local_date(self, item: Appointment | AppointmentTime) -> Date:
        moment = item.scheduled_time if isinstance(item, Appointment) else item
        return moment.value.in_timezone(self.timezone).date()

    def _slot_starts(self, date: Date) -> List[pendulum.DateTime]:
        """Every slot start in ``[BUSINESS_START, BUSINESS_END)`` on ``date``."""
        current = pendulum.datetime(
            date.year, date.month, date.day,
            BUSINESS_START.hour, BUSINESS_START.minute,
            tz=self.timezone,
        )
        end = current.set(hour=BUSINESS_END.hour, minute=BUSINESS_END.minute)

        starts = []
        while current < end:
            starts.append(current)
            current = current.add(minutes=SLOT_MINUTES)
        return starts

    def _busy_slot_starts(
        self,
        professional_id: ProfessionalId,
        date: Date,
        appointments: Iterable[Appointment],
    ) -> Set[Tuple[int, int]]:
        """Wall-clock slot starts blocked by active bookings on ``date``."""
        busy: Set[Tuple[int, int]] = set()
        for appointment in self._active_for_professional(professional_id, appointments):
            if self._local_date(appointment) != date:
                continue
            start = appointment.scheduled_time.value.in_timezone(self.timezone)
            following = start.add(minutes=SLOT_MINUTES)
            busy.add((start.hour, start.minute))
            # a booking also blocks the slot right after it
            busy.add((following.hour, following.minute))
        return busy
