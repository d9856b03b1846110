"""
Tests for the SchedulingService orchestration layer.
"""

import logging

import pendulum
import pytest

from clinicsched.adapters.memory import (
    InMemoryAppointmentRepository,
    InMemoryEventPublisher,
    InMemoryPatientDirectory,
)
from clinicsched.domain.appointment_type import AppointmentType
from clinicsched.domain.availability import AvailabilityService
from clinicsched.domain.events import (
    AppointmentCancelled,
    AppointmentRescheduled,
    AppointmentScheduled,
    AppointmentStatusChanged,
)
from clinicsched.domain.exceptions import ErrorKind, SchedulingError
from clinicsched.domain.identifiers import AppointmentId, PatientId, ProfessionalId
from clinicsched.domain.patient import PatientProfile, PatientStatus
from clinicsched.domain.status import AppointmentStatus
from clinicsched.services.scheduling import SchedulingService

TZ = "Europe/Berlin"
NOW = pendulum.datetime(2026, 3, 2, 9, 0, tz=TZ)  # Monday

PATIENT = PatientId("a1b2c3d4-e5f6-4789-8abc-def012345678")
OTHER_PATIENT = PatientId("b2c3d4e5-f6a7-4890-9bcd-ef0123456789")
SUSPENDED_PATIENT = PatientId("c3d4e5f6-a7b8-4901-8cde-f01234567890")
PROFESSIONAL = ProfessionalId("6f1c2a4e-8b3d-4f5a-9c7e-1d2b3a4c5e6f")


def _moment(day: int, hour: int, minute: int = 0) -> pendulum.DateTime:
    return pendulum.datetime(2026, 3, day, hour, minute, tz=TZ)


class Harness:
    """Service wired to in-memory adapters."""

    def __init__(self):
        self.repository = InMemoryAppointmentRepository(timezone=TZ)
        self.publisher = InMemoryEventPublisher()
        self.patients = InMemoryPatientDirectory([
            PatientProfile(PATIENT),
            PatientProfile(OTHER_PATIENT),
            PatientProfile(SUSPENDED_PATIENT, PatientStatus.SUSPENDED),
        ])
        self.service = SchedulingService(
            repository=self.repository,
            publisher=self.publisher,
            patients=self.patients,
            availability=AvailabilityService(timezone=TZ),
        )

    def book(self, patient_id=PATIENT, day=3, hour=10, minute=0, appointment_type=AppointmentType.FOLLOW_UP):
        return self.service.schedule(
            patient_id=patient_id,
            professional_id=PROFESSIONAL,
            scheduled_at=_moment(day, hour, minute),
            appointment_type=appointment_type,
            now=NOW,
        )

    def book_confirmed(self, **kwargs):
        appointment = self.book(**kwargs)
        return self.service.confirm(appointment.id, now=NOW)


@pytest.fixture
def harness() -> Harness:
    return Harness()


class TestSchedule:
    """Tests for booking."""

    def test_schedule_saves_and_publishes(self, harness):
        appointment = harness.book()

        assert appointment.status is AppointmentStatus.PENDING
        assert harness.repository.find_by_id(appointment.id) == appointment
        assert len(harness.publisher.events) == 1
        assert isinstance(harness.publisher.events[0], AppointmentScheduled)

    def test_published_events_are_drained(self, harness):
        appointment = harness.book()

        assert appointment.domain_events == ()

    def test_too_close_fails_without_side_effects(self, harness):
        with pytest.raises(SchedulingError) as exc_info:
            harness.service.schedule(
                patient_id=PATIENT,
                professional_id=PROFESSIONAL,
                scheduled_at=NOW.add(hours=1),
                now=NOW,
            )

        assert exc_info.value.kind is ErrorKind.INVALID_TIME_SLOT
        assert harness.repository.all() == []
        assert harness.publisher.events == []

    def test_unknown_patient_fails(self, harness):
        with pytest.raises(SchedulingError) as exc_info:
            harness.book(patient_id=PatientId("d4e5f6a7-b8c9-4012-9def-012345678901"))

        assert exc_info.value.kind is ErrorKind.PATIENT_BUSINESS_RULE
        assert harness.publisher.events == []

    def test_suspended_patient_fails(self, harness):
        with pytest.raises(SchedulingError) as exc_info:
            harness.book(patient_id=SUSPENDED_PATIENT)

        assert exc_info.value.kind is ErrorKind.PATIENT_BUSINESS_RULE

    def test_conflict_with_confirmed_booking(self, harness):
        harness.book_confirmed(patient_id=OTHER_PATIENT)
        events_before = len(harness.publisher.events)

        with pytest.raises(SchedulingError) as exc_info:
            harness.book()

        assert exc_info.value.kind is ErrorKind.APPOINTMENT_CONFLICT
        assert len(harness.publisher.events) == events_before
        assert len(harness.repository.all()) == 1

    def test_one_active_appointment_per_day(self, harness):
        harness.book_confirmed()

        with pytest.raises(SchedulingError) as exc_info:
            harness.book(hour=15)

        assert exc_info.value.kind is ErrorKind.PATIENT_BUSINESS_RULE

    def test_type_notice_is_enforced(self, harness):
        with pytest.raises(SchedulingError) as exc_info:
            harness.book(appointment_type=AppointmentType.PROCEDURE)

        assert exc_info.value.kind is ErrorKind.INVALID_TIME_SLOT


class TestClinicTimezone:
    """Tests that requested times are judged in the clinic timezone."""

    def test_after_hours_written_in_utc_is_rejected(self, harness):
        with pytest.raises(SchedulingError) as exc_info:
            harness.service.schedule(
                patient_id=PATIENT,
                professional_id=PROFESSIONAL,
                scheduled_at=pendulum.datetime(2026, 3, 3, 18, 30, tz="UTC"),
                now=NOW,
            )

        assert exc_info.value.kind is ErrorKind.INVALID_TIME_SLOT
        assert harness.repository.all() == []
        assert harness.publisher.events == []

    def test_utc_request_is_stored_as_local_time(self, harness):
        appointment = harness.service.schedule(
            patient_id=PATIENT,
            professional_id=PROFESSIONAL,
            scheduled_at=pendulum.datetime(2026, 3, 3, 9, 0, tz="UTC"),
            now=NOW,
        )

        assert appointment.scheduled_time.formatted_datetime() == "03/03/2026 10:00"


class TestLifecycle:
    """Tests for status commands."""

    def test_full_lifecycle_publishes_each_step(self, harness):
        appointment = harness.book_confirmed()
        appointment = harness.service.mark_as_scheduled(appointment.id, now=NOW)
        appointment = harness.service.start(appointment.id, now=NOW)
        appointment = harness.service.complete(appointment.id, "Routine check", now=NOW)

        stored = harness.repository.find_by_id(appointment.id)
        assert stored.status is AppointmentStatus.COMPLETED
        assert stored.observation == "Routine check"
        statuses = [
            event.new_status for event in harness.publisher.events
            if isinstance(event, AppointmentStatusChanged)
        ]
        assert statuses == [
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.SCHEDULED,
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.COMPLETED,
        ]

    def test_cancel(self, harness):
        appointment = harness.book()

        cancelled = harness.service.cancel(appointment.id, "Patient request", now=NOW)

        assert cancelled.status is AppointmentStatus.CANCELLED
        assert isinstance(harness.publisher.events[-1], AppointmentCancelled)

    def test_invalid_transition_leaves_store_untouched(self, harness):
        appointment = harness.book()
        harness.service.cancel(appointment.id, "Patient request", now=NOW)
        published = len(harness.publisher.events)

        with pytest.raises(SchedulingError) as exc_info:
            harness.service.confirm(appointment.id, now=NOW)

        assert exc_info.value.kind is ErrorKind.INVALID_STATUS_TRANSITION
        assert harness.repository.find_by_id(appointment.id).status is AppointmentStatus.CANCELLED
        assert len(harness.publisher.events) == published

    def test_mark_as_no_show(self, harness):
        appointment = harness.book_confirmed()
        harness.service.mark_as_scheduled(appointment.id, now=NOW)

        no_show = harness.service.mark_as_no_show(appointment.id, now=_moment(3, 10, 20))

        assert no_show.status is AppointmentStatus.NO_SHOW

    def test_unknown_appointment(self, harness):
        with pytest.raises(SchedulingError) as exc_info:
            harness.service.confirm(AppointmentId.generate(), now=NOW)

        assert exc_info.value.kind is ErrorKind.APPOINTMENT_NOT_FOUND

    def test_confirm_into_taken_slot_is_refused_by_repository(self, harness):
        """Two pending bookings for one slot; only the first can be confirmed."""
        first = harness.book(patient_id=PATIENT)
        second = harness.book(patient_id=OTHER_PATIENT)
        harness.service.confirm(first.id, now=NOW)

        with pytest.raises(SchedulingError) as exc_info:
            harness.service.confirm(second.id, now=NOW)

        assert exc_info.value.kind is ErrorKind.APPOINTMENT_CONFLICT
        assert harness.repository.find_by_id(second.id).status is AppointmentStatus.PENDING


class TestReschedule:
    """Tests for rescheduling."""

    def test_reschedule_to_free_slot(self, harness):
        appointment = harness.book_confirmed()

        moved = harness.service.reschedule(appointment.id, _moment(4, 11), "Clash", now=NOW)

        assert moved.status is AppointmentStatus.RESCHEDULED
        assert moved.scheduled_time.value == _moment(4, 11)
        event = harness.publisher.events[-1]
        assert isinstance(event, AppointmentRescheduled)
        assert event.reason == "Clash"

    def test_reschedule_into_own_adjacent_slot(self, harness):
        """The appointment's own booking does not block its new time."""
        appointment = harness.book_confirmed()

        moved = harness.service.reschedule(appointment.id, _moment(3, 10, 30), now=NOW)

        assert moved.scheduled_time.value == _moment(3, 10, 30)

    def test_reschedule_into_taken_slot(self, harness):
        appointment = harness.book_confirmed()
        harness.book_confirmed(patient_id=OTHER_PATIENT, hour=14)

        with pytest.raises(SchedulingError) as exc_info:
            harness.service.reschedule(appointment.id, _moment(3, 14), now=NOW)

        assert exc_info.value.kind is ErrorKind.APPOINTMENT_CONFLICT

    def test_rescheduled_then_reopened(self, harness):
        appointment = harness.book_confirmed()
        harness.service.reschedule(appointment.id, _moment(4, 11), now=NOW)

        reopened = harness.service.reopen(appointment.id, now=NOW)

        assert reopened.status is AppointmentStatus.PENDING
        assert reopened.scheduled_time.value == _moment(4, 11)


class TestQueries:
    """Tests for availability queries."""

    def test_available_slots_exclude_confirmed_booking(self, harness):
        harness.book_confirmed()

        slots = harness.service.available_slots(PROFESSIONAL, pendulum.date(2026, 3, 3), now=NOW)

        labels = [slot.formatted_time() for slot in slots]
        assert "10:00" not in labels
        assert "10:30" not in labels
        assert len(labels) == 20

    def test_availability_stats(self, harness):
        harness.book_confirmed()

        stats = harness.service.availability_stats(
            PROFESSIONAL, pendulum.date(2026, 3, 2), pendulum.date(2026, 3, 8)
        )

        assert stats.booked_slots == 1
        assert stats.total_slots == 88


class TestLogging:
    """Tests for the commit log line."""

    def test_commit_is_logged(self, harness, caplog):
        with caplog.at_level(logging.INFO, logger="clinicsched.services.scheduling"):
            appointment = harness.book()

        assert f"Appointment {appointment.id} is now PENDING" in caplog.text
