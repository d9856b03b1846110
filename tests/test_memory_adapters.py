"""
Tests for the in-memory adapters and the logging event publisher.
"""

import json
import logging

import pendulum
import pytest

from clinicsched.adapters.event_publisher import LoggingEventPublisher
from clinicsched.adapters.memory import InMemoryAppointmentRepository, InMemoryPatientDirectory
from clinicsched.domain.appointment import Appointment
from clinicsched.domain.appointment_time import AppointmentTime
from clinicsched.domain.appointment_type import AppointmentType
from clinicsched.domain.events import AppointmentScheduled
from clinicsched.domain.exceptions import AppointmentDataError, ErrorKind, SchedulingError
from clinicsched.domain.identifiers import AppointmentId, PatientId, ProfessionalId
from clinicsched.domain.patient import PatientProfile
from clinicsched.domain.status import AppointmentStatus

TZ = "Europe/Berlin"
NOW = pendulum.datetime(2026, 3, 2, 9, 0, tz=TZ)

PATIENT = PatientId("a1b2c3d4-e5f6-4789-8abc-def012345678")
PROFESSIONAL = ProfessionalId("6f1c2a4e-8b3d-4f5a-9c7e-1d2b3a4c5e6f")
OTHER_PROFESSIONAL = ProfessionalId("0b6f6c9e-3f7e-4c52-9a51-3b1f6e0f4a11")


def _appointment(day=3, hour=10, status=AppointmentStatus.CONFIRMED, professional_id=PROFESSIONAL, appointment_id=None):
    return Appointment.restore(
        id=appointment_id or AppointmentId.generate(),
        patient_id=PATIENT,
        professional_id=professional_id,
        scheduled_time=AppointmentTime.restore(pendulum.datetime(2026, 3, day, hour, tz=TZ)),
        status=status,
        appointment_type=AppointmentType.FOLLOW_UP,
        observation=None,
        created_at=NOW,
        updated_at=NOW,
    )


def _record(**overrides):
    record = {
        "id": "3e7a9c1b-2d4f-4a6b-8c0d-1e2f3a4b5c6d",
        "patient_id": PATIENT.value,
        "professional_id": PROFESSIONAL.value,
        "scheduled_time": "2026-03-03T10:00:00+01:00",
        "status": "CONFIRMED",
        "type": "EXAM",
        "observation": "Fasting",
        "created_at": "2026-02-20T09:12:00+01:00",
        "updated_at": "2026-02-21T14:30:00+01:00",
    }
    record.update(overrides)
    return record


def _write(tmp_path, payload):
    data_file = tmp_path / "appointments.json"
    data_file.write_text(json.dumps(payload), encoding="utf-8")
    return data_file


class TestInMemoryAppointmentRepository:
    """Tests for storage and querying."""

    def test_finders_are_sorted_by_time(self):
        late = _appointment(hour=15)
        early = _appointment(hour=9, professional_id=OTHER_PROFESSIONAL)
        repository = InMemoryAppointmentRepository([late, early])

        assert repository.find_by_patient(PATIENT) == [early, late]
        assert repository.find_by_professional(PROFESSIONAL) == [late]

    def test_find_by_date_range_is_inclusive(self):
        repository = InMemoryAppointmentRepository(
            [_appointment(day=2, hour=15), _appointment(day=3), _appointment(day=5)], timezone=TZ
        )

        found = repository.find_by_date_range(pendulum.date(2026, 3, 2), pendulum.date(2026, 3, 3))

        assert len(found) == 2

    def test_save_assigns_missing_id(self):
        repository = InMemoryAppointmentRepository()
        appointment = Appointment(
            id=None,
            patient_id=PATIENT,
            professional_id=PROFESSIONAL,
            scheduled_time=AppointmentTime.restore(pendulum.datetime(2026, 3, 3, 10, tz=TZ)),
            status=AppointmentStatus.PENDING,
            appointment_type=AppointmentType.FOLLOW_UP,
            observation="",
            created_at=NOW,
            updated_at=NOW,
        )

        saved = repository.save(appointment)

        assert saved.id is not None
        assert repository.find_by_id(saved.id) == saved

    def test_save_rejects_double_booking(self):
        repository = InMemoryAppointmentRepository([_appointment()])

        with pytest.raises(SchedulingError) as exc_info:
            repository.save(_appointment())

        assert exc_info.value.kind is ErrorKind.APPOINTMENT_CONFLICT

    def test_save_allows_inactive_overlap(self):
        repository = InMemoryAppointmentRepository([_appointment()])

        repository.save(_appointment(status=AppointmentStatus.CANCELLED))

        assert len(repository.all()) == 2

    def test_update_in_place_is_not_a_conflict(self):
        original = _appointment()
        repository = InMemoryAppointmentRepository([original])

        repository.save(original.update_observation("Updated", now=NOW))

        assert repository.find_by_id(original.id).observation == "Updated"

    def test_has_conflicting_appointment(self):
        existing = _appointment()
        repository = InMemoryAppointmentRepository([existing])
        requested = existing.scheduled_time

        assert repository.has_conflicting_appointment(PROFESSIONAL, requested)
        assert not repository.has_conflicting_appointment(PROFESSIONAL, requested, excluding=existing.id)
        assert not repository.has_conflicting_appointment(OTHER_PROFESSIONAL, requested)


class TestFromJson:
    """Tests for loading fixture data."""

    def test_load_valid_file(self, tmp_path):
        data_file = _write(tmp_path, {"appointments": [_record()]})

        repository = InMemoryAppointmentRepository.from_json(data_file, timezone=TZ)

        appointment = repository.find_by_id(AppointmentId("3e7a9c1b-2d4f-4a6b-8c0d-1e2f3a4b5c6d"))
        assert appointment.status is AppointmentStatus.CONFIRMED
        assert appointment.appointment_type is AppointmentType.EXAM
        assert appointment.observation == "Fasting"
        assert appointment.scheduled_time.formatted_datetime() == "03/03/2026 10:00"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            InMemoryAppointmentRepository.from_json(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        data_file = tmp_path / "appointments.json"
        data_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(AppointmentDataError):
            InMemoryAppointmentRepository.from_json(data_file)

    def test_missing_list(self, tmp_path):
        with pytest.raises(AppointmentDataError):
            InMemoryAppointmentRepository.from_json(_write(tmp_path, {"items": []}))

    def test_missing_field(self, tmp_path):
        record = _record()
        del record["patient_id"]

        with pytest.raises(AppointmentDataError, match="patient_id"):
            InMemoryAppointmentRepository.from_json(_write(tmp_path, {"appointments": [record]}))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"scheduled_time": "2026-03-03T10:15:00+01:00"},
            {"scheduled_time": "yesterday"},
            {"status": "ARCHIVED"},
            {"professional_id": "dr-weber"},
        ],
    )
    def test_invalid_values(self, tmp_path, overrides):
        data_file = _write(tmp_path, {"appointments": [_record(**overrides)]})

        with pytest.raises(AppointmentDataError):
            InMemoryAppointmentRepository.from_json(data_file)

    def test_example_fixture_loads(self):
        from pathlib import Path

        data_file = Path(__file__).parent.parent / "appointments.example.json"

        repository = InMemoryAppointmentRepository.from_json(data_file)

        assert len(repository.all()) == 3


class TestInMemoryPatientDirectory:
    """Tests for patient lookup."""

    def test_add_and_find(self):
        directory = InMemoryPatientDirectory()
        profile = PatientProfile(PATIENT)

        directory.add(profile)

        assert directory.find_patient(PATIENT) == profile
        assert directory.find_patient(PatientId("b2c3d4e5-f6a7-4890-9bcd-ef0123456789")) is None


class TestLoggingEventPublisher:
    """Tests for the log-based publisher."""

    def test_event_is_logged_as_json(self, caplog):
        appointment_id = AppointmentId.generate()
        event = AppointmentScheduled(
            appointment_id=appointment_id,
            patient_id=PATIENT,
            professional_id=PROFESSIONAL,
            scheduled_time=AppointmentTime.restore(pendulum.datetime(2026, 3, 3, 10, tz=TZ)),
            appointment_type=AppointmentType.FOLLOW_UP,
            occurred_at=NOW,
        )

        with caplog.at_level(logging.INFO, logger="clinicsched.adapters.event_publisher"):
            LoggingEventPublisher().publish(event)

        assert "AppointmentScheduled" in caplog.text
        assert appointment_id.value in caplog.text
        assert '"appointment_type": "FOLLOW_UP"' in caplog.text
