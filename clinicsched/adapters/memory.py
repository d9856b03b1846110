"""
In-memory implementations of the scheduling ports.

The repository stands in for a real database: it keeps appointments in a
dict and makes the double-booking reservation atomic with a lock. Fixture
data can be loaded from a JSON file for the CLI and for demos.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pendulum
from pendulum import Date, DateTime
from pendulum.parsing.exceptions import ParserError

from ..domain.appointment import Appointment
from ..domain.appointment_time import CLINIC_TIMEZONE, AppointmentTime
from ..domain.appointment_type import AppointmentType
from ..domain.events import DomainEvent
from ..domain.exceptions import AppointmentDataError, ClinicSchedError, ErrorKind, SchedulingError
from ..domain.identifiers import AppointmentId, PatientId, ProfessionalId
from ..domain.patient import PatientProfile
from ..domain.status import AppointmentStatus

logger = logging.getLogger(__name__)


class InMemoryAppointmentRepository:
    """
    Dict-backed appointment storage.

    ``save`` is the atomic reservation point: under the lock it refuses an
    active appointment whose window overlaps another stored active
    appointment of the same professional.
    """

    def __init__(self, appointments: Iterable[Appointment] = (), timezone: str = CLINIC_TIMEZONE):
        self.timezone = timezone
        self._lock = threading.Lock()
        self._appointments: Dict[AppointmentId, Appointment] = {}
        for appointment in appointments:
            self._appointments[appointment.id] = appointment

    def save(self, appointment: Appointment) -> Appointment:
        if appointment.id is None:
            appointment = appointment.with_id(AppointmentId.generate())

        with self._lock:
            if appointment.is_active and self._has_conflict(
                appointment.professional_id,
                appointment.scheduled_time,
                excluding=appointment.id,
            ):
                raise SchedulingError(
                    ErrorKind.APPOINTMENT_CONFLICT,
                    f"Professional {appointment.professional_id} already has a conflicting "
                    f"appointment at {appointment.scheduled_time}",
                )
            self._appointments[appointment.id] = appointment

        logger.debug("Stored appointment %s (%s)", appointment.id, appointment.status.value)
        return appointment

    def find_by_id(self, appointment_id: AppointmentId) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)

    def find_by_patient(self, patient_id: PatientId) -> List[Appointment]:
        return self._sorted(a for a in self._appointments.values() if a.belongs_to_patient(patient_id))

    def find_by_professional(self, professional_id: ProfessionalId) -> List[Appointment]:
        return self._sorted(
            a for a in self._appointments.values() if a.belongs_to_professional(professional_id)
        )

    def find_by_date_range(self, start_date: Date, end_date: Date) -> List[Appointment]:
        return self._sorted(
            a for a in self._appointments.values()
            if start_date <= a.scheduled_time.value.in_timezone(self.timezone).date() <= end_date
        )

    def has_conflicting_appointment(
        self,
        professional_id: ProfessionalId,
        appointment_time: AppointmentTime,
        excluding: Optional[AppointmentId] = None,
    ) -> bool:
        with self._lock:
            return self._has_conflict(professional_id, appointment_time, excluding)

    def all(self) -> List[Appointment]:
        return self._sorted(self._appointments.values())

    def _has_conflict(
        self,
        professional_id: ProfessionalId,
        appointment_time: AppointmentTime,
        excluding: Optional[AppointmentId],
    ) -> bool:
        return any(
            other.is_active
            and other.id != excluding
            and other.belongs_to_professional(professional_id)
            and other.scheduled_time.conflicts_with(appointment_time)
            for other in self._appointments.values()
        )

    @staticmethod
    def _sorted(appointments: Iterable[Appointment]) -> List[Appointment]:
        return sorted(appointments, key=lambda a: a.scheduled_time.value)

    @classmethod
    def from_json(cls, data_file: Path, timezone: str = CLINIC_TIMEZONE) -> "InMemoryAppointmentRepository":
        """
        Load appointments from a JSON fixture file.

        The file holds an object with an ``appointments`` list; each entry
        carries the persisted appointment fields with ISO-8601 timestamps.

        Raises:
            FileNotFoundError: If the file doesn't exist
            AppointmentDataError: If the content cannot be parsed
        """
        if not data_file.exists():
            raise FileNotFoundError(f"Appointment data file not found: {data_file}")

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise AppointmentDataError(f"Invalid JSON in {data_file}: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("appointments"), list):
            raise AppointmentDataError(f"{data_file} must contain an 'appointments' list")

        appointments = [
            _appointment_from_record(record, index, timezone)
            for index, record in enumerate(data["appointments"])
        ]
        logger.info("Loaded %d appointment(s) from %s", len(appointments), data_file)
        return cls(appointments, timezone=timezone)


def _parse_datetime(value: Any, field_name: str) -> DateTime:
    try:
        parsed = pendulum.parse(str(value))
    except (ValueError, ParserError) as exc:
        raise AppointmentDataError(f"Invalid {field_name}: {value}") from exc
    if not isinstance(parsed, DateTime):
        raise AppointmentDataError(f"Invalid {field_name}: {value} is not a date and time")
    return parsed


def _appointment_from_record(record: Dict[str, Any], index: int, timezone: str) -> Appointment:
    if not isinstance(record, dict):
        raise AppointmentDataError(f"Appointment #{index} must be an object")
    try:
        created_at = _parse_datetime(record["created_at"], "created_at")
        return Appointment.restore(
            id=AppointmentId(record["id"]),
            patient_id=PatientId(record["patient_id"]),
            professional_id=ProfessionalId(record["professional_id"]),
            scheduled_time=AppointmentTime.restore(
                _parse_datetime(record["scheduled_time"], "scheduled_time"),
                timezone,
            ),
            status=AppointmentStatus.from_string(record.get("status")),
            appointment_type=AppointmentType.from_string(record.get("type")),
            observation=record.get("observation"),
            created_at=created_at,
            updated_at=_parse_datetime(record.get("updated_at", record["created_at"]), "updated_at"),
        )
    except KeyError as exc:
        raise AppointmentDataError(f"Appointment #{index} is missing field {exc}") from exc
    except AppointmentDataError:
        raise
    except (ClinicSchedError, ValueError) as exc:
        raise AppointmentDataError(f"Appointment #{index} is invalid: {exc}") from exc


class InMemoryPatientDirectory:
    """Patient profiles kept in a dict."""

    def __init__(self, patients: Iterable[PatientProfile] = ()):
        self._patients: Dict[PatientId, PatientProfile] = {p.patient_id: p for p in patients}

    def add(self, patient: PatientProfile) -> None:
        self._patients[patient.patient_id] = patient

    def find_patient(self, patient_id: PatientId) -> Optional[PatientProfile]:
        return self._patients.get(patient_id)


class InMemoryEventPublisher:
    """Collects published events in order."""

    def __init__(self) -> None:
        self.events: List[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        self.events.append(event)
