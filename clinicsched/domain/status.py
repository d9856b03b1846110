"""
Appointment status lifecycle.

The legal transitions are kept in ``ALLOWED_TRANSITIONS``, an immutable
adjacency map from a status to the statuses it may move to. Terminal
statuses map to the empty set.
"""

from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping

from .exceptions import ErrorKind, SchedulingError


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"
    RESCHEDULED = "RESCHEDULED"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def from_string(cls, value: str | None) -> "AppointmentStatus":
        """Parse a status name; blank input yields ``PENDING``."""
        if value is None or not value.strip():
            return cls.PENDING
        try:
            return cls(value.strip().upper())
        except ValueError as exc:
            raise ValueError(f"Invalid appointment status: {value}") from exc


INITIAL_STATUS = AppointmentStatus.PENDING

ALLOWED_TRANSITIONS: Mapping[AppointmentStatus, FrozenSet[AppointmentStatus]] = MappingProxyType({
    AppointmentStatus.PENDING: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
    }),
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.RESCHEDULED,
    }),
    AppointmentStatus.IN_PROGRESS: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.RESCHEDULED: frozenset({
        AppointmentStatus.PENDING,
    }),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
})

TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
})

ACTIVE_STATUSES = frozenset({
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.IN_PROGRESS,
})

CANCELLABLE_STATUSES = frozenset({
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.SCHEDULED,
})

RESCHEDULABLE_STATUSES = CANCELLABLE_STATUSES


def can_transition(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    """Check whether ``current -> requested`` is in the transition table."""
    return requested in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: AppointmentStatus, requested: AppointmentStatus) -> None:
    """
    Raise if ``current -> requested`` is not a legal transition.

    Raises:
        SchedulingError: ``INVALID_STATUS_TRANSITION`` naming both statuses.
    """
    if not can_transition(current, requested):
        raise SchedulingError(
            ErrorKind.INVALID_STATUS_TRANSITION,
            f"Cannot change appointment status from {current.value} to {requested.value}",
        )


def is_terminal(status: AppointmentStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_active(status: AppointmentStatus) -> bool:
    return status in ACTIVE_STATUSES


def is_cancellable(status: AppointmentStatus) -> bool:
    return status in CANCELLABLE_STATUSES


def is_reschedulable(status: AppointmentStatus) -> bool:
    return status in RESCHEDULABLE_STATUSES
