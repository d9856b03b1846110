"""
Scheduling moment value object.

``AppointmentTime`` wraps a timezone-aware pendulum ``DateTime`` and carries
the clinic's temporal booking rules:

- the moment must be at least ``MINIMUM_LEAD`` after "now";
- its start must fall inside business hours, ``[BUSINESS_START, BUSINESS_END)``;
- it must sit on the ``SLOT_MINUTES`` grid with zero seconds.

Business hours and the grid are judged on the clinic's wall clock: every
moment is converted into the clinic timezone first, and naive datetimes are
read as clinic local time.

Every appointment occupies a fixed ``SLOT_MINUTES`` window starting at its
moment; two moments conflict when their windows overlap.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time

import pendulum
from pendulum import Date, DateTime, Duration

from .exceptions import ErrorKind, SchedulingError

CLINIC_TIMEZONE = "Europe/Berlin"
BUSINESS_START = time(8, 0)
BUSINESS_END = time(19, 0)
SLOT_MINUTES = 30
MINIMUM_LEAD = pendulum.duration(hours=2)
NO_SHOW_GRACE = pendulum.duration(minutes=15)
SLOTS_PER_DAY = (
    (BUSINESS_END.hour * 60 + BUSINESS_END.minute)
    - (BUSINESS_START.hour * 60 + BUSINESS_START.minute)
) // SLOT_MINUTES


def current_time(now: datetime | None = None) -> DateTime:
    """Return ``now`` as a pendulum DateTime, defaulting to the real clock."""
    if now is None:
        return pendulum.now("UTC")
    return to_clinic_time(now)


def to_clinic_time(moment: datetime, timezone: str = CLINIC_TIMEZONE) -> DateTime:
    """
    Express a moment on the clinic's wall clock.

    Aware datetimes keep their instant and are converted; naive datetimes are
    taken as local time in ``timezone``.
    """
    if moment.tzinfo is None:
        return pendulum.instance(moment, tz=timezone)
    return pendulum.instance(moment).in_timezone(timezone)


def is_within_business_hours(moment: datetime, timezone: str = CLINIC_TIMEZONE) -> bool:
    """Check whether a moment starts inside ``[BUSINESS_START, BUSINESS_END)`` locally."""
    time_of_day = to_clinic_time(moment, timezone).time().replace(tzinfo=None)
    return BUSINESS_START <= time_of_day < BUSINESS_END


def meets_minimum_lead(
    moment: datetime,
    now: datetime | None = None,
    lead: Duration = MINIMUM_LEAD,
    timezone: str = CLINIC_TIMEZONE,
) -> bool:
    """Check whether a moment is at least ``lead`` after ``now``."""
    return to_clinic_time(moment, timezone) >= current_time(now) + lead


def is_on_slot_grid(moment: datetime, timezone: str = CLINIC_TIMEZONE) -> bool:
    local = to_clinic_time(moment, timezone)
    return (
        local.minute % SLOT_MINUTES == 0
        and local.second == 0
        and local.microsecond == 0
    )


def windows_overlap(first: datetime, second: datetime, timezone: str = CLINIC_TIMEZONE) -> bool:
    """
    Check whether the occupancy windows starting at two moments overlap.

    Each window is ``[start, start + SLOT_MINUTES)``; windows that only touch
    do not overlap.
    """
    first_start = to_clinic_time(first, timezone)
    second_start = to_clinic_time(second, timezone)
    first_end = first_start.add(minutes=SLOT_MINUTES)
    second_end = second_start.add(minutes=SLOT_MINUTES)
    return first_start < second_end and first_end > second_start


def _invalid(moment: object, reason: str) -> SchedulingError:
    return SchedulingError(
        ErrorKind.INVALID_TIME_SLOT,
        f"Time {moment} is not valid for booking: {reason}",
    )


@dataclass(frozen=True)
class AppointmentTime:
    """
    A validated appointment start time in the clinic timezone.

    Use :meth:`of` for new bookings; it is the only constructor that enforces
    the minimum lead time. :meth:`restore` rebuilds a persisted moment without
    that check. Calling the class directly behaves like :meth:`restore` and
    must not be used to accept a new booking.

    ``value`` is always stored converted to ``timezone``. Equality compares
    instants only.
    """

    value: DateTime
    timezone: str = field(default=CLINIC_TIMEZONE, compare=False)

    def __post_init__(self):
        if self.value is None:
            raise _invalid(None, "appointment time must not be empty")
        moment = to_clinic_time(self.value, self.timezone)
        if not is_within_business_hours(moment, self.timezone):
            raise _invalid(
                moment,
                f"must be within business hours "
                f"({BUSINESS_START:%H:%M} to {BUSINESS_END:%H:%M} {self.timezone})",
            )
        if not is_on_slot_grid(moment, self.timezone):
            raise _invalid(
                moment,
                f"must be a multiple of {SLOT_MINUTES} minutes with zero seconds",
            )
        object.__setattr__(self, "value", moment)

    @classmethod
    def of(
        cls,
        moment: datetime | None,
        now: datetime | None = None,
        timezone: str = CLINIC_TIMEZONE,
    ) -> "AppointmentTime":
        """
        Validate and wrap a moment for a new booking.

        Raises:
            SchedulingError: ``INVALID_TIME_SLOT`` if the moment is missing,
                less than two hours ahead, outside business hours or off-grid.
        """
        if moment is None:
            raise _invalid(None, "appointment time must not be empty")
        if not meets_minimum_lead(moment, now, timezone=timezone):
            raise _invalid(
                moment,
                f"must be booked at least {MINIMUM_LEAD.in_hours()} hours in advance",
            )
        return cls(moment, timezone)

    @classmethod
    def restore(cls, moment: datetime, timezone: str = CLINIC_TIMEZONE) -> "AppointmentTime":
        """Rebuild a persisted moment without the lead-time check."""
        return cls(moment, timezone)

    @property
    def end(self) -> DateTime:
        """End of the occupancy window."""
        return self.value.add(minutes=SLOT_MINUTES)

    def date(self) -> Date:
        """Calendar date in the clinic timezone."""
        return self.value.date()

    def is_within_business_hours(self) -> bool:
        return is_within_business_hours(self.value, self.timezone)

    def conflicts_with(self, other: "AppointmentTime | None") -> bool:
        """Check whether two occupancy windows overlap."""
        if other is None:
            return False
        return windows_overlap(self.value, other.value, self.timezone)

    def minutes_until(self, other: "AppointmentTime") -> int:
        """Signed number of whole minutes from this moment to ``other``."""
        return self.value.diff(other.value, False).in_minutes()

    def next_slot(self, now: datetime | None = None) -> "AppointmentTime":
        return AppointmentTime.of(self.value.add(minutes=SLOT_MINUTES), now=now, timezone=self.timezone)

    def previous_slot(self, now: datetime | None = None) -> "AppointmentTime":
        return AppointmentTime.of(self.value.subtract(minutes=SLOT_MINUTES), now=now, timezone=self.timezone)

    def is_before(self, other: "AppointmentTime") -> bool:
        return self.value < other.value

    def is_after(self, other: "AppointmentTime") -> bool:
        return self.value > other.value

    def formatted_datetime(self) -> str:
        return self.value.format("DD/MM/YYYY HH:mm")

    def formatted_time(self) -> str:
        return self.value.format("HH:mm")

    def __str__(self) -> str:
        return self.formatted_datetime()
