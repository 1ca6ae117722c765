"""
Domain models for reservations, operating hours and slot availability.

All times are minutes since civil midnight of the target date. Values at or
beyond 1440 belong to the following civil day and only appear inside a
midnight-spanning operating window.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pendulum import Date, DateTime

from .exceptions import MalformedReservationError
from .time_utils import MINUTES_PER_DAY, minutes_to_hhmm, parse_hhmm

DEFAULT_DURATION_MENU: Tuple[int, ...] = (30, 60, 90, 120, 180, 240, 300, 360, 480)


@dataclass(frozen=True)
class Reservation:
    """
    An existing booking on a port, normalized to civil minutes.

    Invariant: start_minutes < end_minutes.
    """
    start_minutes: int
    end_minutes: int
    booking_id: Optional[str] = None
    port_id: Optional[str] = None
    status: str = "confirmed"

    def __post_init__(self):
        if self.start_minutes >= self.end_minutes:
            raise MalformedReservationError(
                f"Reservation {self.booking_id or '?'} ends at "
                f"{minutes_to_hhmm(self.end_minutes)}, not after its start "
                f"{minutes_to_hhmm(self.start_minutes)}"
            )

    def duration_minutes(self) -> int:
        """Return the reserved length in minutes."""
        return self.end_minutes - self.start_minutes

    def overlaps(self, start: int, end: int, buffer_minutes: int = 0) -> bool:
        """Check whether ``[start, end)`` touches this reservation widened by the buffer."""
        return start < self.end_minutes + buffer_minutes and end + buffer_minutes > self.start_minutes

    def __str__(self) -> str:
        return f"{minutes_to_hhmm(self.start_minutes)}-{minutes_to_hhmm(self.end_minutes)}"


@dataclass(frozen=True)
class DayHours:
    """Operating hours entry for a single weekday."""
    is_24_hours: bool = False
    open: Optional[str] = None
    close: Optional[str] = None

    def is_closed(self) -> bool:
        """A non-24h day without both boundaries is treated as closed."""
        return not self.is_24_hours and (not self.open or not self.close)

    def __str__(self) -> str:
        if self.is_24_hours:
            return "24 hours"
        if self.is_closed():
            return "closed"
        return f"{self.open} - {self.close}"


ALWAYS_OPEN = DayHours(is_24_hours=True)


@dataclass(frozen=True)
class AdmissibleWindow:
    """
    Range of start minutes during which a resource accepts bookings.

    ``close_minutes_extended`` exceeds 1440 when the window spans midnight.
    """
    open_minutes: int
    close_minutes_extended: int
    is_24_hours: bool = False

    @classmethod
    def from_day_hours(cls, hours: DayHours) -> Optional["AdmissibleWindow"]:
        """Build the window for an operating-hours entry; None if the day is closed."""
        if hours.is_24_hours:
            return cls(open_minutes=0, close_minutes_extended=MINUTES_PER_DAY, is_24_hours=True)
        if hours.is_closed():
            return None

        open_minutes = parse_hhmm(hours.open)
        close_minutes = parse_hhmm(hours.close)
        if close_minutes <= open_minutes:
            close_minutes += MINUTES_PER_DAY

        return cls(open_minutes=open_minutes, close_minutes_extended=close_minutes)

    def contains(self, minutes: int) -> bool:
        return self.open_minutes <= minutes < self.close_minutes_extended

    def length_minutes(self) -> int:
        return self.close_minutes_extended - self.open_minutes

    @property
    def spans_midnight(self) -> bool:
        return self.close_minutes_extended > MINUTES_PER_DAY

    def place_time_of_day(self, minutes: int) -> int:
        """Map a time of day onto the window; times before opening belong to the next day."""
        if self.spans_midnight and minutes < self.open_minutes:
            return minutes + MINUTES_PER_DAY
        return minutes

    def __str__(self) -> str:
        if self.is_24_hours:
            return "24 hours"
        return f"{minutes_to_hhmm(self.open_minutes)} - {minutes_to_hhmm(self.close_minutes_extended)}"


@dataclass(frozen=True)
class BookingRules:
    """Tunable constraints applied by the availability engine."""
    granularity_minutes: int = 5
    buffer_minutes: int = 5
    min_duration_minutes: int = 30
    max_duration_minutes: int = 480
    duration_menu: Tuple[int, ...] = DEFAULT_DURATION_MENU

    def __post_init__(self):
        if self.granularity_minutes <= 0:
            raise ValueError("granularity_minutes must be greater than zero")
        if self.buffer_minutes < 0:
            raise ValueError("buffer_minutes must not be negative")
        if not 0 < self.min_duration_minutes <= self.max_duration_minutes:
            raise ValueError("min_duration_minutes must be positive and not exceed max_duration_minutes")


@dataclass(frozen=True)
class Slot:
    """A candidate start time and what can be booked from it."""
    start_minutes: int
    is_available: bool
    max_continuous_duration_minutes: int
    conflicts: Tuple[Reservation, ...] = ()
    granularity_minutes: int = 5

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.granularity_minutes

    @property
    def label(self) -> str:
        return minutes_to_hhmm(self.start_minutes)

    @property
    def is_next_day(self) -> bool:
        return self.start_minutes >= MINUTES_PER_DAY


@dataclass(frozen=True)
class DurationOption:
    """An entry of the duration picker for a selected slot."""
    minutes: int
    is_max: bool = False

    def format_display(self) -> str:
        """Format as ``1h 30m``, ``2h`` or ``45m``."""
        hours, mins = divmod(self.minutes, 60)
        if hours == 0:
            text = f"{mins}m"
        elif mins == 0:
            text = f"{hours}h"
        else:
            text = f"{hours}h {mins}m"
        return f"{text} (max)" if self.is_max else text


@dataclass
class PortAvailability:
    """
    Availability view of one port for one civil date.

    Advisory only: the reservation store performs the authoritative conflict
    check when a booking is committed.
    """
    station_id: str
    port_id: str
    date: Date
    window: Optional[AdmissibleWindow]
    slots: List[Slot]
    reservations: List[Reservation]
    generated_at: DateTime
    dropped_records: int = 0
    port_label: str = field(default="")

    @property
    def available_slots(self) -> int:
        return sum(1 for slot in self.slots if slot.is_available)

    @property
    def total_slots(self) -> int:
        return len(self.slots)

    def find_slot(self, start_minutes: int) -> Optional[Slot]:
        """Return the slot starting at the given minute, if generated."""
        for slot in self.slots:
            if slot.start_minutes == start_minutes:
                return slot
        return None
