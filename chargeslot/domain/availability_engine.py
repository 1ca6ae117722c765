"""
Core business logic for real-time slot availability.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O, no system clock).
Every result is a function of the reservations, the admissible window, the
target date and an injected "now". The engine keeps no state between calls,
so one instance can serve any number of concurrent callers.
"""

import logging
from datetime import date as date_type
from datetime import datetime
from typing import List, Optional, Sequence

import pendulum

from .models import AdmissibleWindow, BookingRules, DurationOption, Reservation, Slot
from .time_utils import DEFAULT_TIMEZONE, civil_date_of, resolve_timezone

logger = logging.getLogger(__name__)


class AvailabilityEngine:
    """
    Computes bookable start slots and durations for one port and one day.

    Algorithm:
    1. Enumerate start minutes across the admissible window at the slot
       granularity
    2. For today, drop starts that have already passed
    3. Mark a slot unavailable if any reservation, widened by the buffer on
       both sides, overlaps it
    4. For available slots, the max continuous duration runs until the next
       buffered reservation start, the window end or the duration cap,
       whichever comes first
    """

    def __init__(self, rules: Optional[BookingRules] = None, timezone=DEFAULT_TIMEZONE):
        self.rules = rules or BookingRules()
        self.timezone = resolve_timezone(timezone)

    def compute_slots(
        self,
        *,
        window: Optional[AdmissibleWindow],
        reservations: Sequence[Reservation],
        target_date: date_type,
        now: datetime,
    ) -> List[Slot]:
        """
        Generate every slot of the admissible window.

        Args:
            window: Admissible window for the date, None when closed
            reservations: Normalized reservations of the port for the date
            target_date: Civil date being booked
            now: Current instant; only its civil date and minute are used

        Returns:
            Slots in ascending start order
        """
        if window is None:
            return []

        earliest = self._earliest_start(window, target_date, now)
        if earliest is None:
            return []

        step = self.rules.granularity_minutes
        slots: List[Slot] = []

        for start in range(window.open_minutes, window.close_minutes_extended, step):
            if start < earliest:
                continue
            slots.append(self.evaluate_slot(start, reservations, window))

        logger.debug(
            "Computed %d slots for %s (%s), %d available, %d reservations",
            len(slots),
            target_date,
            window,
            sum(1 for s in slots if s.is_available),
            len(reservations),
        )
        return slots

    def evaluate_slot(
        self,
        start_minutes: int,
        reservations: Sequence[Reservation],
        window: AdmissibleWindow,
    ) -> Slot:
        """Build one Slot with its conflicts and max continuous duration."""
        end_minutes = start_minutes + self.rules.granularity_minutes
        conflicts = tuple(self.find_conflicts(start_minutes, end_minutes, reservations))
        max_duration = self.max_continuous_duration(start_minutes, reservations, window)

        return Slot(
            start_minutes=start_minutes,
            is_available=not conflicts,
            max_continuous_duration_minutes=max_duration,
            conflicts=conflicts,
            granularity_minutes=self.rules.granularity_minutes,
        )

    def find_conflicts(
        self,
        start_minutes: int,
        end_minutes: int,
        reservations: Sequence[Reservation],
    ) -> List[Reservation]:
        """Return the reservations whose buffered interval overlaps ``[start, end)``."""
        buffer = self.rules.buffer_minutes
        return [r for r in reservations if r.overlaps(start_minutes, end_minutes, buffer)]

    def max_continuous_duration(
        self,
        start_minutes: int,
        reservations: Sequence[Reservation],
        window: AdmissibleWindow,
    ) -> int:
        """
        Longest booking that can start at ``start_minutes``.

        Reservations that began earlier but whose buffered end reaches past
        the start block the slot outright, so a start that is unavailable
        always yields 0.
        """
        buffer = self.rules.buffer_minutes
        slot_end = start_minutes + self.rules.granularity_minutes

        if any(r.overlaps(start_minutes, slot_end, buffer) for r in reservations):
            return 0

        limit = min(window.close_minutes_extended, start_minutes + self.rules.max_duration_minutes)
        for reservation in reservations:
            buffered_start = reservation.start_minutes - buffer
            if start_minutes <= buffered_start < limit:
                limit = buffered_start

        return max(0, limit - start_minutes)

    def available_durations(
        self,
        start_minutes: int,
        reservations: Sequence[Reservation],
        window: AdmissibleWindow,
    ) -> List[int]:
        """Menu durations whose whole interval fits the window without conflicts."""
        durations: List[int] = []
        for duration in self.rules.duration_menu:
            if not self.rules.min_duration_minutes <= duration <= self.rules.max_duration_minutes:
                continue
            end_minutes = start_minutes + duration
            if end_minutes > window.close_minutes_extended:
                continue
            if self.find_conflicts(start_minutes, end_minutes, reservations):
                continue
            durations.append(duration)
        return durations

    def validate_duration(self, duration: int, slot: Slot) -> bool:
        """
        Decide whether ``duration`` minutes can be booked from ``slot``.

        Checks the global bounds, the slot's max continuous duration and,
        independently, every reservation listed as conflicting with the slot.
        """
        if not duration:
            return False
        if not self.rules.min_duration_minutes <= duration <= self.rules.max_duration_minutes:
            return False
        if duration > slot.max_continuous_duration_minutes:
            return False

        end_minutes = slot.start_minutes + duration
        buffer = self.rules.buffer_minutes
        return not any(c.overlaps(slot.start_minutes, end_minutes, buffer) for c in slot.conflicts)

    def duration_options(self, slot: Slot) -> List[DurationOption]:
        """
        Duration picker entries for a slot.

        The fixed menu is filtered to what fits, and the exact max continuous
        duration is appended when it is not a menu value, so the full
        remaining gap can always be booked.
        """
        max_duration = slot.max_continuous_duration_minutes
        minimum = self.rules.min_duration_minutes

        options = [
            DurationOption(minutes=d, is_max=(d == max_duration))
            for d in sorted(set(self.rules.duration_menu))
            if minimum <= d <= max_duration and d <= self.rules.max_duration_minutes
        ]

        if max_duration > minimum and max_duration not in self.rules.duration_menu:
            options.append(DurationOption(minutes=max_duration, is_max=True))
            options.sort(key=lambda o: o.minutes)

        return options

    def _earliest_start(
        self,
        window: AdmissibleWindow,
        target_date: date_type,
        now: datetime,
    ) -> Optional[int]:
        """
        First start minute still offered, or None if the date has passed.

        A slot at exactly the current minute is still offered.
        """
        today = civil_date_of(now, self.timezone)
        if target_date < today:
            return None
        if target_date > today:
            return window.open_minutes

        local_now = pendulum.instance(now).in_timezone(self.timezone)
        return max(window.open_minutes, local_now.hour * 60 + local_now.minute)
