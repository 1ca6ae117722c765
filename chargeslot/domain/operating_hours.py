"""
Resolution of a station's weekly operating hours into an admissible window.
"""

import logging
from datetime import date as date_type
from typing import Dict, Mapping, Optional

from .models import ALWAYS_OPEN, AdmissibleWindow, DayHours

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def weekday_name(day: date_type) -> str:
    """Return the lowercase English weekday name of a date."""
    return WEEKDAY_NAMES[day.weekday()]


class OperatingSchedule:
    """
    Weekly operating-hours table for a station.

    A weekday missing from the table falls back to ``fallback``, which is
    24-hour operation unless overridden. Incomplete configuration then keeps
    the station bookable instead of hiding every slot. Pass ``fallback=None``
    to treat missing days as closed.
    """

    def __init__(
        self,
        days: Optional[Mapping[str, DayHours]] = None,
        fallback: Optional[DayHours] = ALWAYS_OPEN,
    ):
        self.days: Dict[str, DayHours] = {}
        for name, hours in (days or {}).items():
            key = name.lower()
            if key not in WEEKDAY_NAMES:
                raise ValueError(f"Unknown weekday: {name!r}")
            self.days[key] = hours
        self.fallback = fallback

    def hours_for(self, day: date_type) -> Optional[DayHours]:
        """Return the configured (or fallback) hours for a date."""
        name = weekday_name(day)
        hours = self.days.get(name)
        if hours is None:
            logger.debug("No operating hours for %s, using fallback %s", name, self.fallback)
            return self.fallback
        return hours

    def resolve(self, day: date_type) -> Optional[AdmissibleWindow]:
        """
        Resolve the admissible window for a civil date.

        Returns:
            The window ``[open, close_extended)`` or None when the station is
            closed that day
        """
        hours = self.hours_for(day)
        if hours is None:
            return None
        return AdmissibleWindow.from_day_hours(hours)
