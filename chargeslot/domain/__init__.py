"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability_engine import AvailabilityEngine
from .models import (
    ALWAYS_OPEN,
    AdmissibleWindow,
    BookingRules,
    DayHours,
    DurationOption,
    PortAvailability,
    Reservation,
    Slot,
)
from .operating_hours import OperatingSchedule

__all__ = [
    "ALWAYS_OPEN",
    "AdmissibleWindow",
    "AvailabilityEngine",
    "BookingRules",
    "DayHours",
    "DurationOption",
    "OperatingSchedule",
    "PortAvailability",
    "Reservation",
    "Slot",
]
