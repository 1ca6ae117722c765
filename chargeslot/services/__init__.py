"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_service import AvailabilityService, BookingCheck, ReservationSourceProtocol
from .cache import AvailabilityCache

__all__ = ["AvailabilityCache", "AvailabilityService", "BookingCheck", "ReservationSourceProtocol"]
