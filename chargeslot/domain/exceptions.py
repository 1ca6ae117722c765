"""
Domain-specific exception hierarchy for the chargeslot application.
"""


class ChargeslotError(Exception):
    """Base class for all application-level errors."""


class MalformedTimeError(ChargeslotError, ValueError):
    """Raised when a time string cannot be parsed as HH:MM or as a timestamp."""


class MalformedReservationError(ChargeslotError, ValueError):
    """Raised when a reservation record does not describe a valid interval."""


class ReservationSourceError(ChargeslotError):
    """Raised when reservations cannot be fetched or parsed."""


class UnknownStationError(ChargeslotError, LookupError):
    """Raised when a station id is not configured."""


class UnknownPortError(ChargeslotError, LookupError):
    """Raised when a port id does not belong to the station."""
