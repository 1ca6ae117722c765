"""
Adapters layer - External integrations (booking REST API, mock data).
"""

from .http_reservation_source import HttpReservationSource
from .mock_reservation_source import MockReservationSource

__all__ = ["HttpReservationSource", "MockReservationSource"]
