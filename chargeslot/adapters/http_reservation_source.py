"""
REST client for fetching existing reservations of a charging station.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests
from pendulum import Date

from ..domain.exceptions import ReservationSourceError

logger = logging.getLogger(__name__)


class HttpReservationSource:
    """
    Client for the booking API's real-time availability endpoint.

    Uses ``GET /bookings/realtime-availability/{stationId}`` and reads the
    per-port ``conflicts`` lists, which hold every confirmed or active
    booking of the day.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the API client.

        Args:
            base_url: API root, e.g. ``https://example.com/api``
            token: Optional bearer token
            timeout_seconds: Request timeout
            session: Optional requests session (for connection reuse)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.headers = {"Accept": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    async def get_reservations(
        self,
        station_id: str,
        day: Date,
        port_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch raw reservation records without blocking the event loop."""
        return await asyncio.to_thread(self.fetch_reservations, station_id, day, port_id)

    def fetch_reservations(
        self,
        station_id: str,
        day: Date,
        port_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch raw reservation records for a station (optionally one port).

        Raises:
            ReservationSourceError: If the API call fails or the payload is malformed
        """
        url = f"{self.base_url}/bookings/realtime-availability/{station_id}"
        params = {"date": day.format("YYYY-MM-DD"), "includeConflicts": "true"}
        if port_id:
            params["portId"] = port_id

        try:
            response = self.session.get(
                url,
                headers=self.headers,
                params=params,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise ReservationSourceError(f"Failed to fetch reservations for station {station_id}: {e}") from e
        except ValueError as e:
            raise ReservationSourceError(f"Reservation API returned invalid JSON: {e}") from e

        return self._parse_response(data)

    def _parse_response(self, response_data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Parse the availability response into raw reservation records.

        Response format:
        {
            "success": true,
            "data": {
                "ports": [
                    {
                        "portId": "...",
                        "conflicts": [
                            {"bookingId": "...", "startTime": "09:00", "endTime": "10:00"}
                        ]
                    }
                ]
            }
        }
        """
        if not isinstance(response_data, dict) or not response_data.get("success", False):
            message = response_data.get("message") if isinstance(response_data, dict) else None
            raise ReservationSourceError(f"Reservation API reported failure: {message or 'unknown error'}")

        records: List[Dict[str, Any]] = []
        seen: set = set()

        for port in (response_data.get("data") or {}).get("ports") or []:
            if not isinstance(port, dict):
                logger.warning("Skipping non-object port entry: %r", port)
                continue
            port_id = port.get("portId")
            for conflict in port.get("conflicts") or []:
                if not isinstance(conflict, dict):
                    logger.warning("Skipping non-object reservation entry: %r", conflict)
                    continue

                key = conflict.get("bookingId")
                if key is not None and key in seen:
                    continue
                if key is not None:
                    seen.add(key)

                record = dict(conflict)
                record.setdefault("portId", port_id)
                records.append(record)

        return records
