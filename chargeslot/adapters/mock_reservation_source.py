"""
Mock reservation source for running without the booking API.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pendulum import Date

from ..domain.exceptions import ReservationSourceError

logger = logging.getLogger(__name__)


class MockReservationSource:
    """
    Serves reservation records from a JSON file or an in-memory list.

    Each record may carry ``stationId``, ``portId`` and ``date``
    (``YYYY-MM-DD``) for filtering; records without a ``date`` are served
    for every date and left to normalization to place on the right day.
    """

    def __init__(
        self,
        records: Optional[Iterable[Dict[str, Any]]] = None,
        data_file: Optional[Path] = None,
    ):
        self.data_file = data_file
        self.records: List[Dict[str, Any]] = list(records or [])
        if data_file is not None:
            self.records.extend(self._load_records(data_file))
        self.calls: List[Dict[str, Any]] = []

    @staticmethod
    def _load_records(data_file: Path) -> List[Dict[str, Any]]:
        """Load mock reservations from a JSON file."""
        if not data_file.exists():
            logger.warning("Mock reservation file %s not found, serving no reservations", data_file)
            return []

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ReservationSourceError(f"Could not read mock reservations from {data_file}: {exc}") from exc

        if not isinstance(data, list):
            raise ReservationSourceError(f"Mock reservation file {data_file} must contain a JSON list")
        return data

    async def get_reservations(
        self,
        station_id: str,
        day: Date,
        port_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return the records matching station, port and date."""
        day_text = day.format("YYYY-MM-DD")
        self.calls.append({"station_id": station_id, "date": day_text, "port_id": port_id})

        matches: List[Dict[str, Any]] = []
        for record in self.records:
            if record.get("stationId", station_id) != station_id:
                continue
            if port_id and record.get("portId", port_id) != port_id:
                continue
            if record.get("date", day_text) != day_text:
                continue
            matches.append(dict(record))

        return matches

    def add(self, record: Dict[str, Any]) -> None:
        """Append a reservation record (simulates a newly committed booking)."""
        self.records.append(dict(record))
