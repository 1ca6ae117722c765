"""
Application services for computing port availability.

The service coordinates fetching reservations via a reservation source
adapter, owns the short-lived fetch cache, and delegates the actual
availability calculation to the domain-level ``AvailabilityEngine``. This
keeps the CLI thin and lets the reservation dependency be stubbed via a
simple protocol.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import date as date_type
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union

import pendulum
from pendulum import Date, DateTime

from ..config import AppConfig, StationConfig
from ..domain.availability_engine import AvailabilityEngine
from ..domain.exceptions import UnknownStationError
from ..domain.models import AdmissibleWindow, DurationOption, PortAvailability, Reservation
from ..domain.reservations import merge_following_day, normalize_reservations
from ..domain.time_utils import MINUTES_PER_DAY, as_date, parse_hhmm
from .cache import AvailabilityCache

logger = logging.getLogger(__name__)

RawReservation = Dict[str, Any]

# Start times may carry the "+1" marker the CLI prints for after-midnight slots.
_NEXT_DAY_MARKER = re.compile(r"\s*\(?\+1\)?$")


class ReservationSourceProtocol(Protocol):
    """Protocol describing the reservation query needed by the service."""

    async def get_reservations(
        self,
        station_id: str,
        day: Date,
        port_id: Optional[str] = None,
    ) -> List[RawReservation]:
        """Return raw reservation records of a port (or station) for a civil date."""


@dataclass
class BookingCheck:
    """Outcome of an advisory pre-commit check for a proposed booking."""
    start_minutes: int
    duration_minutes: int
    is_valid: bool
    reason: str = ""
    conflicts: List[Reservation] = field(default_factory=list)


class AvailabilityService:
    """
    Orchestrates reservation retrieval and availability calculation.

    Results are advisory: two users may still race for the same slot, and
    the reservation store must reject the loser at commit time.
    """

    def __init__(
        self,
        reservation_source: ReservationSourceProtocol,
        engine: AvailabilityEngine,
        stations: Sequence[StationConfig],
        cache: Optional[AvailabilityCache[List[RawReservation]]] = None,
        clock: Callable[[], DateTime] = pendulum.now,
        strict: bool = False,
    ) -> None:
        self._reservation_source = reservation_source
        self._engine = engine
        self._stations = {station.id.lower(): station for station in stations}
        self._cache = cache
        self._clock = clock
        self._strict = strict

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        reservation_source: ReservationSourceProtocol,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> "AvailabilityService":
        """Build the service, engine and cache from application config."""
        engine = AvailabilityEngine(rules=config.booking.to_rules(), timezone=config.timezone)
        cache: AvailabilityCache[List[RawReservation]] = AvailabilityCache(
            ttl_seconds=config.cache_ttl_seconds,
            clock=clock,
        )
        return cls(
            reservation_source=reservation_source,
            engine=engine,
            stations=config.stations,
            cache=cache,
            clock=clock,
        )

    @property
    def engine(self) -> AvailabilityEngine:
        return self._engine

    def get_station(self, station_id: str) -> StationConfig:
        station = self._stations.get(station_id.lower())
        if station is None:
            raise UnknownStationError(f"Unknown station: '{station_id}'")
        return station

    async def fetch_reservations(
        self,
        *,
        station_id: str,
        port_id: str,
        day: Union[date_type, str],
    ) -> Tuple[List[Reservation], int]:
        """
        Fetch and normalize reservations for one port and date.

        Returns:
            Tuple of (reservations, number of dropped malformed records)
        """
        target = as_date(day)
        cache_key = (station_id, port_id)

        records = self._cache.get(cache_key, target) if self._cache is not None else None
        if records is None:
            records = await self._reservation_source.get_reservations(
                station_id=station_id,
                day=target,
                port_id=port_id,
            )
            records = self._ensure_port_records(port_id, records)
            if self._cache is not None:
                self._cache.set(cache_key, target, records)
        else:
            logger.debug("Using cached reservations for %s/%s on %s", station_id, port_id, target)

        return normalize_reservations(
            records,
            zone=self._engine.timezone,
            target_date=target,
            strict=self._strict,
        )

    async def get_port_availability(
        self,
        *,
        station_id: str,
        port_id: str,
        day: Union[date_type, str],
        now: Optional[datetime] = None,
    ) -> PortAvailability:
        """Compute the slot view of one port for a civil date."""
        station = self.get_station(station_id)
        port = station.find_port(port_id)
        target = as_date(day)
        instant = now or self._clock()

        window = station.schedule().resolve(target)
        reservations, dropped = await self.fetch_reservations(
            station_id=station.id,
            port_id=port.id,
            day=target,
        )

        if window is not None and window.spans_midnight:
            following, following_dropped = await self.fetch_reservations(
                station_id=station.id,
                port_id=port.id,
                day=target.add(days=1),
            )
            reservations = merge_following_day(reservations, following)
            dropped += following_dropped

        slots = self._engine.compute_slots(
            window=window,
            reservations=reservations,
            target_date=target,
            now=instant,
        )

        return PortAvailability(
            station_id=station.id,
            port_id=port.id,
            date=target,
            window=window,
            slots=slots,
            reservations=reservations,
            generated_at=pendulum.instance(instant).in_timezone(self._engine.timezone),
            dropped_records=dropped,
            port_label=port.display_name(),
        )

    async def get_station_availability(
        self,
        *,
        station_id: str,
        day: Union[date_type, str],
        now: Optional[datetime] = None,
    ) -> List[PortAvailability]:
        """Compute availability for every operational port of a station."""
        station = self.get_station(station_id)
        instant = now or self._clock()

        results = await asyncio.gather(
            *(
                self.get_port_availability(
                    station_id=station.id,
                    port_id=port.id,
                    day=day,
                    now=instant,
                )
                for port in station.operational_ports()
            )
        )
        return list(results)

    async def get_duration_options(
        self,
        *,
        station_id: str,
        port_id: str,
        day: Union[date_type, str],
        start: Union[int, str],
        now: Optional[datetime] = None,
    ) -> List[DurationOption]:
        """Duration picker entries for a start time; empty if the start is not bookable."""
        availability = await self.get_port_availability(
            station_id=station_id,
            port_id=port_id,
            day=day,
            now=now,
        )
        slot = availability.find_slot(self._start_minutes(start, availability.window))
        if slot is None or not slot.is_available:
            return []
        return self._engine.duration_options(slot)

    async def check_booking(
        self,
        *,
        station_id: str,
        port_id: str,
        day: Union[date_type, str],
        start: Union[int, str],
        duration_minutes: int,
        now: Optional[datetime] = None,
    ) -> BookingCheck:
        """
        Advisory check of a proposed booking against current reservations.

        Besides the slot-level validation, the full proposed interval is
        checked against every reservation of the day.
        """
        availability = await self.get_port_availability(
            station_id=station_id,
            port_id=port_id,
            day=day,
            now=now,
        )
        start_minutes = self._start_minutes(start, availability.window)

        slot = availability.find_slot(start_minutes)
        if slot is None:
            return BookingCheck(start_minutes, duration_minutes, False, "start time is not offered")

        conflicts = self._engine.find_conflicts(
            start_minutes,
            start_minutes + duration_minutes,
            availability.reservations,
        )
        if conflicts:
            return BookingCheck(start_minutes, duration_minutes, False, "overlaps existing reservations", conflicts)

        if not self._engine.validate_duration(duration_minutes, slot):
            return BookingCheck(start_minutes, duration_minutes, False, "duration is not bookable from this slot")

        return BookingCheck(start_minutes, duration_minutes, True)

    def record_reservation_created(
        self,
        *,
        station_id: str,
        port_id: str,
        day: Union[date_type, str],
    ) -> None:
        """Invalidate cached reservations after a booking was committed."""
        if self._cache is not None:
            station = self.get_station(station_id)
            self._cache.invalidate((station.id, port_id), as_date(day))

    @staticmethod
    def _start_minutes(start: Union[int, str], window: Optional[AdmissibleWindow]) -> int:
        """
        Slot start minute for a requested start.

        Integers are taken as slot minutes. ``HH:MM`` strings are placed on
        the window, so ``01:00`` in a 22:00-06:00 window means 1500; an
        explicit ``+1`` suffix always selects the next day.
        """
        if isinstance(start, int):
            return start

        text, marked = _NEXT_DAY_MARKER.subn("", start.strip())
        minutes = parse_hhmm(text)
        if marked:
            return minutes + MINUTES_PER_DAY
        if window is not None:
            return window.place_time_of_day(minutes)
        return minutes

    @staticmethod
    def _ensure_port_records(port_id: str, records: List[RawReservation]) -> List[RawReservation]:
        """
        Keep only records that belong to the requested port.

        Station-level responses may include other ports; records without a
        port id are assumed to belong to the queried port.
        """
        normalized: List[RawReservation] = []
        for record in records:
            record_port = record.get("portId") or record.get("port_id")
            if record_port is None or str(record_port) == str(port_id):
                normalized.append(record)
        return normalized
