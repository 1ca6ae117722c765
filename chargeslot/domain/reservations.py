"""
Normalization of raw reservation records into domain Reservations.
"""

import logging
from dataclasses import replace
from datetime import date as date_type
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from .exceptions import MalformedReservationError, MalformedTimeError
from .models import Reservation
from .time_utils import MINUTES_PER_DAY, is_absolute, parse_hhmm, to_civil_datetime, to_civil_minutes

logger = logging.getLogger(__name__)

# Only these statuses occupy a port; cancelled or completed bookings are ignored.
ACTIVE_STATUSES = frozenset({"confirmed", "active"})

_START_KEYS = ("startTime", "start_time", "start")
_END_KEYS = ("endTime", "end_time", "end")


def _first(record: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _boundary_minutes(value: Any, zone, target_date: Optional[date_type], is_start: bool) -> Optional[int]:
    """
    Minutes of one reservation boundary relative to the target date.

    Absolute timestamps on the following civil day map to ``1440 + minute``
    so they stay visible to windows that span midnight. Boundaries further
    out are clipped to the day edges (0 or 2880). Returns None when the
    boundary puts the whole reservation outside that range.
    """
    if target_date is None or not is_absolute(value):
        return to_civil_minutes(value, zone)

    local = to_civil_datetime(value, zone)
    day_offset = local.date().toordinal() - target_date.toordinal()
    if day_offset < 0:
        return 0 if is_start else None
    if day_offset > 1:
        return None if is_start else 2 * MINUTES_PER_DAY
    return day_offset * MINUTES_PER_DAY + local.hour * 60 + local.minute


def reservation_from_record(
    record: Mapping[str, Any],
    zone,
    target_date: Optional[date_type] = None,
) -> Optional[Reservation]:
    """
    Convert one raw record into a Reservation.

    Args:
        record: Mapping with ``startTime``/``endTime`` (bare ``HH:MM`` or
            absolute timestamps) and optional ``bookingId``, ``portId``,
            ``status``
        zone: Civil timezone of the station
        target_date: Civil date the reservations were queried for

    Returns:
        The reservation, or None if it does not occupy the port on the
        target date (inactive status or another day)

    Raises:
        MalformedReservationError: If the record is missing times or its
            normalized end is not after its start
        MalformedTimeError: If a time cannot be parsed
    """
    status = str(record.get("status") or "confirmed").lower()
    if status not in ACTIVE_STATUSES:
        return None

    raw_start = _first(record, _START_KEYS)
    raw_end = _first(record, _END_KEYS)
    if raw_start is None or raw_end is None:
        raise MalformedReservationError(f"Reservation record lacks start or end time: {dict(record)!r}")

    start = _boundary_minutes(raw_start, zone, target_date, is_start=True)
    end = _boundary_minutes(raw_end, zone, target_date, is_start=False)
    if start is None or end is None:
        return None

    booking_id = record.get("bookingId") or record.get("booking_id") or record.get("_id")
    port_id = record.get("portId") or record.get("port_id")

    return Reservation(
        start_minutes=start,
        end_minutes=end,
        booking_id=str(booking_id) if booking_id is not None else None,
        port_id=str(port_id) if port_id is not None else None,
        status=status,
    )


def normalize_reservations(
    records: Iterable[Mapping[str, Any]],
    zone,
    target_date: Optional[date_type] = None,
    strict: bool = False,
) -> Tuple[List[Reservation], int]:
    """
    Normalize a batch of raw records.

    Malformed records are dropped and logged so one bad entry does not
    block a whole day of slots. With ``strict=True`` the first malformed
    record raises instead.

    Returns:
        Tuple of (reservations sorted by start, number of dropped records)
    """
    reservations: List[Reservation] = []
    dropped = 0

    for record in records:
        try:
            reservation = reservation_from_record(record, zone, target_date)
        except (MalformedTimeError, MalformedReservationError) as exc:
            if strict:
                raise
            logger.warning("Dropping malformed reservation record: %s", exc)
            dropped += 1
            continue

        if reservation is not None:
            reservations.append(reservation)

    reservations.sort(key=lambda r: (r.start_minutes, r.end_minutes))
    return reservations, dropped


def merge_following_day(
    reservations: Iterable[Reservation],
    following: Iterable[Reservation],
) -> List[Reservation]:
    """
    Add the following civil day's reservations, shifted past midnight.

    Used for windows that span midnight. A booking that appears in both
    days' results (same booking id) is kept once, from the first day.
    """
    merged = list(reservations)
    known = {r.booking_id for r in merged if r.booking_id is not None}

    for reservation in following:
        if reservation.booking_id is not None and reservation.booking_id in known:
            continue
        merged.append(
            replace(
                reservation,
                start_minutes=reservation.start_minutes + MINUTES_PER_DAY,
                end_minutes=reservation.end_minutes + MINUTES_PER_DAY,
            )
        )

    merged.sort(key=lambda r: (r.start_minutes, r.end_minutes))
    return merged


def parse_reservation_times(start: str, end: str, **fields: Any) -> Reservation:
    """Build a Reservation from bare ``HH:MM`` boundaries."""
    return Reservation(start_minutes=parse_hhmm(start), end_minutes=parse_hhmm(end), **fields)
