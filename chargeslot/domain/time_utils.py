"""
Time normalization helpers.

Everything the engine computes is expressed in minutes since midnight of the
station's civil time zone. These helpers turn the representations seen in
reservation data (bare ``HH:MM`` strings and absolute timestamps in arbitrary
source zones) into that form. None of them read the system clock.
"""

from __future__ import annotations

import re
from datetime import date as date_type
from datetime import datetime
from typing import Union

import pendulum
from pendulum import Date, DateTime

from .exceptions import MalformedTimeError

MINUTES_PER_DAY = 24 * 60

DEFAULT_TIMEZONE = "+05:45"

_HHMM_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_OFFSET_PATTERN = re.compile(r"^(?:UTC)?([+-])(\d{1,2}):?(\d{2})$")

TimeValue = Union[str, datetime]


def resolve_timezone(spec: str | pendulum.Timezone | pendulum.FixedTimezone):
    """
    Resolve a timezone name or UTC offset to a pendulum timezone.

    Accepts an IANA name (``Asia/Kathmandu``) or a fixed UTC offset
    (``+05:45``, ``-0300``, ``UTC+05:45``).

    Raises:
        ValueError: If the timezone is not understood
    """
    if isinstance(spec, (pendulum.Timezone, pendulum.FixedTimezone)):
        return spec

    text = str(spec).strip()
    match = _OFFSET_PATTERN.match(text)
    if match:
        sign, hours, minutes = match.groups()
        if int(hours) > 14 or int(minutes) > 59:
            raise ValueError(f"Invalid UTC offset: {spec!r}")
        offset = (int(hours) * 3600 + int(minutes) * 60) * (-1 if sign == "-" else 1)
        return pendulum.fixed_timezone(offset)

    try:
        return pendulum.timezone(text)
    except (ValueError, KeyError) as exc:
        raise ValueError(f"Unknown timezone: {spec!r}") from exc


def parse_hhmm(value: str) -> int:
    """Parse a bare ``HH:MM`` (or ``HH:MM:SS``) string into minutes since midnight."""
    match = _HHMM_PATTERN.match(value.strip())
    if not match:
        raise MalformedTimeError(f"Not a HH:MM time: {value!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise MalformedTimeError(f"Time out of range: {value!r}")

    return hours * 60 + minutes


def is_absolute(value: TimeValue) -> bool:
    """Return True when the value carries a date, not just a time of day."""
    if isinstance(value, datetime):
        return True
    return "T" in value or " " in value.strip()


def to_civil_datetime(value: TimeValue, zone) -> DateTime:
    """
    Convert an absolute timestamp to a DateTime in the civil zone.

    Naive timestamps are interpreted as UTC, which is how the reservation
    API serializes them.
    """
    tz = resolve_timezone(zone)

    if isinstance(value, datetime):
        return pendulum.instance(value).in_timezone(tz)

    try:
        parsed = pendulum.parse(value.strip())
    except (ValueError, TypeError) as exc:
        raise MalformedTimeError(f"Could not parse timestamp: {value!r}") from exc

    if not isinstance(parsed, DateTime):
        raise MalformedTimeError(f"Could not parse timestamp: {value!r}")

    return parsed.in_timezone(tz)


def to_civil_minutes(value: TimeValue, zone) -> int:
    """
    Convert a time value into minutes since civil midnight (0..1439).

    Args:
        value: Bare ``HH:MM`` string, ISO-like timestamp string or datetime
        zone: Civil timezone (name, offset or pendulum timezone)

    Raises:
        MalformedTimeError: If the value cannot be parsed as either form
    """
    if not isinstance(value, (str, datetime)):
        raise MalformedTimeError(f"Unsupported time value: {value!r}")

    if is_absolute(value):
        local = to_civil_datetime(value, zone)
        return local.hour * 60 + local.minute

    return parse_hhmm(value)


def minutes_to_hhmm(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``, wrapping past midnight."""
    wrapped = minutes % MINUTES_PER_DAY
    return f"{wrapped // 60:02d}:{wrapped % 60:02d}"


def civil_date_of(instant: datetime, zone) -> Date:
    """Return the civil date of an instant in the given zone."""
    return pendulum.instance(instant).in_timezone(resolve_timezone(zone)).date()


def as_date(value: date_type | str) -> Date:
    """Coerce a ``date`` or ``YYYY-MM-DD`` string into a pendulum Date."""
    if isinstance(value, datetime):
        return pendulum.instance(value).date()
    if isinstance(value, date_type):
        return pendulum.date(value.year, value.month, value.day)

    try:
        return pendulum.from_format(value.strip(), "YYYY-MM-DD").date()
    except (ValueError, TypeError) as exc:
        raise MalformedTimeError(f"Not a YYYY-MM-DD date: {value!r}") from exc
