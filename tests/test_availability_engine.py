"""
Tests for the availability engine.
"""

import pendulum
import pytest

from chargeslot.domain.availability_engine import AvailabilityEngine
from chargeslot.domain.models import AdmissibleWindow, BookingRules, DayHours, Reservation, Slot
from chargeslot.domain.reservations import parse_reservation_times

ZONE = "+05:45"
MONDAY = pendulum.date(2024, 11, 25)
FULL_DAY = AdmissibleWindow(0, 1440, is_24_hours=True)
DAYTIME = AdmissibleWindow(360, 1320)

# Odd minutes on purpose: availability must not rely on reservations
# aligning with the slot grid.
IRREGULAR_RESERVATIONS = [
    parse_reservation_times("00:00", "01:20"),
    parse_reservation_times("06:02", "06:47"),
    parse_reservation_times("09:00", "10:00"),
    parse_reservation_times("10:13", "10:14"),
    parse_reservation_times("13:33", "16:01"),
    parse_reservation_times("21:58", "23:59"),
]


def _civil(hour: int, minute: int = 0, day: int = 25):
    return pendulum.datetime(2024, 11, day, hour, minute, tz=pendulum.fixed_timezone(20700))


def _slots_by_start(slots):
    return {slot.start_minutes: slot for slot in slots}


@pytest.fixture
def engine():
    return AvailabilityEngine(timezone=ZONE)


@pytest.fixture
def yesterday():
    """A 'now' on the previous civil day, so no slot of MONDAY has passed."""
    return _civil(12, 0, day=24)


class TestSlotGeneration:
    """Tests for slot enumeration and conflict detection."""

    def test_no_reservations_baseline(self, engine, yesterday):
        """Every slot is available and bounded only by the cap and window end."""
        slots = engine.compute_slots(window=DAYTIME, reservations=[], target_date=MONDAY, now=yesterday)

        assert len(slots) == (1320 - 360) // 5
        assert slots[0].start_minutes == 360
        assert slots[-1].start_minutes == 1315
        for slot in slots:
            assert slot.is_available
            assert slot.conflicts == ()
            assert slot.max_continuous_duration_minutes == min(480, 1320 - slot.start_minutes)

    def test_window_end_is_exclusive(self, engine, yesterday):
        slots = engine.compute_slots(window=DAYTIME, reservations=[], target_date=MONDAY, now=yesterday)

        assert 1320 not in _slots_by_start(slots)

    def test_buffered_boundary(self, engine, yesterday):
        """10:00-11:00 with a 5 minute buffer blocks starts 09:55 through 11:00."""
        reservations = [
            parse_reservation_times("10:00", "11:00"),
            parse_reservation_times("13:20", "14:00"),
        ]

        slots = _slots_by_start(
            engine.compute_slots(window=FULL_DAY, reservations=reservations, target_date=MONDAY, now=yesterday)
        )

        for start in range(595, 665, 5):
            assert not slots[start].is_available, start
            assert slots[start].conflicts == (reservations[0],)
        assert slots[590].is_available
        assert slots[590].max_continuous_duration_minutes == 5
        assert slots[665].is_available
        assert slots[665].max_continuous_duration_minutes == 795 - 665

    def test_concrete_scenario_from_midnight(self, engine):
        """09:00-10:00 booked, today, now 00:00, full-day window."""
        reservations = [parse_reservation_times("09:00", "10:00")]

        slots = _slots_by_start(
            engine.compute_slots(
                window=FULL_DAY,
                reservations=reservations,
                target_date=MONDAY,
                now=_civil(0, 0),
            )
        )

        assert slots[0].is_available
        assert slots[480].max_continuous_duration_minutes == 55
        assert slots[530].is_available
        assert all(not slots[start].is_available for start in range(535, 605, 5))
        assert slots[605].is_available
        assert slots[610].max_continuous_duration_minutes == 480

    def test_reservation_starting_before_window_still_conflicts(self, engine, yesterday):
        reservations = [parse_reservation_times("05:00", "06:30")]

        slots = _slots_by_start(
            engine.compute_slots(window=DAYTIME, reservations=reservations, target_date=MONDAY, now=yesterday)
        )

        assert not slots[360].is_available
        assert not slots[390].is_available
        assert slots[395].is_available

    def test_midnight_spanning_window(self, engine, yesterday):
        """22:00-06:00 yields slots from 22:00 through 05:55 the next day."""
        window = AdmissibleWindow.from_day_hours(DayHours(open="22:00", close="06:00"))

        slots = engine.compute_slots(window=window, reservations=[], target_date=MONDAY, now=yesterday)

        assert slots[0].start_minutes == 1320
        assert slots[-1].start_minutes == 1795
        assert slots[-1].label == "05:55"
        assert slots[-1].is_next_day
        assert slots[-1].max_continuous_duration_minutes == 5
        assert slots[0].max_continuous_duration_minutes == 480

    def test_closed_day_has_no_slots(self, engine, yesterday):
        assert engine.compute_slots(window=None, reservations=[], target_date=MONDAY, now=yesterday) == []


class TestPastSlots:
    """Tests for hiding slots that already passed today."""

    def test_past_slots_are_skipped_today(self, engine):
        slots = engine.compute_slots(window=FULL_DAY, reservations=[], target_date=MONDAY, now=_civil(10, 7))

        assert slots[0].start_minutes == 610

    def test_current_minute_is_still_offered(self, engine):
        slots = engine.compute_slots(window=FULL_DAY, reservations=[], target_date=MONDAY, now=_civil(10, 10))

        assert slots[0].start_minutes == 610

    def test_now_in_other_zone_is_converted(self, engine):
        """04:25 UTC is 10:10 civil time."""
        now = pendulum.datetime(2024, 11, 25, 4, 25, tz="UTC")

        slots = engine.compute_slots(window=FULL_DAY, reservations=[], target_date=MONDAY, now=now)

        assert slots[0].start_minutes == 610

    def test_opening_later_than_now(self, engine):
        slots = engine.compute_slots(window=DAYTIME, reservations=[], target_date=MONDAY, now=_civil(2, 0))

        assert slots[0].start_minutes == 360

    def test_past_date_has_no_slots(self, engine):
        now = _civil(9, 0, day=26)

        assert engine.compute_slots(window=FULL_DAY, reservations=[], target_date=MONDAY, now=now) == []


class TestMaxContinuousDuration:
    """Tests for max continuous duration and its agreement with availability."""

    @pytest.mark.parametrize("buffer", [0, 5, 10, 15])
    def test_unavailable_iff_zero_duration(self, yesterday, buffer):
        engine = AvailabilityEngine(rules=BookingRules(buffer_minutes=buffer), timezone=ZONE)

        slots = engine.compute_slots(
            window=FULL_DAY,
            reservations=IRREGULAR_RESERVATIONS,
            target_date=MONDAY,
            now=yesterday,
        )

        for slot in slots:
            assert slot.is_available == (slot.max_continuous_duration_minutes > 0), slot

    def test_larger_buffer_never_grows_duration(self, yesterday):
        previous = None
        for buffer in (0, 5, 10, 15, 30):
            engine = AvailabilityEngine(rules=BookingRules(buffer_minutes=buffer), timezone=ZONE)
            slots = _slots_by_start(
                engine.compute_slots(
                    window=FULL_DAY,
                    reservations=IRREGULAR_RESERVATIONS,
                    target_date=MONDAY,
                    now=yesterday,
                )
            )
            if previous is not None:
                for start, slot in slots.items():
                    assert slot.max_continuous_duration_minutes <= previous[start].max_continuous_duration_minutes
            previous = slots

    def test_reservation_that_started_earlier_blocks_start(self, engine):
        """
        A booking running 09:00-12:00 makes 10:00 unbookable.

        Looking only at reservations starting after 10:00 would report the
        full 8 hours here; the slot must report 0 to match its availability.
        """
        reservations = [parse_reservation_times("09:00", "12:00")]

        slot = engine.evaluate_slot(600, reservations, FULL_DAY)

        assert not slot.is_available
        assert slot.max_continuous_duration_minutes == 0
        assert engine.max_continuous_duration(600, reservations, FULL_DAY) == 0

    def test_off_grid_reservation_inside_slot(self, engine):
        """A buffered start landing inside the slot blocks the slot entirely."""
        reservations = [parse_reservation_times("10:02", "10:30")]

        slot = engine.evaluate_slot(595, reservations, FULL_DAY)

        assert not slot.is_available
        assert slot.max_continuous_duration_minutes == 0

    def test_duration_capped_at_eight_hours(self, engine):
        assert engine.max_continuous_duration(0, [], FULL_DAY) == 480

    def test_duration_capped_at_window_end(self, engine):
        assert engine.max_continuous_duration(1200, [], FULL_DAY) == 240

    def test_compute_is_idempotent(self, engine, yesterday):
        kwargs = dict(window=FULL_DAY, reservations=IRREGULAR_RESERVATIONS, target_date=MONDAY, now=yesterday)

        assert engine.compute_slots(**kwargs) == engine.compute_slots(**kwargs)


class TestDurations:
    """Tests for duration validation and the duration menu."""

    def test_menu_adds_exact_max(self, engine):
        slot = Slot(start_minutes=600, is_available=True, max_continuous_duration_minutes=50)

        options = engine.duration_options(slot)

        assert [o.minutes for o in options] == [30, 50]
        assert options[-1].is_max

    def test_menu_for_full_cap(self, engine):
        slot = Slot(start_minutes=0, is_available=True, max_continuous_duration_minutes=480)

        options = engine.duration_options(slot)

        assert [o.minutes for o in options] == [30, 60, 90, 120, 180, 240, 300, 360, 480]
        assert [o.minutes for o in options if o.is_max] == [480]

    def test_menu_with_max_between_entries(self, engine):
        slot = Slot(start_minutes=0, is_available=True, max_continuous_duration_minutes=95)

        assert [o.minutes for o in engine.duration_options(slot)] == [30, 60, 90, 95]

    def test_menu_below_minimum_is_empty(self, engine):
        slot = Slot(start_minutes=0, is_available=True, max_continuous_duration_minutes=25)

        assert engine.duration_options(slot) == []

    def test_menu_at_minimum_has_no_duplicate(self, engine):
        slot = Slot(start_minutes=0, is_available=True, max_continuous_duration_minutes=30)

        assert [o.minutes for o in engine.duration_options(slot)] == [30]

    def test_every_menu_entry_validates(self, engine, yesterday):
        slots = engine.compute_slots(
            window=FULL_DAY,
            reservations=IRREGULAR_RESERVATIONS,
            target_date=MONDAY,
            now=yesterday,
        )

        for slot in slots:
            for option in engine.duration_options(slot):
                assert engine.validate_duration(option.minutes, slot), (slot, option)

    def test_validate_duration_bounds(self, engine):
        reservations = [parse_reservation_times("10:00", "11:00")]
        slot = engine.evaluate_slot(480, reservations, FULL_DAY)

        assert slot.max_continuous_duration_minutes == 115
        assert engine.validate_duration(90, slot)
        assert engine.validate_duration(115, slot)
        assert not engine.validate_duration(120, slot)
        assert not engine.validate_duration(20, slot)
        assert not engine.validate_duration(500, slot)
        assert not engine.validate_duration(0, slot)

    def test_validate_duration_checks_conflicts_independently(self, engine):
        """Even with an inconsistent max, listed conflicts still reject a duration."""
        conflict = Reservation(start_minutes=600, end_minutes=660)
        slot = Slot(
            start_minutes=560,
            is_available=True,
            max_continuous_duration_minutes=480,
            conflicts=(conflict,),
        )

        assert engine.validate_duration(30, slot)
        assert not engine.validate_duration(60, slot)

    def test_available_durations(self, engine):
        reservations = [parse_reservation_times("10:00", "11:00")]

        assert engine.available_durations(480, reservations, FULL_DAY) == [30, 60, 90]
        assert engine.available_durations(1200, [], FULL_DAY) == [30, 60, 90, 120, 180, 240]

    def test_find_conflicts(self, engine):
        first = parse_reservation_times("09:00", "10:00")
        second = parse_reservation_times("12:00", "13:00")

        assert engine.find_conflicts(600, 700, [first, second]) == [first]
        assert engine.find_conflicts(610, 715, [first, second]) == []
        assert engine.find_conflicts(500, 800, [first, second]) == [first, second]
