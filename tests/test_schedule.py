# tests/test_schedule.py
"""
Test schedule calculations.

Verifies cross-timezone arrivals, fail-soft parsing, occurrence jitter and
day advancement.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from simulation.network import Office
from simulation.schedule import (
    advance_to_after,
    arrival_time,
    estimate_pud_time,
    local_delay_hours,
    normalize_gmt_offset,
    parse_clock,
    parse_gmt_offset,
    random_gps_location,
    random_occurrence_time,
    scheduled_time_of_day,
)

MOUNTAIN = timezone(timedelta(hours=-7))


def _office(iata: str, gmt_offset: str, latitude: float, longitude: float) -> Office:
    return Office(
        iata=iata, carrier="TST", hub=False, description=f"{iata}, XX", state="XX",
        gmt_offset=gmt_offset, latitude=latitude, longitude=longitude,
    )


DEN = _office("DEN", "-07:00", 39.7392, -104.9903)
JFK = _office("JFK", "-05:00", 40.7128, -74.0060)


class TestArrivalTime:
    """Tests for scheduled arrival computation."""

    def test_cross_timezone_arrival(self):
        """16:00 Denver to New York arrives 22:07 local."""
        assert arrival_time("16:00", DEN, JFK) == "22:07"

    def test_arrival_wraps_past_midnight(self):
        """Late departures land on the next local day."""
        assert arrival_time("23:00", JFK, DEN) == "01:07"

    def test_same_office_adds_no_flight_time(self):
        assert arrival_time("08:00", DEN, DEN) == "08:00"


class TestParsing:
    """Offsets and clock times fail soft."""

    def test_offset_gets_explicit_sign(self):
        assert normalize_gmt_offset("05:30") == "+05:30"
        assert normalize_gmt_offset("-07:00") == "-07:00"

    def test_valid_offset(self):
        assert parse_gmt_offset("+05:30").utcoffset(None) == timedelta(hours=5, minutes=30)
        assert parse_gmt_offset("-07:00").utcoffset(None) == timedelta(hours=-7)

    def test_malformed_offset_is_utc(self):
        assert parse_gmt_offset("Mountain") == timezone.utc
        assert parse_gmt_offset("") == timezone.utc
        assert parse_gmt_offset("+25:00") == timezone.utc

    def test_clock_parsing(self):
        assert parse_clock("08:05") == (8, 5)
        assert parse_clock("24:00") is None
        assert parse_clock("noon") is None

    def test_unparseable_schedule_uses_now(self):
        now = datetime(2024, 3, 12, 18, 0, tzinfo=timezone.utc)
        assert scheduled_time_of_day("noon", "-07:00", now=now) == now


class TestScheduledTimes:
    """Tests for dated occurrences of local schedules."""

    def test_today_in_office_offset(self):
        now = datetime(2024, 3, 12, 18, 0, tzinfo=timezone.utc)
        scheduled = scheduled_time_of_day("08:00", "-07:00", now=now)
        assert scheduled == datetime(2024, 3, 12, 8, 0, tzinfo=MOUNTAIN)

    def test_today_is_local_date(self):
        """At 02:00 UTC it is still the previous day in Denver."""
        now = datetime(2024, 3, 13, 2, 0, tzinfo=timezone.utc)
        scheduled = scheduled_time_of_day("16:00", "-07:00", now=now)
        assert scheduled == datetime(2024, 3, 12, 16, 0, tzinfo=MOUNTAIN)

    def test_day_offset(self):
        now = datetime(2024, 3, 12, 18, 0, tzinfo=timezone.utc)
        scheduled = scheduled_time_of_day("08:00", "-07:00", day_offset=2, now=now)
        assert scheduled == datetime(2024, 3, 14, 8, 0, tzinfo=MOUNTAIN)

    def test_occurrence_jitter_stays_within_span(self):
        now = datetime(2024, 3, 12, 18, 0, tzinfo=timezone.utc)
        nominal = datetime(2024, 3, 12, 16, 0, tzinfo=MOUNTAIN)
        rng = random.Random(7)
        for _ in range(200):
            occurred = random_occurrence_time("16:00", "-07:00", 5, rng, now=now)
            assert abs(occurred - nominal) <= timedelta(minutes=5)
            assert occurred.microsecond == 0


class TestAdvanceToAfter:
    """Tests for moving estimates past a reference time."""

    def test_unchanged_when_already_after(self):
        estimated = datetime(2024, 3, 12, 10, 0, tzinfo=timezone.utc)
        after = datetime(2024, 3, 12, 9, 0, tzinfo=timezone.utc)
        assert advance_to_after(estimated, after) == estimated

    def test_equal_time_moves_one_day(self):
        estimated = datetime(2024, 3, 12, 10, 0, tzinfo=timezone.utc)
        assert advance_to_after(estimated, estimated) == estimated + timedelta(days=1)

    def test_keeps_time_of_day(self):
        estimated = datetime(2024, 3, 10, 8, 30, tzinfo=MOUNTAIN)
        after = datetime(2024, 3, 12, 9, 0, tzinfo=MOUNTAIN)
        assert advance_to_after(estimated, after) == datetime(2024, 3, 13, 8, 30, tzinfo=MOUNTAIN)

    def test_across_year_boundary(self):
        estimated = datetime(2023, 12, 31, 10, 0, tzinfo=timezone.utc)
        after = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)
        assert advance_to_after(estimated, after) == datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc)

    def test_date_difference_is_enough(self):
        estimated = datetime(2023, 12, 30, 10, 0, tzinfo=timezone.utc)
        after = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        assert advance_to_after(estimated, after) == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


class TestLocalDelivery:
    """Tests for local pickup and delivery estimates."""

    def test_local_delay_hours(self):
        assert local_delay_hours(39.9392, -104.9903, DEN) == pytest.approx(3.5)

    def test_estimate_rolls_to_tomorrow_after_round_start(self):
        now = datetime(2024, 3, 12, 18, 0, tzinfo=timezone.utc)  # 11:00 in Denver
        estimate = estimate_pud_time("-07:00", 1.5, now=now)
        assert estimate == datetime(2024, 3, 13, 9, 30, tzinfo=MOUNTAIN)

    def test_estimate_today_before_round_start(self):
        now = datetime(2024, 3, 12, 12, 0, tzinfo=timezone.utc)  # 05:00 in Denver
        estimate = estimate_pud_time("-07:00", 0.0, now=now)
        assert estimate == datetime(2024, 3, 12, 8, 0, tzinfo=MOUNTAIN)

    def test_random_gps_near_office(self):
        rng = random.Random(3)
        for _ in range(50):
            latitude, longitude = random_gps_location(DEN, rng)
            assert abs(latitude - DEN.latitude) <= 0.2 + 1e-4
            assert abs(longitude - DEN.longitude) <= 0.2 + 1e-4
