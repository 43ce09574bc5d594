"""Tests for wall-clock / instant conversion."""

from datetime import date, datetime, timedelta, timezone

import pytest

from booking_engine.errors import InvalidTimeInput
from booking_engine.scheduling.timezones import (
    day_of_week,
    ensure_instant,
    exists_in_zone,
    is_ambiguous,
    local_day_start,
    minute_of_day,
    offset_change_within,
    resolve_zone,
    to_instant,
    to_wall_clock,
)

NY = "America/New_York"


class TestToInstant:
    def test_standard_time(self):
        instant = to_instant(datetime(2025, 1, 15, 9, 0), NY)
        assert instant == datetime(2025, 1, 15, 14, 0, tzinfo=timezone.utc)

    def test_daylight_time(self):
        instant = to_instant(datetime(2025, 7, 15, 9, 0), NY)
        assert instant == datetime(2025, 7, 15, 13, 0, tzinfo=timezone.utc)

    def test_spring_forward_gap_rejected(self):
        with pytest.raises(InvalidTimeInput, match="does not exist"):
            to_instant(datetime(2025, 3, 9, 2, 30), NY)

    def test_fall_back_defaults_to_earlier_occurrence(self):
        instant = to_instant(datetime(2025, 11, 2, 1, 30), NY)
        assert instant == datetime(2025, 11, 2, 5, 30, tzinfo=timezone.utc)

    def test_fall_back_later_occurrence_with_fold(self):
        instant = to_instant(datetime(2025, 11, 2, 1, 30), NY, fold=1)
        assert instant == datetime(2025, 11, 2, 6, 30, tzinfo=timezone.utc)

    def test_aware_value_rejected(self):
        with pytest.raises(InvalidTimeInput):
            to_instant(datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc), NY)

    def test_unknown_zone_rejected(self):
        with pytest.raises(InvalidTimeInput, match="Unknown time zone"):
            to_instant(datetime(2025, 1, 15, 9, 0), "Mars/Olympus_Mons")

    def test_non_datetime_rejected(self):
        with pytest.raises(InvalidTimeInput):
            to_instant("2025-01-15T09:00", NY)


class TestToWallClock:
    def test_round_trip(self):
        wall = datetime(2025, 7, 15, 9, 0)
        assert to_wall_clock(to_instant(wall, NY), NY) == wall

    def test_naive_instant_rejected(self):
        with pytest.raises(InvalidTimeInput, match="aware"):
            to_wall_clock(datetime(2025, 7, 15, 13, 0), NY)

    def test_result_is_naive(self):
        wall = to_wall_clock(datetime(2025, 7, 15, 13, 0, tzinfo=timezone.utc), NY)
        assert wall.tzinfo is None


class TestGapAndFold:
    def test_gap_detection(self):
        assert not exists_in_zone(datetime(2025, 3, 9, 2, 15), NY)
        assert exists_in_zone(datetime(2025, 3, 9, 3, 0), NY)

    def test_ambiguity_detection(self):
        assert is_ambiguous(datetime(2025, 11, 2, 1, 0), NY)
        assert not is_ambiguous(datetime(2025, 11, 2, 2, 0), NY)
        assert not is_ambiguous(datetime(2025, 3, 9, 2, 30), NY)

    def test_utc_has_no_gaps(self):
        assert exists_in_zone(datetime(2025, 3, 9, 2, 30), "UTC")


class TestHelpers:
    def test_ensure_instant_naive_is_wall_clock(self):
        assert ensure_instant(datetime(2025, 1, 15, 9, 0), NY) == datetime(
            2025, 1, 15, 14, 0, tzinfo=timezone.utc
        )

    def test_ensure_instant_aware_normalized_to_utc(self):
        aware = to_instant(datetime(2025, 1, 15, 9, 0), NY).astimezone(resolve_zone(NY))
        result = ensure_instant(aware, "UTC")
        assert result.utcoffset().total_seconds() == 0
        assert result == aware

    def test_local_day_start(self):
        assert local_day_start(date(2025, 1, 15), NY) == datetime(
            2025, 1, 15, 5, 0, tzinfo=timezone.utc
        )

    def test_local_day_start_when_midnight_is_skipped(self):
        # Santiago springs forward at local midnight
        start = local_day_start(date(2024, 9, 8), "America/Santiago")
        assert to_wall_clock(start, "America/Santiago") == datetime(2024, 9, 8, 1, 0)

    def test_day_of_week_sunday_is_zero(self):
        sunday = datetime(2025, 3, 9, 12, 0, tzinfo=timezone.utc)
        assert day_of_week(sunday, "UTC") == 0

    def test_day_of_week_uses_local_date(self):
        # 02:00 UTC Tuesday is still Monday evening in New York
        assert day_of_week(datetime(2025, 3, 11, 2, 0, tzinfo=timezone.utc), NY) == 1

    def test_minute_of_day(self):
        assert minute_of_day(datetime(2025, 1, 15, 14, 30, tzinfo=timezone.utc), NY) == 570


class TestOffsetChange:
    def test_constant_offset(self):
        start = datetime(2025, 1, 15, 14, 0, tzinfo=timezone.utc)
        assert offset_change_within(start, start + timedelta(hours=3), NY) is None

    def test_fall_back_found_within_a_second(self):
        # New York falls back at 06:00 UTC on 2025-11-02
        transition = datetime(2025, 11, 2, 6, 0, tzinfo=timezone.utc)
        shift = offset_change_within(
            transition - timedelta(minutes=30), transition + timedelta(minutes=59), NY
        )
        assert transition <= shift <= transition + timedelta(seconds=1)
        assert to_wall_clock(shift, NY).hour == 1
