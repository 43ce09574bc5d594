"""
Availability rule engine.

Answers "is this instant (or this slot) schedulable in principle" from a
facility's ``AvailabilityConfig`` alone, without looking at bookings. Slot
generation uses it to discard illegal candidates cheaply before the
booking-overlap check runs, and the lifecycle manager re-runs it at
reservation time.

Usage:
    engine = AvailabilityRuleEngine(config)
    violation = engine.is_bookable(start, now)
    if violation is not None:
        raise RuleViolationError(violation)
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import IntEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from booking_engine.errors import InvalidTimeInput, RuleViolation
from booking_engine.scheduling.timezones import (
    day_of_week,
    local_date,
    minute_of_day,
    offset_change_within,
    resolve_zone,
)
from booking_engine.utils import MINUTES_PER_DAY

if TYPE_CHECKING:
    from booking_engine.scheduling.slots import TimeSlot

logger = logging.getLogger(__name__)


class DayOfWeek(IntEnum):
    """Day numbering used by working-hours tables (0=Sunday)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


@dataclass(frozen=True, order=True)
class WorkingInterval:
    """Half-open ``[start_minute, end_minute)`` window within a local day."""

    start_minute: int
    end_minute: int

    def __post_init__(self) -> None:
        if not 0 <= self.start_minute < self.end_minute <= MINUTES_PER_DAY:
            raise ValueError(
                "Working interval must satisfy 0 <= start < end <= 1440, "
                f"got ({self.start_minute}, {self.end_minute})"
            )

    def contains(self, minute: float) -> bool:
        return self.start_minute <= minute < self.end_minute


@dataclass(frozen=True)
class ExcludedTimeRange:
    """A closed period (holiday, maintenance) that overrides working hours."""

    start: datetime
    end: datetime
    reason: str = ""

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Excluded ranges must use time-zone aware instants")
        if self.start >= self.end:
            raise ValueError("Excluded range end must be after start")

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


@dataclass(frozen=True)
class AvailabilityConfig:
    """Immutable availability snapshot for one facility calendar."""

    timezone: str
    working_hours: Mapping[int, tuple[WorkingInterval, ...]]
    slot_duration_minutes: int
    buffer_minutes: int = 0
    min_lead_time_minutes: int = 0
    max_advance_days: int = 90
    excluded_ranges: tuple[ExcludedTimeRange, ...] = ()
    excluded_dates: frozenset[date] = field(default_factory=frozenset)
    facility_id: str = "default"
    version: int = 0

    def __post_init__(self) -> None:
        try:
            resolve_zone(self.timezone)
        except InvalidTimeInput as exc:
            raise ValueError(exc.message) from None
        if self.slot_duration_minutes <= 0:
            raise ValueError(
                f"slot_duration_minutes must be > 0, got {self.slot_duration_minutes}"
            )
        if self.buffer_minutes < 0:
            raise ValueError(f"buffer_minutes must be >= 0, got {self.buffer_minutes}")
        if self.min_lead_time_minutes < 0:
            raise ValueError(
                f"min_lead_time_minutes must be >= 0, got {self.min_lead_time_minutes}"
            )
        if self.max_advance_days < 1:
            raise ValueError(f"max_advance_days must be >= 1, got {self.max_advance_days}")

        hours: dict[int, tuple[WorkingInterval, ...]] = {}
        for day, intervals in self.working_hours.items():
            if not 0 <= int(day) <= 6:
                raise ValueError(f"Day of week must be 0-6, got {day}")
            hours[int(day)] = tuple(sorted(intervals))
        object.__setattr__(self, "working_hours", MappingProxyType(hours))
        object.__setattr__(
            self, "excluded_ranges", tuple(sorted(self.excluded_ranges, key=lambda r: r.start))
        )
        object.__setattr__(self, "excluded_dates", frozenset(self.excluded_dates))

    def intervals_for(self, day: int) -> tuple[WorkingInterval, ...]:
        return self.working_hours.get(day, ())

    def with_version(self, version: int) -> "AvailabilityConfig":
        return replace(self, version=version, working_hours=dict(self.working_hours))

    @property
    def slot_duration(self) -> timedelta:
        return timedelta(minutes=self.slot_duration_minutes)

    @property
    def buffer(self) -> timedelta:
        return timedelta(minutes=self.buffer_minutes)


def weekly_hours(
    days: Iterable[int], start_minute: int, end_minute: int
) -> dict[int, tuple[WorkingInterval, ...]]:
    """Build a working-hours table with the same window on each given day."""
    return {int(day): (WorkingInterval(start_minute, end_minute),) for day in days}


def default_availability_config(
    timezone: str = "America/New_York", facility_id: str = "default"
) -> AvailabilityConfig:
    """Monday-Friday 09:00-17:00, hour-long slots, 15 minute buffer, 24h notice."""
    return AvailabilityConfig(
        timezone=timezone,
        working_hours=weekly_hours(
            [DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.WEDNESDAY,
             DayOfWeek.THURSDAY, DayOfWeek.FRIDAY],
            9 * 60,
            17 * 60,
        ),
        slot_duration_minutes=60,
        buffer_minutes=15,
        min_lead_time_minutes=24 * 60,
        max_advance_days=90,
        facility_id=facility_id,
    )


class AvailabilityRuleEngine:
    """Pure legality checks over one configuration snapshot."""

    def __init__(self, config: AvailabilityConfig) -> None:
        self.config = config
        self._zone = resolve_zone(config.timezone)

    def is_within_working_hours(self, instant: datetime) -> bool:
        """Check membership of the instant in any working interval of its local day."""
        minute = minute_of_day(instant, self._zone)
        intervals = self.config.intervals_for(day_of_week(instant, self._zone))
        return any(interval.contains(minute) for interval in intervals)

    def is_excluded(self, instant: datetime) -> bool:
        """Check membership in the union of excluded ranges and excluded dates."""
        if any(r.contains(instant) for r in self.config.excluded_ranges):
            return True
        return local_date(instant, self._zone) in self.config.excluded_dates

    def is_bookable(self, instant: datetime, now: datetime) -> Optional[RuleViolation]:
        """Return the first violated rule for a start instant, or None if legal."""
        if instant.tzinfo is None or now.tzinfo is None:
            raise InvalidTimeInput("Instants must be time-zone aware")
        if not self.is_within_working_hours(instant):
            return RuleViolation.OUTSIDE_WORKING_HOURS
        if self.is_excluded(instant):
            return RuleViolation.EXCLUDED
        if instant < now + timedelta(minutes=self.config.min_lead_time_minutes):
            return RuleViolation.TOO_SOON
        if instant > now + timedelta(days=self.config.max_advance_days):
            return RuleViolation.TOO_FAR_AHEAD
        return None

    def check_slot(self, slot: "TimeSlot", now: datetime) -> Optional[RuleViolation]:
        """Like ``is_bookable`` but the whole slot must fit and avoid exclusions."""
        violation = self.is_bookable(slot.start, now)
        if violation is not None:
            return violation
        if not self._fits_working_interval(slot.start, slot.end):
            return RuleViolation.OUTSIDE_WORKING_HOURS
        if self._overlaps_exclusion(slot.start, slot.end):
            return RuleViolation.EXCLUDED
        return None

    def expected_end(self, start: datetime) -> datetime:
        return start + self.config.slot_duration

    def _fits_working_interval(self, start: datetime, end: datetime) -> bool:
        """Every wall-clock minute the slot covers lies in one interval of its start day.

        Works on the last covered instant rather than the wall-clock end, which
        can equal or precede the start on a fall-back day. When the offset
        changes inside the slot, the wall clock on both sides of the change is
        checked too, since falling back can drop below the interval start.
        """
        last = end - timedelta(microseconds=1)
        if local_date(last, self._zone) != local_date(start, self._zone):
            return False
        covered = [start, last]
        shift = offset_change_within(start, last, self._zone)
        if shift is not None:
            covered += [max(start, shift - timedelta(seconds=1)), shift]
        minutes = [minute_of_day(instant, self._zone) for instant in covered]
        lowest, highest = min(minutes), max(minutes)
        intervals = self.config.intervals_for(day_of_week(start, self._zone))
        return any(iv.start_minute <= lowest and highest < iv.end_minute for iv in intervals)

    def _overlaps_exclusion(self, start: datetime, end: datetime) -> bool:
        if any(r.overlaps(start, end) for r in self.config.excluded_ranges):
            return True
        if not self.config.excluded_dates:
            return False
        last_moment = end - timedelta(microseconds=1)
        return (
            local_date(start, self._zone) in self.config.excluded_dates
            or local_date(last_moment, self._zone) in self.config.excluded_dates
        )
