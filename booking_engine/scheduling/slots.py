"""
Slot generation over a date range.

Each local day gets its own candidate grid anchored at local midnight and
stepping ``slot_duration_minutes`` of wall-clock time, so slot boundaries
line up with working hours on every day (DST transition days included) and
do not depend on where a query window starts. Wall times skipped by a
spring-forward gap produce no candidate; wall times repeated by a fall-back
produce one candidate per occurrence. Where a transition would make two
emitted slots overlap, the later one is dropped.

Usage:
    slots = generate_slots(date(2025, 3, 10), date(2025, 3, 14), config, now)
    for slot in slots:          # lazy
        ...
    first = slots.first()       # restartable: iterates again from the start
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional, Union

from booking_engine.errors import InvalidTimeInput
from booking_engine.scheduling.rules import AvailabilityConfig, AvailabilityRuleEngine
from booking_engine.scheduling.timezones import (
    exists_in_zone,
    is_ambiguous,
    local_date,
    local_day_start,
    resolve_zone,
    to_instant,
)
from booking_engine.utils import MINUTES_PER_DAY

logger = logging.getLogger(__name__)

RangeBound = Union[date, datetime]


@dataclass(frozen=True, order=True)
class TimeSlot:
    """A fixed-duration candidate appointment window, ``[start, end)`` in UTC."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidTimeInput("Slot boundaries must be time-zone aware")
        if self.start >= self.end:
            raise InvalidTimeInput("Slot end must be after slot start")

    @classmethod
    def starting_at(cls, start: datetime, duration_minutes: int) -> "TimeSlot":
        return cls(start, start + timedelta(minutes=duration_minutes))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


@dataclass(frozen=True, order=True)
class AvailabilitySlot(TimeSlot):
    """A candidate slot annotated with the result of conflict checking."""

    available: bool = True


def _resolve_lower(bound: RangeBound, zone) -> tuple[date, datetime]:
    if isinstance(bound, datetime):
        if bound.tzinfo is None:
            raise InvalidTimeInput("Range bounds given as datetimes must be aware")
        instant = bound.astimezone(timezone.utc)
        return local_date(instant, zone), instant
    return bound, local_day_start(bound, zone)


def _resolve_upper(bound: RangeBound, zone) -> tuple[date, datetime]:
    if isinstance(bound, datetime):
        if bound.tzinfo is None:
            raise InvalidTimeInput("Range bounds given as datetimes must be aware")
        instant = bound.astimezone(timezone.utc)
        return local_date(instant - timedelta(microseconds=1), zone), instant
    return bound, local_day_start(bound + timedelta(days=1), zone)


class SlotSequence:
    """Lazy, finite, restartable sequence of legal slots for a range."""

    def __init__(
        self,
        range_start: RangeBound,
        range_end: RangeBound,
        config: AvailabilityConfig,
        now: datetime,
    ) -> None:
        if now.tzinfo is None:
            raise InvalidTimeInput("'now' must be time-zone aware")
        self.config = config
        self.now = now
        self._zone = resolve_zone(config.timezone)
        self._first_day, self._lower = _resolve_lower(range_start, self._zone)
        self._last_day, self._upper = _resolve_upper(range_end, self._zone)
        if self._upper <= self._lower:
            raise InvalidTimeInput("Range end must be after range start")

    def __iter__(self) -> Iterator[TimeSlot]:
        engine = AvailabilityRuleEngine(self.config)
        horizon = self.now + timedelta(days=self.config.max_advance_days)
        last_end: Optional[datetime] = None
        day = self._first_day
        while day <= self._last_day:
            if local_day_start(day, self._zone) > horizon:
                return
            for slot in self._day_candidates(day):
                if slot.start < self._lower:
                    continue
                if slot.start >= self._upper:
                    return
                if last_end is not None and slot.start < last_end:
                    continue
                if engine.check_slot(slot, self.now) is None:
                    last_end = slot.end
                    yield slot
            day += timedelta(days=1)

    def first(self) -> Optional[TimeSlot]:
        return next(iter(self), None)

    def _day_candidates(self, day: date) -> list[TimeSlot]:
        if day in self.config.excluded_dates:
            return []
        intervals = self.config.intervals_for((day.weekday() + 1) % 7)
        if not intervals:
            return []

        midnight = datetime.combine(day, time.min)
        starts: set[datetime] = set()
        for minute in range(0, MINUTES_PER_DAY, self.config.slot_duration_minutes):
            if not any(iv.contains(minute) for iv in intervals):
                continue
            wall = midnight + timedelta(minutes=minute)
            if not exists_in_zone(wall, self._zone):
                logger.debug("Skipping %s: inside a daylight saving gap", wall.isoformat())
                continue
            starts.add(to_instant(wall, self._zone, fold=0))
            if is_ambiguous(wall, self._zone):
                starts.add(to_instant(wall, self._zone, fold=1))

        duration = self.config.slot_duration
        return [TimeSlot(start, start + duration) for start in sorted(starts)]


def generate_slots(
    range_start: RangeBound,
    range_end: RangeBound,
    config: AvailabilityConfig,
    now: datetime,
) -> SlotSequence:
    """Legal slots in the range, ascending and duplicate-free.

    Date bounds are inclusive local dates; datetime bounds are aware
    instants with an exclusive upper end.
    """
    return SlotSequence(range_start, range_end, config, now)
