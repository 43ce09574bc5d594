"""
Time-zone normalizer: wall clock in the facility zone <-> UTC instants.

All storage and comparison happens on aware UTC datetimes ("instants").
Wall-clock values are naive datetimes interpreted in an explicitly passed
zone; nothing here reads the process-local time zone.

A wall-clock value inside a spring-forward gap is rejected with
``InvalidTimeInput`` instead of being shifted. A value inside a fall-back
repeat resolves to the earlier occurrence unless ``fold=1`` is requested.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_engine.errors import InvalidTimeInput

ZoneLike = Union[str, ZoneInfo]


def resolve_zone(zone: ZoneLike) -> ZoneInfo:
    """Return a ZoneInfo for an IANA id, raising InvalidTimeInput if unknown."""
    if isinstance(zone, ZoneInfo):
        return zone
    try:
        return ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidTimeInput(f"Unknown time zone: {zone!r}") from None


def exists_in_zone(wall_clock: datetime, zone: ZoneLike) -> bool:
    """False when the wall-clock value falls in a DST gap."""
    tz = resolve_zone(zone)
    roundtrip = wall_clock.replace(tzinfo=tz, fold=0).astimezone(timezone.utc).astimezone(tz)
    return roundtrip.replace(tzinfo=None) == wall_clock.replace(tzinfo=None)


def is_ambiguous(wall_clock: datetime, zone: ZoneLike) -> bool:
    """True when the wall-clock value occurs twice (fall-back repeat)."""
    tz = resolve_zone(zone)
    if not exists_in_zone(wall_clock, tz):
        return False
    early = wall_clock.replace(tzinfo=tz, fold=0).utcoffset()
    late = wall_clock.replace(tzinfo=tz, fold=1).utcoffset()
    return early != late


def to_instant(wall_clock: datetime, zone: ZoneLike, fold: int = 0) -> datetime:
    """Convert a naive wall-clock value in ``zone`` to an aware UTC instant.

    Raises:
        InvalidTimeInput: if the value is aware, not a datetime, or does not
            exist in the zone.
    """
    if not isinstance(wall_clock, datetime):
        raise InvalidTimeInput(f"Expected a datetime, got {type(wall_clock).__name__}")
    if wall_clock.tzinfo is not None:
        raise InvalidTimeInput("Wall-clock values must not carry a time zone")
    tz = resolve_zone(zone)
    if not exists_in_zone(wall_clock, tz):
        raise InvalidTimeInput(
            f"{wall_clock.isoformat()} does not exist in {tz.key} (daylight saving gap)"
        )
    return wall_clock.replace(tzinfo=tz, fold=fold).astimezone(timezone.utc)


def to_wall_clock(instant: datetime, zone: ZoneLike) -> datetime:
    """Convert an aware instant to a naive wall-clock value in ``zone``."""
    if not isinstance(instant, datetime):
        raise InvalidTimeInput(f"Expected a datetime, got {type(instant).__name__}")
    if instant.tzinfo is None:
        raise InvalidTimeInput("Instants must be time-zone aware")
    return instant.astimezone(resolve_zone(zone)).replace(tzinfo=None)


def ensure_instant(value: datetime, zone: ZoneLike) -> datetime:
    """Normalize caller input: naive values are wall clock, aware values are instants."""
    if not isinstance(value, datetime):
        raise InvalidTimeInput(f"Expected a datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        return to_instant(value, zone)
    return value.astimezone(timezone.utc)


def local_day_start(day: date, zone: ZoneLike) -> datetime:
    """First instant of a local calendar date.

    If local midnight is skipped by a DST transition, the pre-transition
    offset maps it onto the transition instant, which is the first moment
    of that day.
    """
    tz = resolve_zone(zone)
    midnight = datetime.combine(day, time.min)
    return midnight.replace(tzinfo=tz, fold=0).astimezone(timezone.utc)


def local_date(instant: datetime, zone: ZoneLike) -> date:
    return to_wall_clock(instant, zone).date()


def minute_of_day(instant: datetime, zone: ZoneLike) -> int:
    wall = to_wall_clock(instant, zone)
    return wall.hour * 60 + wall.minute


def offset_change_within(start: datetime, end: datetime, zone: ZoneLike) -> Optional[datetime]:
    """First instant in ``(start, end]`` whose UTC offset differs from ``start``'s.

    Returns None when the offset is constant over the span. The result is at
    most one second after the actual transition.
    """
    tz = resolve_zone(zone)
    offset = start.astimezone(tz).utcoffset()
    if end.astimezone(tz).utcoffset() == offset:
        return None
    low, high = start, end
    while high - low > timedelta(seconds=1):
        middle = low + (high - low) / 2
        if middle.astimezone(tz).utcoffset() == offset:
            low = middle
        else:
            high = middle
    return high


def day_of_week(instant: datetime, zone: ZoneLike) -> int:
    """Local day of week with 0=Sunday .. 6=Saturday."""
    return (to_wall_clock(instant, zone).weekday() + 1) % 7
