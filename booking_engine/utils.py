"""Shared utilities used across the booking engine."""

import re
from datetime import datetime, timezone

MINUTES_PER_DAY = 24 * 60

_HHMM = re.compile(r"^([01][0-9]|2[0-3]):([0-5][0-9])$")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0412 345 678")
        '0412345678'
        >>> normalize_phone("+1 (212) 555-0101")
        '+12125550101'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def time_to_minutes(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight.

    ``24:00`` is accepted as the end-of-day boundary.
    """
    value = value.strip()
    if value == "24:00":
        return MINUTES_PER_DAY
    match = _HHMM.match(value)
    if not match:
        raise ValueError(f"Time must be in HH:MM format (24-hour), got {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight back to ``HH:MM``."""
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"Minute of day out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)
