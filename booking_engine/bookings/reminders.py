"""Reminder eligibility and human-readable booking times."""

from datetime import datetime, timedelta
from typing import TypedDict

from booking_engine.bookings.models import Booking, BookingStatus
from booking_engine.scheduling.timezones import to_wall_clock


class FormattedBookingTime(TypedDict):
    date: str
    time: str
    date_time: str


def should_send_reminder(booking: Booking, now: datetime, lead_hours: int = 24) -> bool:
    """True for a confirmed, not yet reminded booking starting within ``lead_hours``."""
    if booking.reminder_sent or booking.status != BookingStatus.CONFIRMED:
        return False
    until_start = booking.start - now
    return timedelta(0) < until_start <= timedelta(hours=lead_hours)


def _format_12h(wall: datetime) -> str:
    hour = wall.hour % 12 or 12
    suffix = "AM" if wall.hour < 12 else "PM"
    return f"{hour}:{wall.minute:02d} {suffix}"


def format_booking_time(booking: Booking) -> FormattedBookingTime:
    """Render a booking's start and end in the facility zone it was made in.

    Example:
        {"date": "Monday, March 10, 2025",
         "time": "9:00 AM - 9:30 AM",
         "date_time": "Monday, March 10, 2025 at 9:00 AM - 9:30 AM"}
    """
    start = to_wall_clock(booking.start, booking.timezone)
    end = to_wall_clock(booking.end, booking.timezone)
    day = f"{start:%A}, {start:%B} {start.day}, {start.year}"
    span = f"{_format_12h(start)} - {_format_12h(end)}"
    return {"date": day, "time": span, "date_time": f"{day} at {span}"}
