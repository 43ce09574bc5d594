from booking_engine.bookings.models import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingDetails,
    BookingStatus,
    CustomerContact,
    NotificationChannel,
)
from booking_engine.bookings.state_machine import BookingStateMachine, BookingTrigger

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Booking",
    "BookingDetails",
    "BookingStateMachine",
    "BookingStatus",
    "BookingTrigger",
    "CustomerContact",
    "NotificationChannel",
]
