"""Booking request, response and error data models."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from booking_engine.bookings.models import (
    Booking,
    BookingStatus,
    CustomerContact,
    NotificationChannel,
)
from booking_engine.bookings.reminders import format_booking_time
from booking_engine.errors import BookingError, RuleViolationError

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CreateBookingRequest(BaseModel):
    """Validated booking request data.

    ``start_time`` without an offset is a wall-clock value in the facility's
    zone; with an offset it is an absolute instant.
    """
    facility_id: str = Field(default="default", min_length=1)
    start_time: datetime
    end_time: Optional[datetime] = None
    customer_name: str = Field(min_length=1, max_length=100)
    customer_email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    customer_phone: Optional[str] = Field(default=None, min_length=7, max_length=20)
    service_type: str = Field(min_length=1, max_length=100)
    notes: str = Field(default="", max_length=500)
    notification_channel: NotificationChannel = NotificationChannel.EMAIL
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_contact(self) -> "CreateBookingRequest":
        if not self.customer_email and not self.customer_phone:
            raise ValueError("Either customer_email or customer_phone is required")
        if self.end_time is not None:
            if (self.end_time.tzinfo is None) != (self.start_time.tzinfo is None):
                raise ValueError("start_time and end_time must both carry an offset or neither")
            if self.end_time <= self.start_time:
                raise ValueError("End time must be after start time")
        return self

    def contact(self) -> CustomerContact:
        return CustomerContact(
            name=self.customer_name, email=self.customer_email, phone=self.customer_phone
        )


class UpdateBookingRequest(BaseModel):
    """Either a status change or a new start time, never both."""
    status: Optional[BookingStatus] = None
    start_time: Optional[datetime] = None
    cancellation_reason: Optional[str] = Field(default=None, max_length=500)
    actor: str = Field(default="customer", min_length=1)

    @model_validator(mode="after")
    def _exactly_one_change(self) -> "UpdateBookingRequest":
        if (self.status is None) == (self.start_time is None):
            raise ValueError("Provide exactly one of status or start_time")
        return self


class BookingOut(BaseModel):
    """Booking as returned to callers."""
    id: str
    facility_id: str
    status: BookingStatus
    start_time: datetime
    end_time: datetime
    timezone: str
    display_time: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    service_type: str
    notes: str = ""
    notification_channel: NotificationChannel
    created_at: datetime
    updated_at: datetime
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    rescheduled_from: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingOut":
        return cls(
            id=booking.id,
            facility_id=booking.facility_id,
            status=booking.status,
            start_time=booking.start,
            end_time=booking.end,
            timezone=booking.timezone,
            display_time=format_booking_time(booking)["date_time"],
            customer_name=booking.contact.name,
            customer_email=booking.contact.email,
            customer_phone=booking.contact.phone,
            service_type=booking.service_type,
            notes=booking.notes,
            notification_channel=booking.notification_channel,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
            cancelled_at=booking.cancelled_at,
            cancellation_reason=booking.cancellation_reason,
            rescheduled_from=booking.rescheduled_from,
            metadata=dict(booking.metadata),
        )


class ErrorResponse(BaseModel):
    """Transport rendering of a ``BookingError``."""
    code: str
    message: str
    retryable: bool = False
    violation: Optional[str] = None

    @classmethod
    def from_error(cls, exc: BookingError) -> "ErrorResponse":
        violation = exc.violation.value if isinstance(exc, RuleViolationError) else None
        return cls(
            code=exc.code, message=exc.message, retryable=exc.retryable, violation=violation
        )
