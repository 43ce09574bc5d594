"""Booking entity, status values and customer contact details."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from booking_engine.scheduling.slots import TimeSlot
from booking_engine.utils import normalize_phone


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW}
)


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    BOTH = "both"


@dataclass(frozen=True)
class CustomerContact:
    """Who the booking is for and how to reach them."""

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    def __post_init__(self) -> None:
        name = self.name.strip()
        if not name:
            raise ValueError("Customer name is required")
        if not self.email and not self.phone:
            raise ValueError("Customer contact needs an email or a phone number")
        object.__setattr__(self, "name", name)
        if self.email:
            object.__setattr__(self, "email", self.email.strip().lower())
        if self.phone:
            object.__setattr__(self, "phone", normalize_phone(self.phone))

    @property
    def recipient(self) -> str:
        return self.email or self.phone or ""


@dataclass(frozen=True)
class BookingDetails:
    """Caller-supplied data for a new booking, everything except the slot."""

    contact: CustomerContact
    service_type: str
    notes: str = ""
    notification_channel: NotificationChannel = NotificationChannel.EMAIL
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.service_type or not self.service_type.strip():
            raise ValueError("Service type is required")


@dataclass(frozen=True)
class Booking:
    """A durable reservation of one slot in a facility calendar.

    Instances are immutable; status changes produce a new value through
    ``transition`` and are persisted by the lifecycle manager only.
    """

    id: str
    facility_id: str
    start: datetime
    end: datetime
    status: BookingStatus
    contact: CustomerContact
    service_type: str
    created_at: datetime
    updated_at: datetime
    timezone: str = "UTC"
    notes: str = ""
    config_version: int = 0
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    rescheduled_from: Optional[str] = None
    reminder_sent: bool = False
    notification_channel: NotificationChannel = NotificationChannel.EMAIL
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Booking times must be time-zone aware")
        if self.start >= self.end:
            raise ValueError("Booking end must be after start")

    @property
    def slot(self) -> TimeSlot:
        return TimeSlot(self.start, self.end)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, status: BookingStatus, at: datetime, **changes: Any) -> "Booking":
        return replace(self, status=status, updated_at=at, **changes)


def new_booking_id(prefix: str = "BK") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"
