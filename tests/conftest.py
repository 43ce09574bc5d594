"""Shared test fixtures and helpers."""

from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Optional

import pytest

from booking_engine.adapters.config_source import StaticConfigSource
from booking_engine.adapters.notifier import NotificationDispatcher, NotificationRequest
from booking_engine.adapters.store import InMemoryBookingStore
from booking_engine.bookings.manager import BookingLifecycleManager
from booking_engine.bookings.models import (
    Booking,
    BookingDetails,
    BookingStatus,
    CustomerContact,
)
from booking_engine.config import BookingPolicyConfig, NotificationConfig, StoreConfig, settings
from booking_engine.scheduling.rules import (
    AvailabilityConfig,
    DayOfWeek,
    ExcludedTimeRange,
    weekly_hours,
)
from booking_engine.service import SchedulingService

# Monday
MONDAY = date(2025, 3, 10)
UTC = timezone.utc


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=UTC)


def make_config(
    timezone_name: str = "UTC",
    days: Optional[list[int]] = None,
    start_minute: int = 9 * 60,
    end_minute: int = 10 * 60,
    slot_duration_minutes: int = 30,
    buffer_minutes: int = 0,
    min_lead_time_minutes: int = 0,
    max_advance_days: int = 7,
    excluded_ranges: tuple[ExcludedTimeRange, ...] = (),
    excluded_dates: frozenset = frozenset(),
    facility_id: str = "default",
) -> AvailabilityConfig:
    """Helper to create an AvailabilityConfig, Monday 09:00-10:00 UTC by default."""
    return AvailabilityConfig(
        timezone=timezone_name,
        working_hours=weekly_hours(
            days if days is not None else [DayOfWeek.MONDAY], start_minute, end_minute
        ),
        slot_duration_minutes=slot_duration_minutes,
        buffer_minutes=buffer_minutes,
        min_lead_time_minutes=min_lead_time_minutes,
        max_advance_days=max_advance_days,
        excluded_ranges=excluded_ranges,
        excluded_dates=excluded_dates,
        facility_id=facility_id,
    )


def make_contact(name: str = "Ana Silva", email: str = "ana@example.com") -> CustomerContact:
    return CustomerContact(name=name, email=email)


def make_details(name: str = "Ana Silva", service_type: str = "consultation") -> BookingDetails:
    return BookingDetails(contact=make_contact(name), service_type=service_type)


def make_booking(
    start: datetime,
    end: datetime,
    status: BookingStatus = BookingStatus.CONFIRMED,
    booking_id: str = "BK-TEST00000001",
    facility_id: str = "default",
) -> Booking:
    """Helper to create a Booking directly, bypassing the lifecycle manager."""
    return Booking(
        id=booking_id,
        facility_id=facility_id,
        start=start,
        end=end,
        status=status,
        contact=make_contact(),
        service_type="consultation",
        created_at=start,
        updated_at=start,
    )


class RecordingNotifier:
    """Notifier double that records requests and can be told to fail."""

    def __init__(self, fail: bool = False, raise_error: bool = False) -> None:
        self.fail = fail
        self.raise_error = raise_error
        self.requests: list[NotificationRequest] = []

    async def send(self, request: NotificationRequest) -> bool:
        self.requests.append(request)
        if self.raise_error:
            raise ConnectionError("SMTP relay unreachable")
        return not self.fail

    @property
    def kinds(self) -> list[str]:
        return [r.kind.value for r in self.requests]


class Clock:
    """Settable clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    # Sunday evening before MONDAY
    return Clock(utc(2025, 3, 9, 18))


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier)


@pytest.fixture
def store_config():
    return StoreConfig(timeout_seconds=1.0, read_retries=2, retry_backoff_seconds=0.0)


@pytest.fixture
def manager(store, dispatcher, clock, store_config):
    return BookingLifecycleManager(
        store,
        dispatcher,
        clock=clock,
        policy=BookingPolicyConfig(require_confirmation=False, reminder_lead_hours=24),
        store_config=store_config,
    )


@pytest.fixture
def config_source(config):
    return StaticConfigSource({"default": config})


@pytest.fixture
def service(store, config_source, notifier, clock, store_config):
    app_config = replace(
        settings,
        store=store_config,
        booking=BookingPolicyConfig(require_confirmation=False, reminder_lead_hours=24),
        notifications=NotificationConfig(enabled=True),
    )
    return SchedulingService(
        store, config_source, notifier=notifier, clock=clock, app_config=app_config
    )
