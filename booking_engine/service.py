"""
Scheduling service: the operations exposed to transports.

    get_availability(facility_id, start, end)     read, retried
    create_booking(facility_id, start, contact)   write, never retried
    update_booking(booking_id, status | new_start) write, never retried
    get_booking(booking_id)                       read, retried

Each call runs under its own request id so its log lines can be correlated across
the rule engine, store and notifier.
"""

import asyncio
import functools
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Collection, Mapping, Optional, TypeVar

from booking_engine.adapters.config_source import ConfigSource
from booking_engine.adapters.notifier import LoggingNotifier, NotificationDispatcher, Notifier
from booking_engine.adapters.store import BookingStore
from booking_engine.bookings.manager import BookingLifecycleManager
from booking_engine.bookings.models import (
    ACTIVE_STATUSES,
    Booking,
    BookingDetails,
    BookingStatus,
    CustomerContact,
    NotificationChannel,
)
from booking_engine.config import AppConfig, settings
from booking_engine.errors import (
    InvalidBookingDetails,
    InvalidTimeInput,
    InvalidTransition,
    StoreUnavailable,
)
from booking_engine.logging_context import request_scope
from booking_engine.scheduling.conflicts import ConflictChecker
from booking_engine.scheduling.slots import AvailabilitySlot, RangeBound, TimeSlot, generate_slots
from booking_engine.scheduling.timezones import ensure_instant
from booking_engine.utils import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _in_request_scope(method: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    @functools.wraps(method)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        with request_scope():
            return await method(*args, **kwargs)

    return wrapper


class SchedulingService:
    """Wires config source, store, lifecycle manager and notifier together."""

    def __init__(
        self,
        store: BookingStore,
        config_source: ConfigSource,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utc_now,
        app_config: Optional[AppConfig] = None,
    ) -> None:
        self.app_config = app_config or settings
        self.store = store
        self.config_source = config_source
        self.clock = clock
        self.dispatcher = NotificationDispatcher(
            notifier or LoggingNotifier(self.app_config.notifications),
            enabled=self.app_config.notifications.enabled,
        )
        self.manager = BookingLifecycleManager(
            store,
            self.dispatcher,
            clock=clock,
            policy=self.app_config.booking,
            store_config=self.app_config.store,
        )

    @_in_request_scope
    async def get_availability(
        self,
        facility_id: str,
        range_start: RangeBound,
        range_end: RangeBound,
        service_type: Optional[str] = None,
        only_available: bool = False,
    ) -> list[AvailabilitySlot]:
        """
        Slots in the range with their availability flag, ascending by start.

        Reads a single snapshot of the facility config and of the bookings;
        the result is advisory and may be stale by the time a booking is made.
        """
        config = await self.config_source.get(facility_id)
        now = self.clock()
        candidates = list(generate_slots(range_start, range_end, config, now))
        if not candidates:
            logger.info("No candidate slots for %s in requested range", facility_id)
            return []

        existing = await self._read(
            lambda: self.manager.list_bookings(
                facility_id,
                ACTIVE_STATUSES,
                candidates[0].start - config.buffer,
                candidates[-1].end + config.buffer,
            ),
            "list bookings",
        )
        slots = ConflictChecker(config.buffer_minutes).filter_available(candidates, existing)
        logger.info(
            "Availability for %s (config v%d, service=%s): %d of %d slots free",
            facility_id, config.version, service_type or "-",
            sum(1 for s in slots if s.available), len(slots),
        )
        if only_available:
            return [s for s in slots if s.available]
        return slots

    @_in_request_scope
    async def create_booking(
        self,
        facility_id: str,
        start: datetime,
        contact: CustomerContact,
        service_type: str,
        end: Optional[datetime] = None,
        notes: str = "",
        notification_channel: NotificationChannel = NotificationChannel.EMAIL,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Booking:
        """Book the slot starting at ``start``.

        A naive ``start`` is a wall-clock time in the facility's zone; an aware
        one is an absolute instant. ``end``, if given, must match the slot length.
        """
        config = await self.config_source.get(facility_id)
        slot = self._slot_at(start, end, config.timezone, config.slot_duration_minutes)
        try:
            details = BookingDetails(
                contact=contact,
                service_type=service_type,
                notes=notes,
                notification_channel=notification_channel,
                metadata=dict(metadata or {}),
            )
        except ValueError as exc:
            raise InvalidBookingDetails(str(exc)) from None
        return await self.manager.create_booking(config, slot, details)

    @_in_request_scope
    async def update_booking(
        self,
        booking_id: str,
        status: Optional[BookingStatus] = None,
        new_start: Optional[datetime] = None,
        actor: str = "customer",
        reason: Optional[str] = None,
    ) -> Booking:
        """Apply a status change or a reschedule to an existing booking."""
        if (status is None) == (new_start is None):
            raise InvalidTransition("Provide exactly one of a status change or a new start time.")

        if new_start is not None:
            current = await self.get_booking(booking_id)
            config = await self.config_source.get(current.facility_id)
            slot = self._slot_at(new_start, None, config.timezone, config.slot_duration_minutes)
            return await self.manager.reschedule_booking(booking_id, config, slot, actor=actor)

        if status == BookingStatus.CANCELLED:
            return await self.manager.cancel_booking(booking_id, actor=actor, reason=reason)
        if status == BookingStatus.CONFIRMED:
            return await self.manager.confirm_booking(booking_id)
        if status == BookingStatus.COMPLETED:
            return await self.manager.complete_booking(booking_id)
        if status == BookingStatus.NO_SHOW:
            return await self.manager.mark_no_show(booking_id)
        raise InvalidTransition(f"Bookings cannot be moved back to '{status.value}'.")

    @_in_request_scope
    async def get_booking(self, booking_id: str) -> Booking:
        return await self._read(lambda: self.manager.get_booking(booking_id), "get booking")

    @_in_request_scope
    async def list_bookings(
        self,
        facility_id: str,
        statuses: Optional[Collection[BookingStatus]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Booking]:
        return await self._read(
            lambda: self.manager.list_bookings(facility_id, statuses, start, end),
            "list bookings",
        )

    @_in_request_scope
    async def send_due_reminders(self, facility_id: str) -> list[Booking]:
        return await self.manager.send_due_reminders(facility_id)

    async def shutdown(self) -> None:
        """Wait for queued notifications."""
        await self.dispatcher.drain()

    @staticmethod
    def _slot_at(
        start: datetime, end: Optional[datetime], zone: str, duration_minutes: int
    ) -> TimeSlot:
        slot = TimeSlot.starting_at(ensure_instant(start, zone), duration_minutes)
        if end is not None and ensure_instant(end, zone) != slot.end:
            raise InvalidTimeInput(f"Bookings must last exactly {duration_minutes} minutes.")
        return slot

    async def _read(self, call: Callable[[], Awaitable[T]], operation: str) -> T:
        """Run an idempotent read, retrying ``StoreUnavailable`` with linear backoff."""
        store_config = self.app_config.store
        attempts = store_config.read_retries + 1
        for attempt in range(1, attempts):
            try:
                return await call()
            except StoreUnavailable as exc:
                delay = store_config.retry_backoff_seconds * attempt
                logger.warning(
                    "Store %s failed (attempt %d/%d): %s; retrying in %.2fs",
                    operation, attempt, attempts, exc, delay,
                )
                await asyncio.sleep(delay)
        return await call()
