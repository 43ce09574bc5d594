"""
Booking lifecycle manager.

The only component that writes bookings. Every write follows the same shape:

    1. validate against the caller's AvailabilityConfig snapshot (pure)
    2. open an atomic store unit for the facility
    3. re-read, re-check conflicts / status, stage the write
    4. commit (leaving the unit)
    5. dispatch the notification as a detached task

A unit that does not finish within ``StoreConfig.timeout_seconds`` is
cancelled and nothing is persisted. Writes are never retried here.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Collection, Optional, TypeVar

from booking_engine.adapters.notifier import NotificationDispatcher, NotificationKind
from booking_engine.adapters.store import BookingStore, BookingUnit, call_with_timeout
from booking_engine.bookings.models import (
    Booking,
    BookingDetails,
    BookingStatus,
    new_booking_id,
)
from booking_engine.bookings.reminders import should_send_reminder
from booking_engine.bookings.state_machine import BookingStateMachine, BookingTrigger
from booking_engine.config import BookingPolicyConfig, StoreConfig, settings
from booking_engine.errors import (
    BookingNotFound,
    InvalidTimeInput,
    InvalidTransition,
    RuleViolationError,
    SlotNoLongerAvailable,
)
from booking_engine.scheduling.conflicts import ConflictChecker
from booking_engine.scheduling.rules import AvailabilityConfig, AvailabilityRuleEngine
from booking_engine.scheduling.slots import TimeSlot
from booking_engine.utils import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

RESCHEDULED_REASON = "rescheduled"


class BookingLifecycleManager:
    """Creates bookings and moves them through their status transitions."""

    def __init__(
        self,
        store: BookingStore,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], datetime] = utc_now,
        policy: Optional[BookingPolicyConfig] = None,
        store_config: Optional[StoreConfig] = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock
        self.policy = policy or settings.booking
        self.store_config = store_config or settings.store
        self.state_machine = BookingStateMachine()

    async def create_booking(
        self, config: AvailabilityConfig, slot: TimeSlot, details: BookingDetails
    ) -> Booking:
        """
        Reserve ``slot`` for the customer.

        Raises:
            InvalidTimeInput: The slot does not have the configured duration.
            RuleViolationError: The slot breaks an availability rule.
            SlotNoLongerAvailable: Another booking took (or neighbours) the slot.
            StoreUnavailable: The store timed out; nothing was saved.
        """
        now = self.clock()
        self._check_slot(config, slot, now)
        initial = (
            BookingStatus.PENDING if self.policy.require_confirmation else BookingStatus.CONFIRMED
        )

        async def work(unit: BookingUnit) -> Booking:
            return await self._insert(unit, config, slot, details, initial, now)

        booking = await self._run_unit(config.facility_id, work, "create booking")
        logger.info(
            "Booking created: %s for %s at %s (%s)",
            booking.id, details.contact.name, booking.start.isoformat(), booking.status.value,
        )
        self.dispatcher.dispatch(NotificationKind.CONFIRMATION, booking)
        return booking

    async def reschedule_booking(
        self,
        booking_id: str,
        config: AvailabilityConfig,
        new_slot: TimeSlot,
        actor: str = "customer",
    ) -> Booking:
        """Cancel the booking and create its replacement in one atomic unit.

        The old booking's own interval does not block the new slot.
        """
        now = self.clock()
        self._check_slot(config, new_slot, now)
        current = await self.get_booking(booking_id)
        if current.facility_id != config.facility_id:
            raise InvalidTransition(
                f"Booking {booking_id} belongs to facility '{current.facility_id}', "
                f"not '{config.facility_id}'."
            )

        async def work(unit: BookingUnit) -> Booking:
            old = await self._load(unit, booking_id)
            status = self.state_machine.next_status(old, BookingTrigger.CANCEL)
            await unit.update(
                old.transition(
                    status, now,
                    cancelled_at=now,
                    cancelled_by=actor,
                    cancellation_reason=RESCHEDULED_REASON,
                )
            )
            details = BookingDetails(
                contact=old.contact,
                service_type=old.service_type,
                notes=old.notes,
                notification_channel=old.notification_channel,
                metadata=old.metadata,
            )
            return await self._insert(
                unit, config, new_slot, details, old.status, now, rescheduled_from=old.id
            )

        booking = await self._run_unit(config.facility_id, work, "reschedule booking")
        logger.info(
            "Booking rescheduled: %s -> %s at %s", booking_id, booking.id, booking.start.isoformat()
        )
        self.dispatcher.dispatch(NotificationKind.CONFIRMATION, booking)
        return booking

    async def cancel_booking(
        self, booking_id: str, actor: str = "customer", reason: Optional[str] = None
    ) -> Booking:
        now = self.clock()
        booking = await self._transition(
            booking_id,
            BookingTrigger.CANCEL,
            now,
            cancelled_at=now,
            cancelled_by=actor,
            cancellation_reason=reason,
        )
        logger.info("Booking cancelled: %s by %s", booking_id, actor)
        self.dispatcher.dispatch(NotificationKind.CANCELLATION, booking)
        return booking

    async def confirm_booking(self, booking_id: str) -> Booking:
        booking = await self._transition(booking_id, BookingTrigger.CONFIRM, self.clock())
        logger.info("Booking confirmed: %s", booking_id)
        self.dispatcher.dispatch(NotificationKind.CONFIRMATION, booking)
        return booking

    async def complete_booking(self, booking_id: str) -> Booking:
        """Mark a confirmed booking completed. Only allowed once its end has passed."""
        now = self.clock()

        def guard(booking: Booking) -> None:
            if booking.end > now:
                raise InvalidTransition(
                    f"Booking {booking.id} cannot be completed before it ends."
                )

        booking = await self._transition(booking_id, BookingTrigger.COMPLETE, now, guard=guard)
        logger.info("Booking completed: %s", booking_id)
        return booking

    async def mark_no_show(self, booking_id: str) -> Booking:
        now = self.clock()

        def guard(booking: Booking) -> None:
            if booking.start > now:
                raise InvalidTransition(
                    f"Booking {booking.id} cannot be a no-show before it starts."
                )

        booking = await self._transition(booking_id, BookingTrigger.NO_SHOW, now, guard=guard)
        logger.info("Booking marked no-show: %s", booking_id)
        return booking

    async def get_booking(self, booking_id: str) -> Booking:
        booking = await call_with_timeout(
            self.store.get(booking_id), self.store_config.timeout_seconds, "get booking"
        )
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    async def list_bookings(
        self,
        facility_id: str,
        statuses: Optional[Collection[BookingStatus]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Booking]:
        return await call_with_timeout(
            self.store.list_bookings(facility_id, statuses, start, end),
            self.store_config.timeout_seconds,
            "list bookings",
        )

    async def send_due_reminders(self, facility_id: str) -> list[Booking]:
        """Flag and notify confirmed bookings starting within the reminder lead time."""
        now = self.clock()
        lead = self.policy.reminder_lead_hours
        candidates = [
            b for b in await self.list_bookings(facility_id, {BookingStatus.CONFIRMED}, start=now)
            if should_send_reminder(b, now, lead)
        ]
        reminded = []
        for candidate in candidates:

            async def work(unit: BookingUnit, booking_id: str = candidate.id) -> Optional[Booking]:
                booking = await self._load(unit, booking_id)
                if not should_send_reminder(booking, now, lead):
                    return None
                updated = booking.transition(booking.status, now, reminder_sent=True)
                await unit.update(updated)
                return updated

            updated = await self._run_unit(facility_id, work, "mark reminder sent")
            if updated is not None:
                self.dispatcher.dispatch(NotificationKind.REMINDER, updated)
                reminded.append(updated)
        if reminded:
            logger.info("Queued %d reminder(s) for facility %s", len(reminded), facility_id)
        return reminded

    def _check_slot(self, config: AvailabilityConfig, slot: TimeSlot, now: datetime) -> None:
        if slot.end - slot.start != config.slot_duration:
            raise InvalidTimeInput(
                f"Bookings must last exactly {config.slot_duration_minutes} minutes."
            )
        violation = AvailabilityRuleEngine(config).check_slot(slot, now)
        if violation is not None:
            logger.info(
                "Rejected %s for facility %s: %s",
                slot.start.isoformat(), config.facility_id, violation.value,
            )
            raise RuleViolationError(violation)

    async def _insert(
        self,
        unit: BookingUnit,
        config: AvailabilityConfig,
        slot: TimeSlot,
        details: BookingDetails,
        status: BookingStatus,
        now: datetime,
        rescheduled_from: Optional[str] = None,
    ) -> Booking:
        checker = ConflictChecker(config.buffer_minutes)
        if not await checker.is_slot_available(slot, config.facility_id, unit):
            logger.info(
                "Slot %s for facility %s was taken", slot.start.isoformat(), config.facility_id
            )
            raise SlotNoLongerAvailable(
                "That time has just been booked. Please choose another slot."
            )
        booking = Booking(
            id=new_booking_id(self.policy.booking_id_prefix),
            facility_id=config.facility_id,
            start=slot.start,
            end=slot.end,
            status=status,
            contact=details.contact,
            service_type=details.service_type,
            created_at=now,
            updated_at=now,
            timezone=config.timezone,
            notes=details.notes,
            config_version=config.version,
            rescheduled_from=rescheduled_from,
            notification_channel=details.notification_channel,
            metadata=dict(details.metadata),
        )
        await unit.insert(booking)
        return booking

    async def _transition(
        self,
        booking_id: str,
        trigger: BookingTrigger,
        now: datetime,
        guard: Optional[Callable[[Booking], None]] = None,
        **changes: Any,
    ) -> Booking:
        current = await self.get_booking(booking_id)

        async def work(unit: BookingUnit) -> Booking:
            booking = await self._load(unit, booking_id)
            status = self.state_machine.next_status(booking, trigger)
            if guard is not None:
                guard(booking)
            updated = booking.transition(status, now, **changes)
            await unit.update(updated)
            return updated

        return await self._run_unit(current.facility_id, work, f"{trigger.value} booking")

    @staticmethod
    async def _load(unit: BookingUnit, booking_id: str) -> Booking:
        booking = await unit.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    async def _run_unit(
        self,
        facility_id: str,
        work: Callable[[BookingUnit], Awaitable[T]],
        operation: str,
    ) -> T:
        async def in_unit() -> T:
            async with self.store.unit_of_work(facility_id) as unit:
                return await work(unit)

        return await call_with_timeout(in_unit(), self.store_config.timeout_seconds, operation)
