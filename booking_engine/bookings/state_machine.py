"""
Explicit transition table for booking statuses.

    pending   --confirm--> confirmed
    pending   --cancel---> cancelled
    confirmed --cancel---> cancelled
    confirmed --complete-> completed
    confirmed --no_show--> no_show

cancelled, completed and no_show are terminal. Any trigger on a terminal
booking raises ``AlreadyTerminal``; any other undefined pair raises
``InvalidTransition`` listing the triggers that are valid.

Usage:
    machine = BookingStateMachine()
    status = machine.next_status(booking, BookingTrigger.CANCEL)
"""

import logging
from dataclasses import dataclass
from enum import Enum

from booking_engine.bookings.models import TERMINAL_STATUSES, Booking, BookingStatus
from booking_engine.errors import AlreadyTerminal, InvalidTransition

logger = logging.getLogger(__name__)


class BookingTrigger(str, Enum):
    """Events that change a booking's status."""

    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"
    NO_SHOW = "no_show"


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""

    from_status: BookingStatus
    to_status: BookingStatus
    trigger: BookingTrigger


class BookingStateMachine:
    """Stateless lookup over the transition table; the status lives on the booking."""

    TRANSITIONS: list[Transition] = [
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingTrigger.CONFIRM),
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingTrigger.COMPLETE),
        Transition(BookingStatus.CONFIRMED, BookingStatus.NO_SHOW, BookingTrigger.NO_SHOW),
    ]

    def next_status(self, booking: Booking, trigger: BookingTrigger) -> BookingStatus:
        """
        Resolve the status a trigger moves the booking to.

        Raises:
            AlreadyTerminal: If the booking is cancelled, completed or no-show.
            InvalidTransition: If the trigger is not valid from the current status.
        """
        if booking.status in TERMINAL_STATUSES:
            raise AlreadyTerminal(booking.id, booking.status.value)

        for t in self.TRANSITIONS:
            if t.from_status == booking.status and t.trigger == trigger:
                logger.debug(
                    "Booking %s: %s -> %s (trigger: %s)",
                    booking.id, booking.status.value, t.to_status.value, trigger.value,
                )
                return t.to_status

        valid = [t.value for t in self.get_valid_triggers(booking.status)]
        raise InvalidTransition(
            f"No valid transition from '{booking.status.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self, status: BookingStatus) -> list[BookingTrigger]:
        """Return all triggers valid from the given status."""
        return [t.trigger for t in self.TRANSITIONS if t.from_status == status]

    @staticmethod
    def is_terminal(status: BookingStatus) -> bool:
        return status in TERMINAL_STATUSES
