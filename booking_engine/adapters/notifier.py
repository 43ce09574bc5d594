"""
Notifier contract and fire-and-forget dispatch.

Notifications are side effects of committed state changes. They are handed
to ``NotificationDispatcher.dispatch`` after the store unit commits, run as
detached asyncio tasks, and never change or roll back a booking. A failed
send is logged and counted; the caller is not told.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from booking_engine.bookings.models import Booking
from booking_engine.config import NotificationConfig
from booking_engine.notifications.templates import (
    RenderedMessage,
    build_cancellation_message,
    build_confirmation_message,
    build_reminder_message,
)

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    CONFIRMATION = "confirmation"
    CANCELLATION = "cancellation"
    REMINDER = "reminder"


@dataclass(frozen=True)
class NotificationRequest:
    recipient: str
    kind: NotificationKind
    booking: Booking


class Notifier(Protocol):
    """Delivery collaborator. Returns False (or raises) when delivery failed."""

    async def send(self, request: NotificationRequest) -> bool:
        ...


_BUILDERS: dict[NotificationKind, Callable[..., RenderedMessage]] = {
    NotificationKind.CONFIRMATION: build_confirmation_message,
    NotificationKind.CANCELLATION: build_cancellation_message,
    NotificationKind.REMINDER: build_reminder_message,
}


def render_notification(request: NotificationRequest, config: NotificationConfig) -> RenderedMessage:
    builder = _BUILDERS[request.kind]
    return builder(request.booking, config.sender_name, config.support_email)


class LoggingNotifier:
    """Renders the message and writes it to the log instead of sending it."""

    def __init__(self, config: Optional[NotificationConfig] = None) -> None:
        self.config = config or NotificationConfig()

    async def send(self, request: NotificationRequest) -> bool:
        message = render_notification(request, self.config)
        logger.info(
            "Notification [%s] to %s via %s: %s\n%s",
            request.kind.value,
            request.recipient,
            request.booking.notification_channel.value,
            message.subject,
            message.body,
        )
        return True


class NotificationDispatcher:
    """Schedules notifier calls as background tasks and tracks the outcome."""

    def __init__(self, notifier: Notifier, enabled: bool = True) -> None:
        self.notifier = notifier
        self.enabled = enabled
        self.sent = 0
        self.failed = 0
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, kind: NotificationKind, booking: Booking) -> Optional[asyncio.Task]:
        """Start delivery and return immediately. Must be called from a running loop."""
        if not self.enabled:
            logger.debug("Notifications disabled; skipping %s for %s", kind.value, booking.id)
            return None
        request = NotificationRequest(
            recipient=booking.contact.recipient, kind=kind, booking=booking
        )
        task = asyncio.get_running_loop().create_task(self._deliver(request))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight notification. Used on shutdown and in tests."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    async def _deliver(self, request: NotificationRequest) -> bool:
        try:
            delivered = await self.notifier.send(request)
        except Exception:
            self.failed += 1
            logger.exception(
                "Notifier raised while sending %s for booking %s",
                request.kind.value, request.booking.id,
            )
            return False
        if not delivered:
            self.failed += 1
            logger.warning(
                "Notifier reported failure for %s of booking %s",
                request.kind.value, request.booking.id,
            )
            return False
        self.sent += 1
        logger.debug("Sent %s for booking %s", request.kind.value, request.booking.id)
        return True
