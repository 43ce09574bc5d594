from booking_engine.adapters.config_source import ConfigSource, StaticConfigSource
from booking_engine.adapters.notifier import (
    LoggingNotifier,
    NotificationDispatcher,
    NotificationKind,
    NotificationRequest,
    Notifier,
)
from booking_engine.adapters.store import BookingStore, BookingUnit, InMemoryBookingStore

__all__ = [
    "BookingStore",
    "BookingUnit",
    "ConfigSource",
    "InMemoryBookingStore",
    "LoggingNotifier",
    "NotificationDispatcher",
    "NotificationKind",
    "NotificationRequest",
    "Notifier",
    "StaticConfigSource",
]
