from booking_engine.scheduling.rules import (
    AvailabilityConfig,
    AvailabilityRuleEngine,
    DayOfWeek,
    ExcludedTimeRange,
    WorkingInterval,
    default_availability_config,
    weekly_hours,
)
from booking_engine.scheduling.slots import AvailabilitySlot, SlotSequence, TimeSlot, generate_slots
from booking_engine.scheduling.timezones import to_instant, to_wall_clock

__all__ = [
    "AvailabilityConfig",
    "AvailabilityRuleEngine",
    "AvailabilitySlot",
    "DayOfWeek",
    "ExcludedTimeRange",
    "SlotSequence",
    "TimeSlot",
    "WorkingInterval",
    "default_availability_config",
    "generate_slots",
    "to_instant",
    "to_wall_clock",
    "weekly_hours",
]
