"""
Error taxonomy for the scheduling core.

Every error a caller can act on is a ``BookingError`` subclass with a stable
``code`` so transports can branch on kind without string matching. Rule and
lifecycle errors are terminal for the request; ``SlotNoLongerAvailable`` and
``StoreUnavailable`` tell the caller to re-fetch or retry.
"""

from enum import Enum
from typing import Optional


class RuleViolation(str, Enum):
    """Which availability rule rejected an instant."""

    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    EXCLUDED = "excluded"
    TOO_SOON = "too_soon"
    TOO_FAR_AHEAD = "too_far_ahead"


RULE_VIOLATION_MESSAGES: dict[RuleViolation, str] = {
    RuleViolation.OUTSIDE_WORKING_HOURS: "The requested time is outside working hours.",
    RuleViolation.EXCLUDED: "The requested time falls in a closed period.",
    RuleViolation.TOO_SOON: "The requested time does not meet the minimum notice period.",
    RuleViolation.TOO_FAR_AHEAD: "The requested time is beyond the advance booking window.",
}


class BookingError(Exception):
    """Base exception for all scheduling errors."""

    code = "booking_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidTimeInput(BookingError):
    """Malformed or non-existent wall-clock value, or an unknown time zone."""

    code = "invalid_time_input"


class RuleViolationError(BookingError):
    """The requested instant breaks an availability rule."""

    code = "rule_violation"

    def __init__(self, violation: RuleViolation, message: Optional[str] = None) -> None:
        super().__init__(message or RULE_VIOLATION_MESSAGES[violation])
        self.violation = violation


class SlotNoLongerAvailable(BookingError):
    """Lost the race at reservation time; re-fetch availability and retry."""

    code = "slot_no_longer_available"


class BookingNotFound(BookingError):
    """No booking exists with the given id."""

    code = "not_found"

    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking {booking_id} not found.")
        self.booking_id = booking_id


class AlreadyTerminal(BookingError):
    """The booking is cancelled, completed or marked no-show."""

    code = "already_terminal"

    def __init__(self, booking_id: str, status: str) -> None:
        super().__init__(f"Booking {booking_id} is already {status}.")
        self.booking_id = booking_id
        self.status = status


class InvalidBookingDetails(BookingError):
    """Required booking data (service type, contact) is missing or blank."""

    code = "invalid_booking_details"


class InvalidTransition(BookingError):
    """The status change is not allowed from the booking's current status."""

    code = "invalid_transition"


class StoreUnavailable(BookingError):
    """Transport or timeout failure talking to the persistence collaborator."""

    code = "store_unavailable"
    retryable = True


class UnknownFacility(BookingError):
    """No availability configuration is published for the facility."""

    code = "unknown_facility"

    def __init__(self, facility_id: str) -> None:
        super().__init__(f"No availability configuration for facility '{facility_id}'.")
        self.facility_id = facility_id
