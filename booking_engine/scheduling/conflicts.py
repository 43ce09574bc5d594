"""
Conflict checking between candidate slots and existing bookings.

Buffer policy: ``buffer_minutes`` is a gap required between consecutive
bookings. A slot conflicts with an active booking when

    slot.start < booking.end + buffer  and  booking.start < slot.end + buffer

which is the same as expanding the booking by the full buffer on both sides
and testing half-open overlap.

``filter_available`` works on a snapshot and is advisory only.
``is_slot_available`` runs inside the store's atomic unit and is the
enforcement point at reservation time.
"""

import logging
from bisect import bisect_right
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Collection, Iterable

from booking_engine.bookings.models import ACTIVE_STATUSES, Booking
from booking_engine.scheduling.slots import AvailabilitySlot, TimeSlot

if TYPE_CHECKING:
    from booking_engine.adapters.store import BookingUnit

logger = logging.getLogger(__name__)


def intervals_conflict(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
    buffer: timedelta = timedelta(0),
) -> bool:
    """Half-open overlap test with a required gap of ``buffer`` between the two."""
    return a_start < b_end + buffer and b_start < a_end + buffer


def _busy_intervals(bookings: Iterable[Booking], buffer: timedelta) -> list[tuple[datetime, datetime]]:
    """Merge buffer-expanded active bookings into sorted, disjoint intervals."""
    spans = sorted(
        (b.start - buffer, b.end + buffer) for b in bookings if b.status in ACTIVE_STATUSES
    )
    merged: list[tuple[datetime, datetime]] = []
    for start, end in spans:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


class ConflictChecker:
    """Overlap checks for one facility calendar under a fixed buffer."""

    def __init__(self, buffer_minutes: int = 0) -> None:
        if buffer_minutes < 0:
            raise ValueError(f"buffer_minutes must be >= 0, got {buffer_minutes}")
        self.buffer = timedelta(minutes=buffer_minutes)

    def filter_available(
        self, candidates: Iterable[TimeSlot], existing: Iterable[Booking]
    ) -> list[AvailabilitySlot]:
        """Mark each candidate available unless it overlaps an active booking."""
        busy = _busy_intervals(existing, self.buffer)
        starts = [start for start, _ in busy]
        result = []
        for slot in candidates:
            available = not self._hits_busy(slot, busy, starts)
            result.append(AvailabilitySlot(slot.start, slot.end, available=available))
        return result

    def find_conflicts(
        self, slot: TimeSlot, bookings: Iterable[Booking], exclude_ids: Collection[str] = ()
    ) -> list[Booking]:
        return [
            b for b in bookings
            if b.status in ACTIVE_STATUSES
            and b.id not in exclude_ids
            and intervals_conflict(slot.start, slot.end, b.start, b.end, self.buffer)
        ]

    async def is_slot_available(
        self,
        slot: TimeSlot,
        facility_id: str,
        unit: "BookingUnit",
        exclude_ids: Collection[str] = (),
    ) -> bool:
        """Authoritative check; must be awaited inside the unit that will insert."""
        nearby = await unit.find_overlapping(
            facility_id, slot.start - self.buffer, slot.end + self.buffer, ACTIVE_STATUSES
        )
        conflicts = self.find_conflicts(slot, nearby, exclude_ids)
        if conflicts:
            logger.debug(
                "Slot %s conflicts with %s", slot.start.isoformat(), [b.id for b in conflicts]
            )
        return not conflicts

    @staticmethod
    def _hits_busy(
        slot: TimeSlot, busy: list[tuple[datetime, datetime]], starts: list[datetime]
    ) -> bool:
        idx = bisect_right(starts, slot.start) - 1
        if idx >= 0 and busy[idx][1] > slot.start:
            return True
        nxt = idx + 1
        return nxt < len(busy) and busy[nxt][0] < slot.end


def filter_available(
    candidates: Iterable[TimeSlot], existing: Iterable[Booking], buffer_minutes: int = 0
) -> list[AvailabilitySlot]:
    return ConflictChecker(buffer_minutes).filter_available(candidates, existing)


async def is_slot_available(
    slot: TimeSlot,
    facility_id: str,
    unit: "BookingUnit",
    buffer_minutes: int = 0,
    exclude_ids: Collection[str] = (),
) -> bool:
    return await ConflictChecker(buffer_minutes).is_slot_available(
        slot, facility_id, unit, exclude_ids
    )
