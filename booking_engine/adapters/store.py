"""
Persistent store contract and the in-memory reference store.

The core never holds a process mutex around check-then-insert. Mutual
exclusion is the store's atomic unit: everything done through a
``BookingUnit`` is serialized against other units for the same facility and
is committed as a whole or not at all.

In production the unit maps onto a serializable transaction or an exclusion
constraint in the database. ``InMemoryBookingStore`` gives the same
guarantees inside one event loop and is what tests and the console demo use.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import (
    AsyncContextManager,
    AsyncIterator,
    Awaitable,
    Collection,
    Optional,
    Protocol,
    TypeVar,
)

from booking_engine.bookings.models import Booking, BookingStatus
from booking_engine.errors import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BookingUnit(Protocol):
    """Reads and staged writes inside one atomic unit for a facility."""

    async def get(self, booking_id: str) -> Optional[Booking]:
        ...

    async def find_overlapping(
        self,
        facility_id: str,
        start: datetime,
        end: datetime,
        statuses: Collection[BookingStatus],
    ) -> list[Booking]:
        ...

    async def insert(self, booking: Booking) -> None:
        ...

    async def update(self, booking: Booking) -> None:
        ...


class BookingStore(Protocol):
    """Persistence collaborator. Bookings are never hard-deleted."""

    def unit_of_work(self, facility_id: str) -> AsyncContextManager[BookingUnit]:
        ...

    async def get(self, booking_id: str) -> Optional[Booking]:
        ...

    async def list_bookings(
        self,
        facility_id: str,
        statuses: Optional[Collection[BookingStatus]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Booking]:
        ...


async def call_with_timeout(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """Await a store call, turning a timeout into ``StoreUnavailable``.

    On timeout the inner task is cancelled, so an open unit is abandoned
    without committing.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Store %s timed out after %.2fs", operation, timeout)
        raise StoreUnavailable(
            f"The booking store did not respond within {timeout:g}s ({operation})."
        ) from None


def _matches(
    booking: Booking,
    facility_id: str,
    statuses: Optional[Collection[BookingStatus]],
    start: Optional[datetime],
    end: Optional[datetime],
) -> bool:
    if booking.facility_id != facility_id:
        return False
    if statuses is not None and booking.status not in statuses:
        return False
    if end is not None and booking.start >= end:
        return False
    if start is not None and booking.end <= start:
        return False
    return True


class _InMemoryUnit:
    """Staged view over the store; committed by the owning context manager."""

    def __init__(self, store: "InMemoryBookingStore", facility_id: str) -> None:
        self._store = store
        self.facility_id = facility_id
        self.staged: dict[str, Booking] = {}

    async def get(self, booking_id: str) -> Optional[Booking]:
        await asyncio.sleep(0)
        return self.staged.get(booking_id) or self._store._bookings.get(booking_id)

    async def find_overlapping(
        self,
        facility_id: str,
        start: datetime,
        end: datetime,
        statuses: Collection[BookingStatus],
    ) -> list[Booking]:
        await asyncio.sleep(0)
        view = {**self._store._bookings, **self.staged}
        found = [b for b in view.values() if _matches(b, facility_id, statuses, start, end)]
        return sorted(found, key=lambda b: b.start)

    async def insert(self, booking: Booking) -> None:
        self._check_facility(booking)
        if booking.id in self.staged or booking.id in self._store._bookings:
            raise ValueError(f"Booking id {booking.id} already exists")
        await asyncio.sleep(0)
        self.staged[booking.id] = booking

    async def update(self, booking: Booking) -> None:
        self._check_facility(booking)
        if booking.id not in self.staged and booking.id not in self._store._bookings:
            raise ValueError(f"Booking id {booking.id} does not exist")
        await asyncio.sleep(0)
        self.staged[booking.id] = booking

    def _check_facility(self, booking: Booking) -> None:
        if booking.facility_id != self.facility_id:
            raise ValueError(
                f"Unit for facility '{self.facility_id}' cannot write a booking "
                f"of facility '{booking.facility_id}'"
            )


class InMemoryBookingStore:
    """Dict-backed store with one ``asyncio.Lock`` per facility."""

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self.commits = 0

    @asynccontextmanager
    async def unit_of_work(self, facility_id: str) -> AsyncIterator[_InMemoryUnit]:
        lock = self._locks.setdefault(facility_id, asyncio.Lock())
        async with lock:
            unit = _InMemoryUnit(self, facility_id)
            yield unit
            # only reached when the body exits cleanly
            self._bookings.update(unit.staged)
            self.commits += 1
            if unit.staged:
                logger.debug(
                    "Committed %d booking write(s) for facility %s",
                    len(unit.staged), facility_id,
                )

    async def get(self, booking_id: str) -> Optional[Booking]:
        await asyncio.sleep(0)
        return self._bookings.get(booking_id)

    async def list_bookings(
        self,
        facility_id: str,
        statuses: Optional[Collection[BookingStatus]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Booking]:
        await asyncio.sleep(0)
        found = [
            b for b in self._bookings.values()
            if _matches(b, facility_id, statuses, start, end)
        ]
        return sorted(found, key=lambda b: b.start)

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        self._bookings.clear()
        self._locks.clear()
        self.commits = 0
