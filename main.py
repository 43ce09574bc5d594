"""
Console entry point for the scheduling core.

Runs against the in-memory store, seeded from a JSON availability file
(``AVAILABILITY_CONFIG_PATH`` or ``--config``) or the default Monday-Friday
configuration.

Usage:
    python main.py availability --start 2025-03-10 --end 2025-03-14
    python main.py book --start 2025-03-10T09:00 --name "Ana Silva" --email ana@example.com
    python main.py hours
    python main.py demo
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import date, timedelta
from typing import Optional

from pydantic import ValidationError

from booking_engine.adapters.config_source import StaticConfigSource, file_loader
from booking_engine.adapters.store import InMemoryBookingStore
from booking_engine.bookings.models import BookingStatus, CustomerContact
from booking_engine.config import settings
from booking_engine.errors import BookingError
from booking_engine.scheduling.rules import default_availability_config
from booking_engine.schemas.availability_schema import (
    AvailabilityConfigInput,
    AvailabilityQuery,
    AvailabilityResponse,
    AvailabilitySlotOut,
)
from booking_engine.schemas.booking_schema import (
    BookingOut,
    CreateBookingRequest,
    ErrorResponse,
    UpdateBookingRequest,
)
from booking_engine.service import SchedulingService

logger = logging.getLogger(__name__)

GREEN = "\033[92m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


def build_service(config_path: Optional[str], facility_id: str) -> SchedulingService:
    path = config_path or settings.facility.config_path
    if path:
        source = StaticConfigSource(loader=file_loader(path))
    else:
        source = StaticConfigSource(
            {facility_id: default_availability_config(settings.facility.timezone, facility_id)}
        )
    return SchedulingService(InMemoryBookingStore(), source)


def _emit(payload: dict) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")


async def _availability(service: SchedulingService, query: AvailabilityQuery) -> dict:
    config = await service.config_source.get(query.facility_id)
    slots = await service.get_availability(
        query.facility_id,
        query.start_date,
        query.end_date,
        service_type=query.service_type,
        only_available=query.only_available,
    )
    now = service.clock()
    out = [AvailabilitySlotOut.from_slot(s, config.timezone, now) for s in slots]
    response = AvailabilityResponse(
        facility_id=query.facility_id,
        timezone=config.timezone,
        config_version=config.version,
        slots=out,
        next_available=next((s.start for s in slots if s.available), None),
    )
    return response.model_dump(mode="json")


async def _book(service: SchedulingService, request: CreateBookingRequest) -> dict:
    booking = await service.create_booking(
        request.facility_id,
        request.start_time,
        request.contact(),
        request.service_type,
        end=request.end_time,
        notes=request.notes,
        notification_channel=request.notification_channel,
        metadata=request.metadata,
    )
    await service.shutdown()
    return BookingOut.from_booking(booking).model_dump(mode="json")


async def facility_hours(service: SchedulingService, facility_id: str) -> dict:
    config = await service.config_source.get(facility_id)
    payload = AvailabilityConfigInput.from_config(config).model_dump(mode="json")
    payload["facility_id"] = facility_id
    payload["version"] = config.version
    return payload


async def apply_update(
    service: SchedulingService, booking_id: str, request: UpdateBookingRequest
) -> BookingOut:
    """Route a validated update to the status-change or reschedule path."""
    booking = await service.update_booking(
        booking_id,
        status=request.status,
        new_start=request.start_time,
        actor=request.actor,
        reason=request.cancellation_reason,
    )
    return BookingOut.from_booking(booking)


async def _demo(service: SchedulingService, facility_id: str) -> None:
    """Two customers race for the first free slot, then the winner cancels."""
    today = service.clock().date()
    slots = await service.get_availability(
        facility_id, today, today + timedelta(days=14), only_available=True
    )
    if not slots:
        print(f"{RED}No free slots in the next two weeks.{RESET}")
        return
    target = slots[0]
    print(f"{BOLD}First free slot: {target.start.isoformat()}{RESET}")

    contenders = [
        CustomerContact(name="Ana Silva", email="ana@example.com"),
        CustomerContact(name="Ben Okafor", phone="+1 (212) 555-0101"),
    ]
    results = await asyncio.gather(
        *(service.create_booking(facility_id, target.start, c, "consultation") for c in contenders),
        return_exceptions=True,
    )
    winner = None
    for contact, result in zip(contenders, results):
        if isinstance(result, BookingError):
            print(f"{RED}  {contact.name}: {result.code} - {result.message}{RESET}")
        elif isinstance(result, Exception):
            raise result
        else:
            winner = result
            print(f"{GREEN}  {contact.name}: booked {result.id} ({result.status.value}){RESET}")

    if winner is not None:
        cancelled = await apply_update(
            service,
            winner.id,
            UpdateBookingRequest(status=BookingStatus.CANCELLED, cancellation_reason="demo finished"),
        )
        print(f"{DIM}  {cancelled.id} is now {cancelled.status.value}{RESET}")
    await service.shutdown()
    print(
        f"{DIM}  Notifications sent: {service.dispatcher.sent}, "
        f"failed: {service.dispatcher.failed}{RESET}"
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Query availability and make bookings against the scheduling core."
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON file of facility availability configs.",
    )
    parser.add_argument(
        "--facility",
        type=str,
        default="default",
        help="Facility id (default: default).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging output.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    avail = sub.add_parser("availability", help="List slots for a date range.")
    avail.add_argument("--start", type=date.fromisoformat, required=True)
    avail.add_argument("--end", type=date.fromisoformat, required=True)
    avail.add_argument("--only-available", action="store_true")

    book = sub.add_parser("book", help="Book a slot (wall-clock time in the facility zone).")
    book.add_argument("--start", required=True)
    book.add_argument("--name", required=True)
    book.add_argument("--email", default=None)
    book.add_argument("--phone", default=None)
    book.add_argument("--service", default="consultation")
    book.add_argument("--notes", default="")

    sub.add_parser("hours", help="Show the facility's published availability configuration.")
    sub.add_parser("demo", help="Run a concurrent booking demo.")

    args = parser.parse_args()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        service = build_service(args.config, args.facility)
        if args.command == "availability":
            query = AvailabilityQuery(
                facility_id=args.facility,
                start_date=args.start,
                end_date=args.end,
                only_available=args.only_available,
            )
            _emit(asyncio.run(_availability(service, query)))
        elif args.command == "book":
            request = CreateBookingRequest(
                facility_id=args.facility,
                start_time=args.start,
                customer_name=args.name,
                customer_email=args.email,
                customer_phone=args.phone,
                service_type=args.service,
                notes=args.notes,
            )
            _emit(asyncio.run(_book(service, request)))
        elif args.command == "hours":
            _emit(asyncio.run(facility_hours(service, args.facility)))
        else:
            asyncio.run(_demo(service, args.facility))
    except ValidationError as exc:
        logger.error("Invalid input: %s", exc)
        sys.exit(2)
    except BookingError as exc:
        _emit(ErrorResponse.from_error(exc).model_dump())
        sys.exit(1)
    except (OSError, ValueError) as exc:
        logger.error("Could not load availability config: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
