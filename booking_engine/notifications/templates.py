"""Message construction for confirmation, cancellation and reminder notices."""

from dataclasses import dataclass
from typing import Optional

from booking_engine.bookings.models import Booking, BookingStatus
from booking_engine.bookings.reminders import format_booking_time


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    body: str


def _detail_lines(booking: Booking) -> list[str]:
    when = format_booking_time(booking)
    lines = [
        f"  Reference: {booking.id}",
        f"  Service: {booking.service_type}",
        f"  Date: {when['date']}",
        f"  Time: {when['time']} ({booking.timezone})",
    ]
    if booking.notes:
        lines.append(f"  Notes: {booking.notes}")
    return lines


def build_confirmation_message(
    booking: Booking, sender_name: str, support_email: Optional[str] = None
) -> RenderedMessage:
    """Booking created (or rescheduled into) a slot."""
    lines = [f"Hi {booking.contact.name},", ""]
    if booking.rescheduled_from:
        lines.append(f"Your appointment {booking.rescheduled_from} has been moved:")
    elif booking.status == BookingStatus.PENDING:
        lines.append("We received your booking request. It is awaiting confirmation:")
    else:
        lines.append("Your appointment is confirmed:")
    lines.extend(_detail_lines(booking))
    lines.append("")
    if support_email:
        lines.append(f"Need to change something? Contact {support_email}.")
    lines.append(f"- {sender_name}")
    return RenderedMessage(subject=f"Booking confirmation {booking.id}", body="\n".join(lines))


def build_cancellation_message(
    booking: Booking, sender_name: str, support_email: Optional[str] = None
) -> RenderedMessage:
    """Booking cancelled by the customer, staff or the system."""
    lines = [f"Hi {booking.contact.name},", "", "Your appointment has been cancelled:"]
    lines.extend(_detail_lines(booking))
    if booking.cancellation_reason:
        lines.append(f"  Reason: {booking.cancellation_reason}")
    lines.append("")
    if support_email:
        lines.append(f"To book again, reply or contact {support_email}.")
    lines.append(f"- {sender_name}")
    return RenderedMessage(subject=f"Booking cancelled {booking.id}", body="\n".join(lines))


def build_reminder_message(
    booking: Booking, sender_name: str, support_email: Optional[str] = None
) -> RenderedMessage:
    when = format_booking_time(booking)
    lines = [
        f"Hi {booking.contact.name},",
        "",
        f"A reminder of your {booking.service_type} appointment on {when['date_time']}.",
    ]
    lines.extend(_detail_lines(booking))
    lines.append("")
    if support_email:
        lines.append(f"Can't make it? Let us know at {support_email}.")
    lines.append(f"- {sender_name}")
    return RenderedMessage(subject=f"Appointment reminder {booking.id}", body="\n".join(lines))
