"""Tests for request/response models."""

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from booking_engine.bookings.models import BookingStatus
from booking_engine.errors import RuleViolation, RuleViolationError, SlotNoLongerAvailable
from booking_engine.schemas.availability_schema import (
    AvailabilityConfigInput,
    AvailabilityQuery,
    AvailabilitySlotOut,
)
from booking_engine.schemas.booking_schema import (
    BookingOut,
    CreateBookingRequest,
    ErrorResponse,
    UpdateBookingRequest,
)
from booking_engine.scheduling.slots import AvailabilitySlot
from tests.conftest import MONDAY, make_booking, utc


def _config_payload(**overrides) -> dict:
    payload = {
        "working_hours": [
            {"day_of_week": 1, "start_time": "09:00", "end_time": "12:00"},
            {"day_of_week": 1, "start_time": "13:00", "end_time": "17:00"},
            {"day_of_week": 2, "start_time": "09:00", "end_time": "17:00", "enabled": False},
        ],
        "slot_duration": 30,
        "buffer_time": 10,
        "timezone": "Europe/London",
    }
    payload.update(overrides)
    return payload


class TestAvailabilityConfigInput:
    def test_to_config(self):
        config = AvailabilityConfigInput.model_validate(_config_payload()).to_config("clinic", 3)
        assert config.facility_id == "clinic"
        assert config.version == 3
        assert config.timezone == "Europe/London"
        assert config.buffer_minutes == 10
        assert [(i.start_minute, i.end_minute) for i in config.working_hours[1]] == [
            (540, 720), (780, 1020),
        ]

    def test_disabled_day_dropped(self):
        config = AvailabilityConfigInput.model_validate(_config_payload()).to_config()
        assert 2 not in config.working_hours

    def test_exclusions_converted(self):
        payload = _config_payload(
            excluded_dates=["2025-12-25"],
            excluded_time_ranges=[{
                "start_time": "2025-03-10T12:00:00+01:00",
                "end_time": "2025-03-10T13:00:00+01:00",
                "reason": "staff meeting",
            }],
        )
        config = AvailabilityConfigInput.model_validate(payload).to_config()
        assert config.excluded_dates == frozenset({date(2025, 12, 25)})
        excluded = config.excluded_ranges[0]
        assert excluded.start == utc(2025, 3, 10, 11)
        assert excluded.reason == "staff meeting"

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError, match="Unknown time zone"):
            AvailabilityConfigInput.model_validate(_config_payload(timezone="Mars/Olympus"))

    @pytest.mark.parametrize("duration", [10, 481])
    def test_slot_duration_bounds(self, duration):
        with pytest.raises(ValidationError):
            AvailabilityConfigInput.model_validate(_config_payload(slot_duration=duration))

    def test_negative_buffer(self):
        with pytest.raises(ValidationError):
            AvailabilityConfigInput.model_validate(_config_payload(buffer_time=-5))

    def test_working_hours_out_of_order(self):
        payload = _config_payload(
            working_hours=[{"day_of_week": 1, "start_time": "17:00", "end_time": "09:00"}]
        )
        with pytest.raises(ValidationError, match="End time must be after start time"):
            AvailabilityConfigInput.model_validate(payload)

    def test_bad_time_format(self):
        payload = _config_payload(
            working_hours=[{"day_of_week": 1, "start_time": "9am", "end_time": "17:00"}]
        )
        with pytest.raises(ValidationError, match="HH:MM"):
            AvailabilityConfigInput.model_validate(payload)

    def test_from_config_renders_hhmm(self):
        config = AvailabilityConfigInput.model_validate(_config_payload()).to_config()
        rendered = AvailabilityConfigInput.from_config(config)
        assert [(h.day_of_week, h.start_time, h.end_time) for h in rendered.working_hours] == [
            (1, "09:00", "12:00"), (1, "13:00", "17:00"),
        ]
        assert rendered.slot_duration == 30
        assert rendered.to_config() == config

    def test_from_config_end_of_day(self):
        payload = _config_payload(
            working_hours=[{"day_of_week": 0, "start_time": "20:00", "end_time": "24:00"}]
        )
        config = AvailabilityConfigInput.model_validate(payload).to_config()
        assert AvailabilityConfigInput.from_config(config).working_hours[0].end_time == "24:00"

    def test_naive_exclusion_rejected(self):
        payload = _config_payload(excluded_time_ranges=[{
            "start_time": "2025-03-10T12:00:00",
            "end_time": "2025-03-10T13:00:00",
        }])
        with pytest.raises(ValidationError):
            AvailabilityConfigInput.model_validate(payload)


class TestAvailabilityQuery:
    def test_valid(self):
        query = AvailabilityQuery(start_date=MONDAY, end_date=MONDAY)
        assert query.facility_id == "default"
        assert not query.only_available

    def test_reversed_range(self):
        with pytest.raises(ValidationError, match="end_date"):
            AvailabilityQuery(start_date=MONDAY, end_date=date(2025, 3, 9))


class TestAvailabilitySlotOut:
    def test_local_fields(self):
        slot = AvailabilitySlot(utc(2025, 3, 10, 14), utc(2025, 3, 10, 15), available=False)
        out = AvailabilitySlotOut.from_slot(slot, "America/New_York", utc(2025, 3, 10, 12))
        assert out.local_start == "2025-03-10T10:00"
        assert out.local_end == "2025-03-10T11:00"
        assert out.duration == 60
        assert out.day_of_week == 1
        assert out.is_today
        assert not out.is_weekend
        assert not out.available


class TestCreateBookingRequest:
    def _payload(self, **overrides) -> dict:
        payload = {
            "start_time": "2025-03-10T09:00:00",
            "customer_name": "Ana Silva",
            "customer_email": "ana@example.com",
            "service_type": "consultation",
        }
        payload.update(overrides)
        return payload

    def test_valid(self):
        request = CreateBookingRequest.model_validate(self._payload())
        assert request.start_time == datetime(2025, 3, 10, 9)
        assert request.contact().email == "ana@example.com"

    def test_phone_only(self):
        request = CreateBookingRequest.model_validate(
            self._payload(customer_email=None, customer_phone="+1 (212) 555-0101")
        )
        assert request.contact().phone == "+12125550101"

    def test_needs_email_or_phone(self):
        with pytest.raises(ValidationError, match="customer_email or customer_phone"):
            CreateBookingRequest.model_validate(self._payload(customer_email=None))

    def test_bad_email(self):
        with pytest.raises(ValidationError):
            CreateBookingRequest.model_validate(self._payload(customer_email="not-an-email"))

    def test_end_before_start(self):
        with pytest.raises(ValidationError, match="End time must be after start time"):
            CreateBookingRequest.model_validate(self._payload(end_time="2025-03-10T08:00:00"))

    def test_mixed_offsets_rejected(self):
        with pytest.raises(ValidationError, match="offset"):
            CreateBookingRequest.model_validate(
                self._payload(end_time="2025-03-10T09:30:00+00:00")
            )

    def test_empty_name(self):
        with pytest.raises(ValidationError):
            CreateBookingRequest.model_validate(self._payload(customer_name=""))


class TestUpdateBookingRequest:
    def test_status_only(self):
        request = UpdateBookingRequest(status=BookingStatus.CANCELLED)
        assert request.actor == "customer"

    def test_both_rejected(self):
        with pytest.raises(ValidationError, match="exactly one"):
            UpdateBookingRequest(status=BookingStatus.CANCELLED, start_time=utc(2025, 3, 10, 9))

    def test_neither_rejected(self):
        with pytest.raises(ValidationError, match="exactly one"):
            UpdateBookingRequest()


class TestBookingOut:
    def test_from_booking(self):
        booking = make_booking(utc(2025, 3, 10, 9), utc(2025, 3, 10, 9, 30))
        out = BookingOut.from_booking(booking)
        assert out.id == booking.id
        assert out.status == BookingStatus.CONFIRMED
        assert out.display_time == "Monday, March 10, 2025 at 9:00 AM - 9:30 AM"
        assert out.model_dump(mode="json")["status"] == "confirmed"


class TestErrorResponse:
    def test_rule_violation(self):
        out = ErrorResponse.from_error(RuleViolationError(RuleViolation.TOO_SOON))
        assert out.code == "rule_violation"
        assert out.violation == "too_soon"
        assert not out.retryable

    def test_plain_error(self):
        out = ErrorResponse.from_error(SlotNoLongerAvailable("Slot taken."))
        assert out.code == "slot_no_longer_available"
        assert out.violation is None
