"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""

from datetime import timedelta

import pytest


class TestSchedulingImports:
    def test_import_scheduling_package(self):
        from booking_engine.scheduling import (
            AvailabilityConfig, AvailabilityRuleEngine, TimeSlot, generate_slots,
        )
        assert callable(generate_slots)
        assert AvailabilityRuleEngine is not None

    def test_import_conflicts(self):
        from booking_engine.scheduling.conflicts import ConflictChecker, filter_available
        assert ConflictChecker(buffer_minutes=15).buffer == timedelta(minutes=15)
        assert callable(filter_available)

    def test_default_config(self):
        from booking_engine.scheduling import default_availability_config
        config = default_availability_config()
        assert config.timezone == "America/New_York"
        assert config.slot_duration_minutes == 60
        assert set(config.working_hours) == {1, 2, 3, 4, 5}


class TestBookingImports:
    def test_import_bookings_package(self):
        from booking_engine.bookings import BookingStatus, BookingStateMachine, BookingTrigger
        assert BookingStatus.CONFIRMED == "confirmed"
        assert len(BookingStateMachine.TRANSITIONS) >= len(BookingTrigger)

    def test_import_manager(self):
        from booking_engine.bookings.manager import BookingLifecycleManager
        assert BookingLifecycleManager is not None

    def test_import_reminders(self):
        from booking_engine.bookings.reminders import format_booking_time, should_send_reminder
        assert callable(should_send_reminder)


class TestSchemaImports:
    def test_import_availability_schema(self):
        from booking_engine.schemas.availability_schema import (
            AvailabilityConfigInput, AvailabilityQuery, AvailabilityResponse,
        )
        assert AvailabilityQuery.model_fields["facility_id"].default == "default"

    def test_import_booking_schema(self):
        from booking_engine.schemas.booking_schema import (
            BookingOut, CreateBookingRequest, ErrorResponse, UpdateBookingRequest,
        )
        assert CreateBookingRequest is not None


class TestAdapterImports:
    def test_import_adapters_package(self):
        from booking_engine.adapters import (
            InMemoryBookingStore, LoggingNotifier, NotificationDispatcher, StaticConfigSource,
        )
        assert InMemoryBookingStore().commits == 0

    def test_unknown_facility_error_code(self):
        from booking_engine.errors import UnknownFacility
        assert UnknownFacility("x").code == "unknown_facility"


class TestConfigImport:
    def test_import_config(self):
        from booking_engine.config import settings
        assert settings.store.timeout_seconds > 0
        assert settings.store.read_retries >= 0
        assert settings.booking.booking_id_prefix


class TestEntryPoint:
    def test_build_service_with_default_config(self):
        from main import build_service
        from booking_engine.service import SchedulingService
        service = build_service(None, "default")
        assert isinstance(service, SchedulingService)

    def test_build_service_unknown_path_raises(self, tmp_path):
        from main import build_service
        with pytest.raises(OSError):
            build_service(str(tmp_path / "missing.json"), "default")
