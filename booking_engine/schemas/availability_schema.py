"""Availability configuration and query data models."""

from datetime import date, datetime, timezone
from typing import Optional

from pydantic import AwareDatetime, BaseModel, Field, field_validator, model_validator

from booking_engine.errors import InvalidTimeInput
from booking_engine.scheduling.rules import AvailabilityConfig, ExcludedTimeRange, WorkingInterval
from booking_engine.scheduling.slots import AvailabilitySlot
from booking_engine.scheduling.timezones import day_of_week, local_date, resolve_zone, to_wall_clock
from booking_engine.utils import minutes_to_time, time_to_minutes


class WorkingHoursInput(BaseModel):
    """One working window on one day of the week (0=Sunday)."""
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    enabled: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_hhmm(cls, value: str) -> str:
        time_to_minutes(value)
        return value

    @model_validator(mode="after")
    def _check_order(self) -> "WorkingHoursInput":
        if time_to_minutes(self.end_time) <= time_to_minutes(self.start_time):
            raise ValueError("End time must be after start time")
        return self


class ExcludedTimeRangeInput(BaseModel):
    start_time: AwareDatetime
    end_time: AwareDatetime
    reason: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def _check_order(self) -> "ExcludedTimeRangeInput":
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class AvailabilityConfigInput(BaseModel):
    """Validated availability configuration as published by an administrator."""
    working_hours: list[WorkingHoursInput] = Field(min_length=1)
    slot_duration: int = Field(ge=15, le=480)
    buffer_time: int = Field(default=0, ge=0, le=120)
    min_lead_time_minutes: int = Field(default=0, ge=0, le=7 * 24 * 60)
    max_advance_days: int = Field(default=90, ge=1, le=365)
    timezone: str = Field(min_length=1)
    excluded_dates: list[date] = Field(default_factory=list)
    excluded_time_ranges: list[ExcludedTimeRangeInput] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            resolve_zone(value)
        except InvalidTimeInput as exc:
            raise ValueError(exc.message) from None
        return value

    @classmethod
    def from_config(cls, config: AvailabilityConfig) -> "AvailabilityConfigInput":
        """Render a published snapshot back into its administrator-facing form."""
        return cls(
            working_hours=[
                WorkingHoursInput(
                    day_of_week=day,
                    start_time=minutes_to_time(interval.start_minute),
                    end_time=minutes_to_time(interval.end_minute),
                )
                for day in sorted(config.working_hours)
                for interval in config.working_hours[day]
            ],
            slot_duration=config.slot_duration_minutes,
            buffer_time=config.buffer_minutes,
            min_lead_time_minutes=config.min_lead_time_minutes,
            max_advance_days=config.max_advance_days,
            timezone=config.timezone,
            excluded_dates=sorted(config.excluded_dates),
            excluded_time_ranges=[
                ExcludedTimeRangeInput(start_time=r.start, end_time=r.end, reason=r.reason or None)
                for r in config.excluded_ranges
            ],
        )

    def to_config(self, facility_id: str = "default", version: int = 0) -> AvailabilityConfig:
        hours: dict[int, list[WorkingInterval]] = {}
        for entry in self.working_hours:
            if not entry.enabled:
                continue
            hours.setdefault(entry.day_of_week, []).append(
                WorkingInterval(time_to_minutes(entry.start_time), time_to_minutes(entry.end_time))
            )
        return AvailabilityConfig(
            timezone=self.timezone,
            working_hours={day: tuple(intervals) for day, intervals in hours.items()},
            slot_duration_minutes=self.slot_duration,
            buffer_minutes=self.buffer_time,
            min_lead_time_minutes=self.min_lead_time_minutes,
            max_advance_days=self.max_advance_days,
            excluded_ranges=tuple(
                ExcludedTimeRange(
                    r.start_time.astimezone(timezone.utc),
                    r.end_time.astimezone(timezone.utc),
                    r.reason or "",
                )
                for r in self.excluded_time_ranges
            ),
            excluded_dates=frozenset(self.excluded_dates),
            facility_id=facility_id,
            version=version,
        )


class AvailabilityQuery(BaseModel):
    """GetAvailability request: an inclusive range of local dates."""
    facility_id: str = Field(default="default", min_length=1)
    start_date: date
    end_date: date
    service_type: Optional[str] = None
    only_available: bool = False

    @model_validator(mode="after")
    def _check_range(self) -> "AvailabilityQuery":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AvailabilitySlotOut(BaseModel):
    start_time: datetime
    end_time: datetime
    local_start: str
    local_end: str
    duration: int
    available: bool
    day_of_week: int
    is_today: bool
    is_weekend: bool

    @classmethod
    def from_slot(cls, slot: AvailabilitySlot, zone: str, now: datetime) -> "AvailabilitySlotOut":
        dow = day_of_week(slot.start, zone)
        return cls(
            start_time=slot.start,
            end_time=slot.end,
            local_start=to_wall_clock(slot.start, zone).isoformat(timespec="minutes"),
            local_end=to_wall_clock(slot.end, zone).isoformat(timespec="minutes"),
            duration=slot.duration_minutes,
            available=slot.available,
            day_of_week=dow,
            is_today=local_date(slot.start, zone) == local_date(now, zone),
            is_weekend=dow in (0, 6),
        )


class AvailabilityResponse(BaseModel):
    facility_id: str
    timezone: str
    config_version: int
    slots: list[AvailabilitySlotOut] = Field(default_factory=list)
    next_available: Optional[datetime] = None
