"""
Organization schedule settings.

Each organization has exactly one settings document holding its working
hours, booking rules, reminder policy and slot-generation defaults. The
document is stored as JSON and validated through the pydantic schema below
on every read and write.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import JSON, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import (
    DEFAULT_ADVANCE_BOOKING_DAYS,
    DEFAULT_APPOINTMENT_DURATION,
    DEFAULT_BUFFER_MINUTES,
    DEFAULT_CANCELLATION_DEADLINE_HOURS,
    DEFAULT_MAX_APPOINTMENTS_PER_DAY,
    DEFAULT_MAX_REMINDER_RETRIES,
    DEFAULT_REMINDER_TIMINGS_HOURS,
    DEFAULT_RETRY_INTERVAL_MINUTES,
    MAX_ADVANCE_BOOKING_DAYS,
    MAX_APPOINTMENTS_PER_DAY,
    MAX_BUFFER_MINUTES,
    MAX_CANCELLATION_DEADLINE_HOURS,
    MAX_DURATION_MINUTES,
    MAX_REMINDER_HOURS,
    MAX_REMINDER_RETRIES,
    MAX_REMINDERS,
    MAX_RETRY_INTERVAL_MINUTES,
    MAX_STRING_LENGTH,
    MAX_TIME_BETWEEN_APPOINTMENTS,
    MIN_ADVANCE_BOOKING_DAYS,
    MIN_BUFFER_MINUTES,
    MIN_CANCELLATION_DEADLINE_HOURS,
    MIN_DURATION_MINUTES,
    MIN_REMINDER_HOURS,
    MIN_TIME_BETWEEN_APPOINTMENTS,
    TIME_PATTERN,
    WEEKDAYS,
)
from core.config import DEFAULT_TIMEZONE
from core.database import Base
from utils.datetime_utils import is_valid_timezone, time_to_minutes


# Settings schema validation models
class WorkingDayHours(BaseModel):
    """Opening hours for a single weekday."""
    is_open: bool
    start: str = Field(default="09:00", description="Opening time (24-hour format HH:MM)")
    end: str = Field(default="18:00", description="Closing time (24-hour format HH:MM)")

    @field_validator("start", "end")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError(f"Invalid time format (expected HH:MM): {value}")
        return value

    @model_validator(mode="after")
    def validate_range(self) -> "WorkingDayHours":
        """When open, the day must end after it starts."""
        if self.is_open and time_to_minutes(self.end) <= time_to_minutes(self.start):
            raise ValueError(f"End time must be after start time ({self.start} - {self.end})")
        return self


class BookingRules(BaseModel):
    """Schema for booking restriction rules."""
    advance_booking_days: int = Field(
        default=DEFAULT_ADVANCE_BOOKING_DAYS,
        ge=MIN_ADVANCE_BOOKING_DAYS,
        le=MAX_ADVANCE_BOOKING_DAYS,
        description="Maximum number of days ahead a client may book",
    )
    cancellation_deadline_hours: int = Field(
        default=DEFAULT_CANCELLATION_DEADLINE_HOURS,
        ge=MIN_CANCELLATION_DEADLINE_HOURS,
        le=MAX_CANCELLATION_DEADLINE_HOURS,
        description="Minimum notice in hours for cancelling or modifying an appointment",
    )
    allow_online_booking: bool = Field(default=True, description="Whether the public booking API is enabled")
    require_confirmation: bool = Field(default=False, description="Whether bookings must be confirmed by staff")
    allow_same_day_booking: bool = Field(default=True, description="Whether clients may book for today")
    max_appointments_per_day: Optional[int] = Field(
        default=DEFAULT_MAX_APPOINTMENTS_PER_DAY, ge=1, le=MAX_APPOINTMENTS_PER_DAY
    )
    min_time_between_appointments: Optional[int] = Field(
        default=None, ge=MIN_TIME_BETWEEN_APPOINTMENTS, le=MAX_TIME_BETWEEN_APPOINTMENTS
    )


class ReminderConfig(BaseModel):
    """Schema for reminder policy (consumed by the notification subsystem)."""
    enabled: bool = True
    timings: List[int] = Field(
        default_factory=lambda: list(DEFAULT_REMINDER_TIMINGS_HOURS),
        max_length=MAX_REMINDERS,
        description="Hours before the appointment at which reminders are sent",
    )
    max_retries: int = Field(default=DEFAULT_MAX_REMINDER_RETRIES, ge=0, le=MAX_REMINDER_RETRIES)
    retry_interval_minutes: int = Field(default=DEFAULT_RETRY_INTERVAL_MINUTES, ge=1, le=MAX_RETRY_INTERVAL_MINUTES)

    @field_validator("timings")
    @classmethod
    def validate_timings(cls, timings: List[int]) -> List[int]:
        for timing in timings:
            if timing < MIN_REMINDER_HOURS or timing > MAX_REMINDER_HOURS:
                raise ValueError(
                    f"Reminder timing must be between {MIN_REMINDER_HOURS} and {MAX_REMINDER_HOURS} hours"
                )
        return timings


def _default_working_hours() -> Dict[str, WorkingDayHours]:
    hours = {day: WorkingDayHours(is_open=True, start="09:00", end="18:00") for day in WEEKDAYS[:5]}
    hours["saturday"] = WorkingDayHours(is_open=False, start="09:00", end="12:00")
    hours["sunday"] = WorkingDayHours(is_open=False, start="09:00", end="12:00")
    return hours


class ScheduleSettings(BaseModel):
    """Schema for all organization schedule settings."""
    working_hours: Dict[str, WorkingDayHours] = Field(default_factory=_default_working_hours)
    booking_rules: BookingRules = Field(default_factory=BookingRules)
    reminder_config: ReminderConfig = Field(default_factory=ReminderConfig)
    timezone: str = Field(default=DEFAULT_TIMEZONE)
    default_appointment_duration: int = Field(
        default=DEFAULT_APPOINTMENT_DURATION, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES
    )
    buffer_time_between_appointments: int = Field(
        default=DEFAULT_BUFFER_MINUTES, ge=MIN_BUFFER_MINUTES, le=MAX_BUFFER_MINUTES
    )

    @field_validator("working_hours")
    @classmethod
    def validate_weekdays(cls, working_hours: Dict[str, WorkingDayHours]) -> Dict[str, WorkingDayHours]:
        for day in working_hours:
            if day not in WEEKDAYS:
                raise ValueError(f"Invalid day: {day}")
        return working_hours

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        if not is_valid_timezone(value):
            raise ValueError(f"Invalid timezone: {value}")
        return value

    def is_open_on_day(self, day: str) -> bool:
        """Check whether the organization is open on a weekday."""
        hours = self.working_hours.get(day)
        return bool(hours and hours.is_open)

    def get_working_hours_for_day(self, day: str) -> Optional[WorkingDayHours]:
        """
        Get opening hours for a weekday.

        Returns:
            The day's hours when open, None when closed or not configured
        """
        hours = self.working_hours.get(day)
        if not hours or not hours.is_open:
            return None
        return hours

    def total_weekly_hours(self) -> float:
        """Total number of opening hours per week."""
        total_minutes = sum(
            time_to_minutes(hours.end) - time_to_minutes(hours.start)
            for hours in self.working_hours.values()
            if hours.is_open
        )
        return total_minutes / 60


class OrganizationScheduleSettings(Base):
    """
    Per-organization scheduling configuration (singleton keyed by organization id).

    Created with defaults on onboarding and mutated only through
    SettingsService. Never deleted while the organization exists.
    """

    __tablename__ = "organization_schedule_settings"

    organization_id: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH), primary_key=True)
    """Organization owning these settings."""

    settings: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict
    )
    """JSON document matching the ScheduleSettings schema."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    def get_validated_settings(self) -> ScheduleSettings:
        """Get settings with schema validation."""
        return ScheduleSettings.model_validate(self.settings)

    def set_validated_settings(self, settings: ScheduleSettings):
        """Set settings with schema validation."""
        self.settings = settings.model_dump()
