"""
Unit tests for organization schedule settings.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from core.exceptions import NotFoundError, ValidationError
from models import ScheduleSettings, WorkingDayHours
from tests.conftest import ORG_ID


class TestScheduleSettingsSchema:
    """Test the pydantic settings document."""

    def test_defaults(self):
        settings = ScheduleSettings()

        assert settings.timezone == "Europe/Paris"
        assert settings.default_appointment_duration == 30
        assert settings.buffer_time_between_appointments == 15
        assert settings.booking_rules.advance_booking_days == 30
        assert settings.booking_rules.cancellation_deadline_hours == 24
        assert settings.booking_rules.max_appointments_per_day == 20
        assert settings.booking_rules.allow_online_booking is True
        assert settings.booking_rules.allow_same_day_booking is True
        assert settings.reminder_config.timings == [24, 2]
        assert settings.is_open_on_day("monday")
        assert not settings.is_open_on_day("sunday")

    def test_working_hours_lookup(self):
        settings = ScheduleSettings()

        hours = settings.get_working_hours_for_day("friday")

        assert (hours.start, hours.end) == ("09:00", "18:00")
        assert settings.get_working_hours_for_day("saturday") is None
        assert settings.total_weekly_hours() == 45

    @pytest.mark.parametrize(
        "document",
        [
            {"default_appointment_duration": 4},
            {"default_appointment_duration": 481},
            {"buffer_time_between_appointments": 121},
            {"booking_rules": {"advance_booking_days": 0}},
            {"booking_rules": {"advance_booking_days": 366}},
            {"booking_rules": {"cancellation_deadline_hours": 169}},
            {"reminder_config": {"timings": [0]}},
            {"timezone": "Mars/Olympus_Mons"},
            {"working_hours": {"funday": {"is_open": True}}},
        ],
    )
    def test_out_of_range_values(self, document):
        with pytest.raises(PydanticValidationError):
            ScheduleSettings.model_validate(document)

    @pytest.mark.parametrize(
        "hours",
        [
            {"is_open": True, "start": "9:00 am", "end": "18:00"},
            {"is_open": True, "start": "18:00", "end": "09:00"},
            {"is_open": True, "start": "10:00", "end": "10:00"},
        ],
    )
    def test_invalid_working_hours(self, hours):
        with pytest.raises(PydanticValidationError):
            WorkingDayHours.model_validate(hours)


class TestSettingsService:
    """Test SettingsService reads and partial updates."""

    def test_missing_settings(self, settings_service):
        assert settings_service.find_settings(ORG_ID) is None
        with pytest.raises(NotFoundError):
            settings_service.get_settings(ORG_ID)

    def test_create_default_settings(self, settings_service):
        created = settings_service.create_default_settings(ORG_ID)

        assert created == ScheduleSettings()
        assert settings_service.get_settings(ORG_ID) == created
        with pytest.raises(ValidationError):
            settings_service.create_default_settings(ORG_ID)

    def test_get_or_create_settings(self, settings_service, make_settings):
        make_settings(timezone="America/New_York")

        assert settings_service.get_or_create_settings(ORG_ID).timezone == "America/New_York"
        assert settings_service.get_or_create_settings("org-new").timezone == "Europe/Paris"

    def test_partial_update_is_deep_merged(self, settings_service, make_settings):
        make_settings()

        updated = settings_service.update_settings(
            ORG_ID, {"booking_rules": {"advance_booking_days": 60}}, "admin-1"
        )

        assert updated.booking_rules.advance_booking_days == 60
        assert updated.booking_rules.cancellation_deadline_hours == 24
        assert settings_service.get_settings(ORG_ID).booking_rules.advance_booking_days == 60

    def test_invalid_update_is_rejected_and_not_stored(self, settings_service, make_settings):
        make_settings()

        with pytest.raises(ValidationError) as exc_info:
            settings_service.update_settings(ORG_ID, {"buffer_time_between_appointments": 500}, "admin-1")

        assert "buffer_time_between_appointments" in exc_info.value.message
        assert settings_service.get_settings(ORG_ID).buffer_time_between_appointments == 15

    def test_update_missing_settings(self, settings_service):
        with pytest.raises(NotFoundError):
            settings_service.update_settings(ORG_ID, {"timezone": "UTC"}, "admin-1")

    def test_update_working_hours_for_day(self, settings_service, make_settings):
        make_settings()

        updated = settings_service.update_working_hours_for_day(
            ORG_ID, "saturday", {"is_open": True, "start": "10:00", "end": "14:00"}, "admin-1"
        )

        hours = updated.get_working_hours_for_day("saturday")
        assert (hours.start, hours.end) == ("10:00", "14:00")
        assert updated.get_working_hours_for_day("monday").start == "09:00"

    def test_update_working_hours_unknown_day(self, settings_service, make_settings):
        make_settings()

        with pytest.raises(ValidationError):
            settings_service.update_working_hours_for_day(
                ORG_ID, "caturday", {"is_open": True, "start": "10:00", "end": "14:00"}, "admin-1"
            )

    def test_update_working_hours_bad_range(self, settings_service, make_settings):
        make_settings()

        with pytest.raises(ValidationError):
            settings_service.update_working_hours_for_day(
                ORG_ID, "monday", {"is_open": True, "start": "14:00", "end": "10:00"}, "admin-1"
            )

    def test_toggle_online_booking(self, settings_service, make_settings):
        make_settings()

        updated = settings_service.set_online_booking_enabled(ORG_ID, False, "admin-1")

        assert updated.booking_rules.allow_online_booking is False
        assert settings_service.get_settings(ORG_ID).booking_rules.allow_online_booking is False

    def test_update_booking_rules(self, settings_service, make_settings):
        make_settings()

        updated = settings_service.update_booking_rules(
            ORG_ID, {"allow_same_day_booking": False, "max_appointments_per_day": 8}, "admin-1"
        )

        assert updated.booking_rules.allow_same_day_booking is False
        assert updated.booking_rules.max_appointments_per_day == 8
