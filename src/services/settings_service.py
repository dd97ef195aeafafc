"""
Settings service for organization schedule settings.

Settings are created with defaults when an organization is onboarded and are
only mutated through this service, which re-validates the whole document on
every write.
"""

import copy
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from core.exceptions import NotFoundError, ValidationError
from models import OrganizationScheduleSettings
from models.organization_schedule_settings import ScheduleSettings, WorkingDayHours
from services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `updates` into a copy of `base`."""
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)  # type: ignore[arg-type]
        else:
            merged[key] = value
    return merged


def _validation_message(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "; ".join(parts)


class SettingsService:
    """
    Service class for organization schedule settings.

    Provides validated read access for the availability engine and the
    booking services, plus the partial-update operations used by admins.
    """

    def __init__(self, store: ScheduleStore):
        self.store = store

    def find_settings(self, organization_id: str) -> Optional[ScheduleSettings]:
        """Validated settings, or None when the organization has none yet."""
        row = self.store.get_settings(organization_id)
        if row is None:
            return None
        return row.get_validated_settings()

    def get_settings(self, organization_id: str) -> ScheduleSettings:
        """
        Get validated settings for an organization.

        Raises:
            NotFoundError: If the organization has no settings
        """
        settings = self.find_settings(organization_id)
        if settings is None:
            raise NotFoundError("Organization settings not found", organization_id=organization_id)
        return settings

    def create_default_settings(self, organization_id: str) -> ScheduleSettings:
        """
        Create the default settings document for a newly onboarded organization.

        Raises:
            ValidationError: If settings already exist
        """
        if self.store.get_settings(organization_id) is not None:
            raise ValidationError("Organization settings already exist", organization_id=organization_id)

        settings = ScheduleSettings()
        row = OrganizationScheduleSettings(organization_id=organization_id)
        row.set_validated_settings(settings)
        self.store.add(row)
        self.store.commit()
        logger.info(f"Created default schedule settings for organization {organization_id}")
        return settings

    def get_or_create_settings(self, organization_id: str) -> ScheduleSettings:
        settings = self.find_settings(organization_id)
        if settings is not None:
            return settings
        return self.create_default_settings(organization_id)

    def update_settings(self, organization_id: str, updates: Dict[str, Any], performed_by: str) -> ScheduleSettings:
        """
        Apply a partial update to the settings document.

        Nested objects are deep-merged; the merged document is validated as a
        whole before anything is written.

        Raises:
            NotFoundError: If the organization has no settings
            ValidationError: If the merged document is invalid
        """
        row = self.store.get_settings(organization_id)
        if row is None:
            raise NotFoundError("Organization settings not found", organization_id=organization_id)

        current = row.get_validated_settings().model_dump()
        merged = _deep_merge(current, updates)
        try:
            settings = ScheduleSettings.model_validate(merged)
        except PydanticValidationError as e:
            logger.warning(f"Rejected settings update for organization {organization_id}: {e}")
            raise ValidationError(
                f"Invalid settings: {_validation_message(e)}", organization_id=organization_id
            ) from e

        row.set_validated_settings(settings)
        self.store.commit()
        logger.info(
            f"Organization {organization_id} settings updated by {performed_by}: {sorted(updates.keys())}"
        )
        return settings

    def update_working_hours_for_day(
        self,
        organization_id: str,
        day: str,
        hours: Dict[str, Any],
        performed_by: str
    ) -> ScheduleSettings:
        """Replace the opening hours of one weekday."""
        try:
            day_hours = WorkingDayHours.model_validate(hours)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid working hours: {_validation_message(e)}", organization_id=organization_id
            ) from e
        return self.update_settings(
            organization_id, {"working_hours": {day: day_hours.model_dump()}}, performed_by
        )

    def update_booking_rules(self, organization_id: str, rules: Dict[str, Any], performed_by: str) -> ScheduleSettings:
        return self.update_settings(organization_id, {"booking_rules": rules}, performed_by)

    def set_online_booking_enabled(self, organization_id: str, enabled: bool, performed_by: str) -> ScheduleSettings:
        return self.update_booking_rules(organization_id, {"allow_online_booking": enabled}, performed_by)
