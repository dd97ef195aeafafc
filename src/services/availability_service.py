"""
Availability service: conflict detection and free-slot computation.

This module contains the scheduling engine shared by the staff scheduling
service and the public booking service. Every method here is a pure read:
nothing is written and repeated calls return the same result for the same
stored state.
"""

import logging
from datetime import date as date_type, time
from typing import List, Optional

from core.constants import (
    CONFLICT_DAILY_LIMIT_REACHED,
    CONFLICT_OUTSIDE_WORKING_HOURS,
    CONFLICT_TIME_OVERLAP,
)
from core.exceptions import NotFoundError, ValidationError
from models import Appointment
from services.schedule_store import ScheduleStore
from services.settings_service import SettingsService
from shared_types.availability import AvailableSlot, Conflict
from utils.datetime_utils import (
    calculate_end_time,
    format_date,
    get_weekday_name,
    minutes_to_time_string,
    time_to_minutes,
)

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Service class for availability operations.

    Answers two questions for a practitioner on a given day: is a proposed
    interval bookable (check_availability), and which intervals are free
    (get_available_slots).
    """

    def __init__(self, store: ScheduleStore, settings_service: SettingsService):
        self.store = store
        self.settings_service = settings_service

    def check_availability(
        self,
        organization_id: str,
        practitioner_id: str,
        day: date_type,
        start_time: time,
        duration: int,
        exclude_appointment_id: Optional[int] = None
    ) -> List[Conflict]:
        """
        List every reason the proposed interval cannot be booked.

        Conflicts come in a fixed order: the working-hours conflict (at most
        one), then one time_overlap per overlapping appointment in
        (date, start time, id) order, then daily_limit_reached. An empty
        list means the interval is bookable.

        When the organization has no settings no working-hours restriction
        is applied.

        Args:
            organization_id: Organization ID
            practitioner_id: Practitioner whose calendar is checked
            day: Appointment date
            start_time: Proposed start time
            duration: Duration in minutes
            exclude_appointment_id: Appointment ignored by the check (the one being rescheduled)

        Returns:
            List of conflicts, empty when bookable
        """
        conflicts: List[Conflict] = []
        start_minutes = time_to_minutes(start_time)
        end_minutes = start_minutes + duration

        settings = self.settings_service.find_settings(organization_id)
        if settings is not None:
            hours = settings.get_working_hours_for_day(get_weekday_name(day))
            if (
                hours is None
                or start_minutes < time_to_minutes(hours.start)
                or end_minutes > time_to_minutes(hours.end)
            ):
                conflicts.append(Conflict.of(CONFLICT_OUTSIDE_WORKING_HOURS))

        existing = self.store.get_active_appointments(
            organization_id, practitioner_id, day, exclude_appointment_id
        )
        for appointment in existing:
            if self.check_time_overlap(
                start_minutes, end_minutes, appointment.start_minutes, appointment.end_minutes
            ):
                conflicts.append(Conflict.of(CONFLICT_TIME_OVERLAP, appointment.id))

        daily_limit = settings.booking_rules.max_appointments_per_day if settings is not None else None
        if daily_limit is not None and len(existing) >= daily_limit:
            conflicts.append(Conflict.of(CONFLICT_DAILY_LIMIT_REACHED))

        if conflicts:
            logger.debug(
                f"Slot {format_date(day)} {minutes_to_time_string(start_minutes)} for practitioner "
                f"{practitioner_id} has conflicts: {[c.type for c in conflicts]}"
            )
        return conflicts

    def get_available_slots(
        self,
        organization_id: str,
        practitioner_id: str,
        day: date_type,
        service_id: Optional[str] = None,
        duration: Optional[int] = None
    ) -> List[AvailableSlot]:
        """
        Compute free slots for a practitioner on a day.

        Candidates start at the opening time and advance by
        duration + buffer whether or not the previous candidate was free.
        A candidate is kept when it ends by closing time and overlaps no
        scheduled/confirmed appointment. A practitioner who already has
        max_appointments_per_day active appointments gets no slots.

        Args:
            organization_id: Organization ID
            practitioner_id: Practitioner ID
            day: Date to compute slots for
            service_id: Service whose duration is used when no explicit duration is given
            duration: Explicit slot duration in minutes

        Returns:
            Slots in ascending start-time order; empty when the organization
            has no settings or is closed that day

        Raises:
            NotFoundError: If service_id is given but unknown
            ValidationError: If the duration is not positive
        """
        settings = self.settings_service.find_settings(organization_id)
        if settings is None:
            return []

        hours = settings.get_working_hours_for_day(get_weekday_name(day))
        if hours is None:
            return []

        if duration is None and service_id is not None:
            service = self.store.get_service(service_id)
            if service is None or service.organization_id != organization_id:
                raise NotFoundError("Service not found", service_id=service_id, organization_id=organization_id)
            duration = service.duration
        if duration is None:
            duration = settings.default_appointment_duration
        if duration <= 0:
            raise ValidationError("Duration must be positive", duration=duration)

        existing = self.store.get_active_appointments(organization_id, practitioner_id, day)
        daily_limit = settings.booking_rules.max_appointments_per_day
        if daily_limit is not None and len(existing) >= daily_limit:
            return []

        slots: List[AvailableSlot] = []
        for slot_start in self.generate_candidate_slots(
            time_to_minutes(hours.start),
            time_to_minutes(hours.end),
            duration,
            settings.buffer_time_between_appointments
        ):
            if self._overlaps_any(slot_start, slot_start + duration, existing):
                continue
            start_string = minutes_to_time_string(slot_start)
            slots.append(AvailableSlot(
                date=format_date(day),
                start_time=start_string,
                end_time=calculate_end_time(start_string, duration),
                duration=duration,
                practitioner_id=practitioner_id,
                service_id=service_id,
            ))

        return slots

    @staticmethod
    def generate_candidate_slots(
        open_minutes: int,
        close_minutes: int,
        duration_minutes: int,
        buffer_minutes: int = 0
    ) -> List[int]:
        """
        Generate candidate slot start times within opening hours.

        The cursor starts at opening time and moves by duration + buffer; a
        candidate is produced while it still ends by closing time.

        Returns:
            Start times in minutes since midnight, ascending
        """
        candidates: List[int] = []
        step = duration_minutes + buffer_minutes
        cursor = open_minutes
        while cursor + duration_minutes <= close_minutes:
            candidates.append(cursor)
            cursor += step
        return candidates

    @staticmethod
    def check_time_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
        """Check if two half-open minute intervals [start, end) overlap."""
        return start1 < end2 and start2 < end1

    @staticmethod
    def _overlaps_any(start: int, end: int, appointments: List[Appointment]) -> bool:
        return any(
            AvailabilityService.check_time_overlap(start, end, a.start_minutes, a.end_minutes)
            for a in appointments
        )
