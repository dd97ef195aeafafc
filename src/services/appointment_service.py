"""
Appointment service for staff-side scheduling operations.

This module orchestrates appointment creation, rescheduling and status
changes. Every write that books time runs the availability check and the
write inside one transaction guarded by the practitioner-day version token,
so two concurrent requests for the same slot cannot both commit.
"""

import logging
from datetime import date as date_type, datetime, time
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from core.constants import (
    APPOINTMENT_STATUSES,
    DEFAULT_CANCELLATION_DEADLINE_HOURS,
    MAX_DURATION_MINUTES,
    MAX_NOTES_LENGTH,
    MIN_DURATION_MINUTES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_NO_SHOW,
    STATUS_SCHEDULED,
)
from core.exceptions import (
    ConflictError,
    DeadlineError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from models import Appointment, Service
from models.appointment import validate_status_transition
from models.organization_schedule_settings import ScheduleSettings
from services.appointment_events import (
    EVENT_CREATED,
    EVENT_RESCHEDULED,
    EVENT_STATUS_CHANGED,
    EVENT_UPDATED,
    STATUS_EVENTS,
    AppointmentEvent,
    AppointmentEventPublisher,
)
from services.availability_service import AvailabilityService
from services.schedule_store import ScheduleStore
from services.settings_service import SettingsService
from shared_types.appointments import AppointmentFilters, AppointmentRequest, AppointmentUpdate
from shared_types.availability import AvailableSlot
from utils.datetime_utils import (
    MINUTES_PER_DAY,
    combine_in_zone,
    organization_now,
    parse_date_string,
    parse_time_string,
    time_to_minutes,
)

logger = logging.getLogger(__name__)

Clock = Callable[[Optional[str]], datetime]
ScheduleKey = Tuple[str, date_type]


def parse_request_date(value: str) -> date_type:
    """Parse a YYYY-MM-DD request field, raising ValidationError when malformed."""
    try:
        return parse_date_string(value)
    except ValueError:
        raise ValidationError("Invalid date format (expected YYYY-MM-DD)", date=value)


def parse_request_time(value: str) -> time:
    """Parse an HH:MM request field, raising ValidationError when malformed."""
    try:
        return parse_time_string(value)
    except ValueError:
        raise ValidationError("Invalid time format (expected HH:MM)", start_time=value)


class AppointmentService:
    """
    Service class for appointment operations.

    Collaborators are passed in at construction: the store bound to the
    current session, the availability engine, the settings service and the
    event publisher. `clock` returns "now" in a given timezone and can be
    replaced in tests.
    """

    def __init__(
        self,
        store: ScheduleStore,
        availability_service: AvailabilityService,
        settings_service: SettingsService,
        publisher: Optional[AppointmentEventPublisher] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.availability_service = availability_service
        self.settings_service = settings_service
        self.publisher = publisher or AppointmentEventPublisher()
        self.clock = clock or organization_now

    # ===== Queries =====

    def get_appointment(self, appointment_id: int, organization_id: str) -> Appointment:
        """
        Get an appointment of an organization.

        Raises:
            NotFoundError: If missing or owned by another organization
        """
        appointment = self.store.get_appointment(appointment_id)
        if appointment is None or appointment.organization_id != organization_id:
            raise NotFoundError(
                "Appointment not found", appointment_id=appointment_id, organization_id=organization_id
            )
        return appointment

    def get_appointments(
        self,
        organization_id: str,
        filters: Optional[AppointmentFilters] = None
    ) -> List[Appointment]:
        filters = filters or AppointmentFilters()
        for status in filters.statuses:
            if status not in APPOINTMENT_STATUSES:
                raise ValidationError(f"Invalid status filter: {status}")
        try:
            return self.store.query_appointments(organization_id, filters)
        except ValueError as e:
            raise ValidationError(str(e), organization_id=organization_id) from e

    def get_available_slots(
        self,
        organization_id: str,
        practitioner_id: str,
        date: str,
        service_id: Optional[str] = None,
        duration: Optional[int] = None
    ) -> List[AvailableSlot]:
        """Staff-facing slot listing for an explicit practitioner."""
        day = parse_request_date(date)
        return self.availability_service.get_available_slots(
            organization_id, practitioner_id, day, service_id=service_id, duration=duration
        )

    # ===== Create / update =====

    def create_appointment(self, request: AppointmentRequest, organization_id: str, actor_id: str) -> Appointment:
        """
        Book a new appointment.

        Args:
            request: Appointment request (wire-format date and time)
            organization_id: Organization ID
            actor_id: Who is booking (staff user id or a public booking actor)

        Returns:
            The persisted appointment in status 'scheduled'

        Raises:
            ValidationError: Malformed date/time, start not in the future,
                duration out of range or past midnight
            NotFoundError: Client or service missing from the organization
            ConflictError: Slot not bookable (every conflict message listed)
        """
        day = parse_request_date(request.date)
        start = parse_request_time(request.start_time)
        settings = self.settings_service.find_settings(organization_id)
        tz_name = self._timezone(settings)

        client = self.store.get_client(request.client_id)
        if client is None or client.organization_id != organization_id:
            raise NotFoundError("Client not found", client_id=request.client_id, organization_id=organization_id)

        service = self._get_service(request.service_id, organization_id)
        duration = self._resolve_duration(request.duration, service, settings)
        self._validate_timing(day, start, duration, tz_name)
        self._validate_notes(request.notes)

        try:
            version = self._lock_and_check(
                organization_id, request.practitioner_id, day, start, duration
            )

            appointment = Appointment(
                organization_id=organization_id,
                client_id=client.id,
                practitioner_id=request.practitioner_id,
                service_id=request.service_id,
                date=day,
                start_time=start,
                duration=duration,
                status=STATUS_SCHEDULED,
                notes=request.notes,
            )
            self.store.add(appointment)
            self.store.flush()
            appointment.record_audit("created", actor_id, new_value=appointment.to_dict())

            self.store.bump_schedule_version(organization_id, request.practitioner_id, day, version)
            self.store.commit()
        except SchedulingError as e:
            self.store.rollback()
            raise e.with_context(organization_id=organization_id)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to create appointment: {e}")
            self.store.rollback()
            raise

        logger.info(
            f"Created appointment {appointment.id} for client {client.id} with practitioner "
            f"{appointment.practitioner_id} on {request.date} {request.start_time}"
        )
        self._publish(EVENT_CREATED, appointment, actor_id, new_status=STATUS_SCHEDULED)
        return appointment

    def update_appointment(
        self,
        appointment_id: int,
        updates: AppointmentUpdate,
        organization_id: str,
        actor_id: str
    ) -> Appointment:
        """
        Update an appointment's fields.

        When the date, time, duration or practitioner changes the new slot
        is re-checked excluding the appointment itself; any conflict aborts
        the whole update.

        Raises:
            NotFoundError: Appointment (or new service) missing
            ValidationError: Appointment no longer modifiable or invalid new values
            ConflictError: New slot not bookable
        """
        appointment = self.get_appointment(appointment_id, organization_id)
        if not appointment.can_be_modified():
            raise ValidationError(
                f"Appointment cannot be modified in status {appointment.status}",
                appointment_id=appointment_id,
                organization_id=organization_id,
            )

        fields = updates.provided_fields()
        settings = self.settings_service.find_settings(organization_id)
        tz_name = self._timezone(settings)

        new_day = parse_request_date(fields["date"]) if "date" in fields else appointment.date
        new_start = parse_request_time(fields["start_time"]) if "start_time" in fields else appointment.start_time
        new_practitioner = fields.get("practitioner_id", appointment.practitioner_id)
        new_duration = fields.get("duration", appointment.duration)

        changes: Dict[str, object] = {}
        if "service_id" in fields and fields["service_id"] != appointment.service_id:
            self._get_service(fields["service_id"], organization_id)
            changes["service_id"] = fields["service_id"]
        if "notes" in fields:
            self._validate_notes(fields["notes"])
            changes["notes"] = fields["notes"]

        rescheduled = (
            new_day != appointment.date
            or new_start != appointment.start_time
            or new_duration != appointment.duration
            or new_practitioner != appointment.practitioner_id
        )
        if rescheduled:
            self._validate_timing(new_day, new_start, new_duration, tz_name)
            changes.update(
                date=new_day,
                start_time=new_start,
                duration=new_duration,
                practitioner_id=new_practitioner,
            )

        old_key: ScheduleKey = (appointment.practitioner_id, appointment.date)
        new_key: ScheduleKey = (new_practitioner, new_day)
        try:
            versions: Dict[ScheduleKey, int] = {}
            if rescheduled:
                # Lock keys in a fixed order so two reschedules never wait on each other
                for practitioner_id, day in sorted({old_key, new_key}):
                    versions[(practitioner_id, day)] = self.store.acquire_schedule_token(
                        organization_id, practitioner_id, day
                    )
                self._raise_on_conflicts(
                    organization_id, new_practitioner, new_day, new_start, new_duration,
                    exclude_appointment_id=appointment.id,
                )

            changed = appointment.apply_updates(changes, actor_id, reason=updates.reason)

            for (practitioner_id, day), version in versions.items():
                self.store.bump_schedule_version(organization_id, practitioner_id, day, version)
            self.store.commit()
        except SchedulingError as e:
            self.store.rollback()
            raise e.with_context(appointment_id=appointment_id, organization_id=organization_id)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to update appointment {appointment_id}: {e}")
            self.store.rollback()
            raise

        if changed:
            logger.info(f"Updated appointment {appointment_id} by {actor_id}: {sorted(changed.keys())}")
            self._publish(EVENT_RESCHEDULED if rescheduled else EVENT_UPDATED, appointment, actor_id)
        return appointment

    # ===== Status changes =====

    def update_appointment_status(
        self,
        appointment_id: int,
        new_status: str,
        organization_id: str,
        actor_id: str,
        reason: Optional[str] = None
    ) -> Appointment:
        """
        Move an appointment to a new status.

        Raises:
            NotFoundError: Appointment missing
            ValidationError: Unknown status
            InvalidTransitionError: Transition not allowed from the current status
        """
        if new_status not in APPOINTMENT_STATUSES:
            raise ValidationError(f"Invalid status: {new_status}", appointment_id=appointment_id)
        appointment = self.get_appointment(appointment_id, organization_id)
        return self._change_status(appointment, new_status, actor_id, reason)

    def confirm_appointment(self, appointment_id: int, organization_id: str, actor_id: str) -> Appointment:
        return self.update_appointment_status(appointment_id, STATUS_CONFIRMED, organization_id, actor_id)

    def complete_appointment(
        self,
        appointment_id: int,
        organization_id: str,
        actor_id: str,
        notes: Optional[str] = None
    ) -> Appointment:
        """Mark a confirmed appointment as completed, optionally replacing its notes."""
        appointment = self.get_appointment(appointment_id, organization_id)
        validate_status_transition(appointment.status, STATUS_COMPLETED)
        if notes is not None:
            self._validate_notes(notes)
            appointment.apply_updates({"notes": notes}, actor_id)
        return self._change_status(appointment, STATUS_COMPLETED, actor_id, None)

    def mark_as_no_show(
        self,
        appointment_id: int,
        organization_id: str,
        actor_id: str,
        reason: Optional[str] = None
    ) -> Appointment:
        return self.update_appointment_status(appointment_id, STATUS_NO_SHOW, organization_id, actor_id, reason)

    def cancel_appointment(
        self,
        appointment_id: int,
        organization_id: str,
        actor_id: str,
        reason: Optional[str] = None
    ) -> Appointment:
        """
        Cancel an appointment, enforcing the organization's cancellation deadline.

        Pending reminders are cancelled along with the appointment.

        Raises:
            NotFoundError: Appointment missing
            InvalidTransitionError: Appointment already completed, cancelled or no-show
            DeadlineError: Less notice than cancellation_deadline_hours
        """
        appointment = self.get_appointment(appointment_id, organization_id)
        validate_status_transition(appointment.status, STATUS_CANCELLED)
        self.ensure_before_deadline(appointment, "cancelled")
        return self._change_status(appointment, STATUS_CANCELLED, actor_id, reason)

    def delete_appointment(
        self,
        appointment_id: int,
        organization_id: str,
        actor_id: str,
        reason: Optional[str] = None
    ) -> None:
        """
        Soft-delete an appointment by cancelling it.

        The record and its audit trail are kept. Deleting an already
        cancelled appointment is a no-op.
        """
        appointment = self.get_appointment(appointment_id, organization_id)
        if appointment.status == STATUS_CANCELLED:
            logger.info(f"Appointment {appointment_id} already cancelled, nothing to delete")
            return
        validate_status_transition(appointment.status, STATUS_CANCELLED)
        appointment.record_audit("deleted", actor_id, reason=reason)
        self._change_status(appointment, STATUS_CANCELLED, actor_id, reason)

    # ===== Rules shared with the public booking flow =====

    def deadline_hours(self, settings: Optional[ScheduleSettings]) -> int:
        if settings is None:
            return DEFAULT_CANCELLATION_DEADLINE_HOURS
        return settings.booking_rules.cancellation_deadline_hours

    def ensure_before_deadline(self, appointment: Appointment, action: str) -> None:
        """
        Reject changes that come too close to the appointment.

        Raises:
            DeadlineError: If `now` is not strictly before start - deadline
        """
        settings = self.settings_service.find_settings(appointment.organization_id)
        tz_name = self._timezone(settings)
        deadline_hours = self.deadline_hours(settings)
        if not appointment.can_be_cancelled(deadline_hours, now=self.clock(tz_name), tz_name=tz_name):
            logger.warning(
                f"Appointment {appointment.id} cannot be {action}: less than {deadline_hours}h notice"
            )
            raise DeadlineError(
                f"Appointment can no longer be {action} less than {deadline_hours} hours in advance",
                deadline_hours,
                appointment_id=appointment.id,
                organization_id=appointment.organization_id,
            )

    # ===== Internals =====

    def _change_status(
        self,
        appointment: Appointment,
        new_status: str,
        actor_id: str,
        reason: Optional[str]
    ) -> Appointment:
        old_status = appointment.status
        try:
            appointment.update_status(new_status, actor_id, reason)
            if new_status == STATUS_CANCELLED:
                appointment.cancel_pending_reminders()
            if old_status != new_status and not appointment.is_active:
                # Releasing time also moves the day's version forward
                version = self.store.acquire_schedule_token(
                    appointment.organization_id, appointment.practitioner_id, appointment.date
                )
                self.store.bump_schedule_version(
                    appointment.organization_id, appointment.practitioner_id, appointment.date, version
                )
            self.store.commit()
        except SchedulingError as e:
            self.store.rollback()
            raise e.with_context(appointment_id=appointment.id, organization_id=appointment.organization_id)
        except SQLAlchemyError as e:
            logger.exception(f"Failed to change status of appointment {appointment.id}: {e}")
            self.store.rollback()
            raise

        logger.info(f"Appointment {appointment.id} status {old_status} -> {new_status} by {actor_id}")
        self._publish(EVENT_STATUS_CHANGED, appointment, actor_id, old_status, new_status)
        specific_event = STATUS_EVENTS.get(new_status)
        if specific_event:
            self._publish(specific_event, appointment, actor_id, old_status, new_status)
        return appointment

    def _lock_and_check(
        self,
        organization_id: str,
        practitioner_id: str,
        day: date_type,
        start: time,
        duration: int
    ) -> int:
        """Take the practitioner-day token, run the conflict check and return the seen version."""
        version = self.store.acquire_schedule_token(organization_id, practitioner_id, day)
        self._raise_on_conflicts(organization_id, practitioner_id, day, start, duration)
        return version

    def _raise_on_conflicts(
        self,
        organization_id: str,
        practitioner_id: str,
        day: date_type,
        start: time,
        duration: int,
        exclude_appointment_id: Optional[int] = None
    ) -> None:
        conflicts = self.availability_service.check_availability(
            organization_id, practitioner_id, day, start, duration, exclude_appointment_id
        )
        if conflicts:
            logger.warning(
                f"Booking conflict for practitioner {practitioner_id} on {day} at {start}: "
                f"{[c.type for c in conflicts]}"
            )
            raise ConflictError(conflicts, practitioner_id=practitioner_id)

    def _get_service(self, service_id: str, organization_id: str) -> Service:
        service = self.store.get_service(service_id)
        if service is None or service.organization_id != organization_id:
            raise NotFoundError("Service not found", service_id=service_id, organization_id=organization_id)
        return service

    @staticmethod
    def _resolve_duration(
        requested: Optional[int],
        service: Optional[Service],
        settings: Optional[ScheduleSettings]
    ) -> int:
        """Explicit duration, else the service's, else the organization default."""
        if requested is not None:
            return requested
        if service is not None:
            return service.duration
        if settings is not None:
            return settings.default_appointment_duration
        raise ValidationError("Duration is required")

    def _validate_timing(self, day: date_type, start: time, duration: int, tz_name: Optional[str]) -> None:
        if duration < MIN_DURATION_MINUTES or duration > MAX_DURATION_MINUTES:
            raise ValidationError(
                f"Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes",
                duration=duration,
            )
        if time_to_minutes(start) + duration > MINUTES_PER_DAY:
            raise ValidationError("Appointment cannot extend past midnight", duration=duration)
        if combine_in_zone(day, start, tz_name) <= self.clock(tz_name):
            raise ValidationError("Appointment date must be in the future")

    @staticmethod
    def _validate_notes(notes: Optional[str]) -> None:
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"Notes must be at most {MAX_NOTES_LENGTH} characters")

    @staticmethod
    def _timezone(settings: Optional[ScheduleSettings]) -> Optional[str]:
        return settings.timezone if settings is not None else None

    def _publish(
        self,
        event_type: str,
        appointment: Appointment,
        actor_id: str,
        old_status: Optional[str] = None,
        new_status: Optional[str] = None
    ) -> None:
        self.publisher.publish(AppointmentEvent(
            type=event_type,
            appointment_id=appointment.id,
            organization_id=appointment.organization_id,
            performed_by=actor_id,
            old_status=old_status,
            new_status=new_status,
        ))
