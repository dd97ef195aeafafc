"""
Public booking service.

Client-facing booking operations layered on top of AppointmentService:
online-booking gate, booking window, practitioner auto-assignment and
email-based identity checks for modify/cancel/confirm.
"""

import logging
from dataclasses import replace
from datetime import date as date_type, time
from typing import Any, Dict, List, Optional, Tuple

from core.constants import (
    CLIENT_CANCELLATION_ACTOR,
    CLIENT_CONFIRMATION_ACTOR,
    CLIENT_MODIFICATION_ACTOR,
    EMAIL_PATTERN,
    PHONE_PATTERN,
    PUBLIC_BOOKING_ACTOR,
    STATUS_SCHEDULED,
)
from core.exceptions import (
    AuthorizationError,
    BookingNotAllowedError,
    NoPractitionerAvailableError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from models import Appointment, Client, Service
from models.organization_schedule_settings import ScheduleSettings
from services.appointment_service import AppointmentService, parse_request_date, parse_request_time
from services.schedule_store import ScheduleStore
from shared_types.appointments import AppointmentRequest, AppointmentUpdate, BookingRequest, ClientData
from shared_types.availability import AvailableSlot

logger = logging.getLogger(__name__)


class BookingService:
    """
    Service class for public (client-facing) booking operations.

    Every operation requires organization settings with online booking
    enabled. Writes are delegated to AppointmentService so the same
    conflict checks, deadlines and audit trail apply.
    """

    def __init__(self, store: ScheduleStore, appointment_service: AppointmentService):
        self.store = store
        self.appointment_service = appointment_service
        self.availability_service = appointment_service.availability_service
        self.settings_service = appointment_service.settings_service

    # ===== Slots =====

    def get_available_slots(
        self,
        organization_id: str,
        date: str,
        service_id: Optional[str] = None,
        practitioner_id: Optional[str] = None
    ) -> List[AvailableSlot]:
        """
        List bookable slots for a day.

        With a practitioner, that practitioner's slots are returned. Without
        one, the slots of every practitioner eligible for the service are
        merged and sorted by start time. Without service and practitioner
        nothing is returned.

        Raises:
            NotFoundError: Settings or service missing
            BookingNotAllowedError: Online booking disabled or date outside the booking window
            ValidationError: Malformed date, inactive service or ineligible practitioner
        """
        settings = self._get_booking_settings(organization_id)
        day = parse_request_date(date)
        self._validate_booking_window(day, settings)

        service: Optional[Service] = None
        duration = settings.default_appointment_duration
        if service_id:
            service = self._get_active_service(service_id, organization_id)
            duration = service.duration
            if practitioner_id and not service.offers_practitioner(practitioner_id):
                raise ValidationError(
                    "This practitioner cannot provide the selected service",
                    practitioner_id=practitioner_id,
                    service_id=service_id,
                )

        if practitioner_id:
            return self.availability_service.get_available_slots(
                organization_id, practitioner_id, day, service_id=service_id, duration=duration
            )
        if service is None:
            return []

        slots: List[AvailableSlot] = []
        for eligible_practitioner_id in service.practitioners:
            slots.extend(self.availability_service.get_available_slots(
                organization_id, eligible_practitioner_id, day, service_id=service.id, duration=duration
            ))
        return sorted(slots, key=lambda slot: slot.start_time)

    # ===== Bookings =====

    def create_booking(self, organization_id: str, request: BookingRequest) -> Dict[str, Any]:
        """
        Book an appointment for a client identified by email.

        The client is looked up by email (case-insensitive) and created when
        unknown; a returning client's changed name or phone is updated.
        Without a practitioner, the first practitioner in the service's list
        with no conflicts is assigned.

        Returns:
            Dict with 'appointment', 'client' and 'is_new_client'

        Raises:
            ValidationError: Incomplete or malformed client data, bad date/time
            NotFoundError: Settings or service missing
            BookingNotAllowedError: Online booking disabled or outside booking window
            NoPractitionerAvailableError: No eligible practitioner is free
            ConflictError: The requested practitioner is not free
        """
        settings = self._get_booking_settings(organization_id)
        self._validate_client_data(request.client)
        day = parse_request_date(request.date)
        start = parse_request_time(request.start_time)
        self._validate_booking_window(day, settings)
        service = self._get_active_service(request.service_id, organization_id)

        if request.practitioner_id:
            if not service.offers_practitioner(request.practitioner_id):
                raise ValidationError(
                    "This practitioner cannot provide the selected service",
                    practitioner_id=request.practitioner_id,
                    service_id=service.id,
                )
            practitioner_id = request.practitioner_id
        else:
            practitioner_id = self._select_available_practitioner(organization_id, service, day, start)

        client, is_new_client = self._get_or_create_client(organization_id, request.client)

        try:
            appointment = self.appointment_service.create_appointment(
                AppointmentRequest(
                    client_id=client.id,
                    practitioner_id=practitioner_id,
                    service_id=service.id,
                    date=request.date,
                    start_time=request.start_time,
                    duration=service.duration,
                    notes=request.notes,
                ),
                organization_id,
                PUBLIC_BOOKING_ACTOR,
            )
        except SchedulingError:
            # Drop the client created or updated above
            self.store.rollback()
            raise

        logger.info(
            f"Public booking {appointment.id} created for {'new' if is_new_client else 'returning'} "
            f"client {client.id} in organization {organization_id}"
        )
        return {"appointment": appointment, "client": client, "is_new_client": is_new_client}

    def modify_booking(
        self,
        organization_id: str,
        appointment_id: int,
        updates: AppointmentUpdate,
        client_email: str
    ) -> Appointment:
        """
        Let a client reschedule or edit their own booking.

        Modification follows the cancellation deadline. Changing the service
        also applies the new service's duration.

        Raises:
            AuthorizationError: Email does not match the appointment's client
            DeadlineError: Less notice than cancellation_deadline_hours
            ValidationError: Appointment not modifiable, new practitioner ineligible
            BookingNotAllowedError: New date outside the booking window
        """
        settings = self._get_booking_settings(organization_id)
        appointment = self.appointment_service.get_appointment(appointment_id, organization_id)
        self._verify_client_identity(appointment, client_email)

        if not appointment.can_be_modified():
            raise ValidationError(
                f"Appointment cannot be modified in status {appointment.status}",
                appointment_id=appointment_id,
            )
        self.appointment_service.ensure_before_deadline(appointment, "modified")

        fields = updates.provided_fields()
        if "date" in fields:
            self._validate_booking_window(parse_request_date(fields["date"]), settings)

        service_id = fields.get("service_id", appointment.service_id)
        practitioner_id = fields.get("practitioner_id", appointment.practitioner_id)
        if "service_id" in fields or "practitioner_id" in fields:
            service = self._get_active_service(service_id, organization_id)
            if not service.offers_practitioner(practitioner_id):
                raise ValidationError(
                    "This practitioner cannot provide the selected service",
                    practitioner_id=practitioner_id,
                    service_id=service_id,
                )
            if "service_id" in fields:
                updates = replace(updates, duration=service.duration)

        return self.appointment_service.update_appointment(
            appointment_id, updates, organization_id, CLIENT_MODIFICATION_ACTOR
        )

    def cancel_booking(
        self,
        organization_id: str,
        appointment_id: int,
        client_email: str,
        reason: Optional[str] = None
    ) -> Appointment:
        """
        Let a client cancel their own booking.

        Raises:
            AuthorizationError: Email does not match the appointment's client
            DeadlineError: Less notice than cancellation_deadline_hours
            InvalidTransitionError: Appointment already in a terminal status
        """
        self._get_booking_settings(organization_id)
        appointment = self.appointment_service.get_appointment(appointment_id, organization_id)
        self._verify_client_identity(appointment, client_email)
        return self.appointment_service.cancel_appointment(
            appointment_id, organization_id, CLIENT_CANCELLATION_ACTOR, reason or "Cancelled by client"
        )

    def confirm_booking(self, organization_id: str, appointment_id: int, client_email: str) -> Appointment:
        """Let a client confirm their own scheduled booking."""
        self._get_booking_settings(organization_id)
        appointment = self.appointment_service.get_appointment(appointment_id, organization_id)
        self._verify_client_identity(appointment, client_email)
        if appointment.status != STATUS_SCHEDULED:
            raise ValidationError(
                "Appointment cannot be confirmed in its current state",
                appointment_id=appointment_id,
                status=appointment.status,
            )
        return self.appointment_service.confirm_appointment(
            appointment_id, organization_id, CLIENT_CONFIRMATION_ACTOR
        )

    # ===== Internals =====

    def _get_booking_settings(self, organization_id: str) -> ScheduleSettings:
        settings = self.settings_service.get_settings(organization_id)
        if not settings.booking_rules.allow_online_booking:
            raise BookingNotAllowedError(
                "Online booking is not enabled for this organization", organization_id=organization_id
            )
        return settings

    def _validate_booking_window(self, day: date_type, settings: ScheduleSettings) -> None:
        """
        Check a requested date against the booking window.

        Days ahead are counted in calendar days from today in the
        organization's timezone.
        """
        today = self.appointment_service.clock(settings.timezone).date()
        days_ahead = (day - today).days
        if days_ahead < 0:
            raise ValidationError("Cannot book appointments in the past", date=day.isoformat())
        if days_ahead > settings.booking_rules.advance_booking_days:
            raise BookingNotAllowedError(
                f"Cannot book more than {settings.booking_rules.advance_booking_days} days in advance",
                date=day.isoformat(),
            )
        if days_ahead == 0 and not settings.booking_rules.allow_same_day_booking:
            raise BookingNotAllowedError("Same-day booking is not allowed", date=day.isoformat())

    def _get_active_service(self, service_id: str, organization_id: str) -> Service:
        service = self.store.get_service(service_id)
        if service is None or service.organization_id != organization_id:
            raise NotFoundError("Service not found", service_id=service_id, organization_id=organization_id)
        if not service.is_active:
            raise ValidationError("Service is not available", service_id=service_id)
        return service

    def _select_available_practitioner(
        self,
        organization_id: str,
        service: Service,
        day: date_type,
        start: time
    ) -> str:
        """First practitioner in the service's list with no conflicts for the slot."""
        for practitioner_id in service.practitioners:
            conflicts = self.availability_service.check_availability(
                organization_id, practitioner_id, day, start, service.duration
            )
            if not conflicts:
                return practitioner_id
        logger.warning(
            f"No practitioner available for service {service.id} on {day} at {start} "
            f"in organization {organization_id}"
        )
        raise NoPractitionerAvailableError(organization_id=organization_id, service_id=service.id)

    def _get_or_create_client(self, organization_id: str, data: ClientData) -> Tuple[Client, bool]:
        client = self.store.find_client_by_email(organization_id, data.email)
        if client is None:
            client = Client(
                organization_id=organization_id,
                first_name=data.first_name.strip(),
                last_name=data.last_name.strip(),
                email=data.email.strip().lower(),
                phone=data.phone.strip(),
            )
            self.store.add(client)
            self.store.flush()
            logger.info(f"Created client {client.id} from public booking in organization {organization_id}")
            return client, True

        for field_name in ("first_name", "last_name", "phone"):
            value = getattr(data, field_name).strip()
            if value and value != getattr(client, field_name):
                setattr(client, field_name, value)
        return client, False

    def _verify_client_identity(self, appointment: Appointment, client_email: str) -> None:
        client = self.store.get_client(appointment.client_id)
        if client is None or not client.matches_email(client_email):
            logger.warning(f"Client identity mismatch for appointment {appointment.id}")
            raise AuthorizationError(
                "Not authorized to change this appointment",
                appointment_id=appointment.id,
                organization_id=appointment.organization_id,
            )

    @staticmethod
    def _validate_client_data(data: ClientData) -> None:
        if not all(
            value and value.strip()
            for value in (data.first_name, data.last_name, data.email, data.phone)
        ):
            raise ValidationError("Client information is incomplete")
        if not EMAIL_PATTERN.match(data.email.strip()):
            raise ValidationError("Invalid email format", email=data.email)
        if not PHONE_PATTERN.match(data.phone.strip()):
            raise ValidationError("Invalid phone format", phone=data.phone)
