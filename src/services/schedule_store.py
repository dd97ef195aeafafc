"""
Persistence gateway for the scheduling core.

ScheduleStore wraps a SQLAlchemy session and exposes the reads and writes
the availability engine and the scheduling services need, including the
per-practitioner-day version token that serializes check-then-write.
"""

import logging
from datetime import date as date_type
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import ACTIVE_STATUSES
from core.exceptions import ConcurrentModificationError
from models import (
    Appointment,
    Client,
    OrganizationScheduleSettings,
    PractitionerDaySchedule,
    Service,
)
from shared_types.appointments import AppointmentFilters
from utils.datetime_utils import parse_date_string

logger = logging.getLogger(__name__)


class ScheduleStore:
    """
    Session-bound data access for appointments, settings, clients and services.

    One store instance is used per request/transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    # ===== Transaction control =====

    def add(self, instance: object) -> None:
        self.db.add(instance)

    def flush(self) -> None:
        self.db.flush()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, instance: object) -> None:
        self.db.refresh(instance)

    # ===== Settings =====

    def get_settings(self, organization_id: str) -> Optional[OrganizationScheduleSettings]:
        return self.db.get(OrganizationScheduleSettings, organization_id)

    # ===== Clients & services =====

    def get_client(self, client_id: str) -> Optional[Client]:
        return self.db.get(Client, client_id)

    def find_client_by_email(self, organization_id: str, email: str) -> Optional[Client]:
        """Find a client of the organization by email, case-insensitively."""
        return self.db.query(Client).filter(
            Client.organization_id == organization_id,
            Client.email == email.strip().lower()
        ).first()

    def get_service(self, service_id: str) -> Optional[Service]:
        return self.db.get(Service, service_id)

    # ===== Appointments =====

    def get_appointment(self, appointment_id: int) -> Optional[Appointment]:
        return self.db.get(Appointment, appointment_id)

    def get_active_appointments(
        self,
        organization_id: str,
        practitioner_id: str,
        day: date_type,
        exclude_appointment_id: Optional[int] = None
    ) -> List[Appointment]:
        """
        Scheduled/confirmed appointments of a practitioner on a day.

        Ordered by (date, start time, id) so conflict reports are stable.
        """
        query = self.db.query(Appointment).filter(
            Appointment.organization_id == organization_id,
            Appointment.practitioner_id == practitioner_id,
            Appointment.date == day,
            Appointment.status.in_(ACTIVE_STATUSES)
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.order_by(Appointment.date, Appointment.start_time, Appointment.id).all()

    def query_appointments(self, organization_id: str, filters: AppointmentFilters) -> List[Appointment]:
        """
        List appointments of an organization matching the filters.

        The free-text search matches notes, client id and service id
        case-insensitively.

        Raises:
            ValueError: If a date filter is malformed
        """
        query = self.db.query(Appointment).filter(Appointment.organization_id == organization_id)

        if filters.start_date:
            query = query.filter(Appointment.date >= parse_date_string(filters.start_date))
        if filters.end_date:
            query = query.filter(Appointment.date <= parse_date_string(filters.end_date))
        if filters.practitioner_id:
            query = query.filter(Appointment.practitioner_id == filters.practitioner_id)
        if filters.service_id:
            query = query.filter(Appointment.service_id == filters.service_id)
        if filters.client_id:
            query = query.filter(Appointment.client_id == filters.client_id)
        if filters.statuses:
            query = query.filter(Appointment.status.in_(filters.statuses))
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.filter(
                or_(
                    Appointment.notes.ilike(pattern),
                    Appointment.client_id.ilike(pattern),
                    Appointment.service_id.ilike(pattern),
                )
            )

        return query.order_by(Appointment.date, Appointment.start_time, Appointment.id).all()

    # ===== Practitioner-day version token =====

    def acquire_schedule_token(self, organization_id: str, practitioner_id: str, day: date_type) -> int:
        """
        Lock (or create) the practitioner-day token row and return its version.

        SELECT ... FOR UPDATE blocks concurrent writers on databases that
        support it; the version check in bump_schedule_version covers the rest.

        Raises:
            ConcurrentModificationError: If another transaction created the row first
        """
        token = self.db.query(PractitionerDaySchedule).filter(
            PractitionerDaySchedule.organization_id == organization_id,
            PractitionerDaySchedule.practitioner_id == practitioner_id,
            PractitionerDaySchedule.date == day
        ).populate_existing().with_for_update().first()

        if token is not None:
            return token.version

        token = PractitionerDaySchedule(
            organization_id=organization_id,
            practitioner_id=practitioner_id,
            date=day,
            version=0
        )
        self.db.add(token)
        try:
            self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Concurrent schedule token creation for {practitioner_id} on {day}: {e}")
            raise ConcurrentModificationError(
                organization_id=organization_id, practitioner_id=practitioner_id
            ) from e
        return 0

    def bump_schedule_version(
        self,
        organization_id: str,
        practitioner_id: str,
        day: date_type,
        seen_version: int
    ) -> None:
        """
        Conditionally increment the token version.

        Raises:
            ConcurrentModificationError: If the version moved since it was read
        """
        result = self.db.execute(
            update(PractitionerDaySchedule)
            .where(
                PractitionerDaySchedule.organization_id == organization_id,
                PractitionerDaySchedule.practitioner_id == practitioner_id,
                PractitionerDaySchedule.date == day,
                PractitionerDaySchedule.version == seen_version
            )
            .values(version=seen_version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:  # type: ignore[attr-defined]
            logger.warning(
                f"Schedule of practitioner {practitioner_id} on {day} changed "
                f"(expected version {seen_version})"
            )
            raise ConcurrentModificationError(
                organization_id=organization_id, practitioner_id=practitioner_id
            )
