"""
Appointment model representing a single booking between a client and a practitioner.

The Appointment entity owns its status state machine, the time-conflict
predicate used by the availability engine, cancellation/modification
eligibility, its audit trail and its reminder records.
"""

from datetime import date as date_type, datetime, time
from typing import Any, Dict, List, Optional

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, Time, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import (
    ACTIVE_STATUSES,
    MAX_STRING_LENGTH,
    REMINDER_CANCELLED,
    REMINDER_CHANNELS,
    REMINDER_FAILED,
    REMINDER_PENDING,
    REMINDER_SENT,
    REMINDER_STATUSES,
    STATUS_SCHEDULED,
    TERMINAL_STATUSES,
    VALID_STATUS_TRANSITIONS,
)
from core.database import Base
from core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from models.appointment_audit_entry import AppointmentAuditEntry
from models.appointment_reminder import AppointmentReminder
from utils.datetime_utils import (
    combine_in_zone,
    ensure_aware,
    format_date,
    format_time,
    hours_between,
    minutes_to_time_string,
    organization_now,
    time_to_minutes,
    utc_now,
)


def validate_status_transition(current_status: str, new_status: str) -> None:
    """
    Validate a status change against the transition table.

    Raises:
        InvalidTransitionError: If new_status is not reachable from current_status
    """
    if new_status not in VALID_STATUS_TRANSITIONS.get(current_status, ()):
        raise InvalidTransitionError(current_status, new_status)


def _audit_value(value: Any) -> Any:
    """Convert a field value into a JSON-serializable audit value."""
    if isinstance(value, date_type) and not isinstance(value, datetime):
        return format_date(value)
    if isinstance(value, time):
        return format_time(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class Appointment(Base):
    """
    Appointment entity representing one scheduled booking.

    Timing is stored as a naive calendar date, a naive start time and a
    duration in minutes; the end time is always derived. Two active
    (scheduled/confirmed) appointments of the same practitioner on the same
    date must never overlap.
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True)
    """Unique identifier assigned on creation."""

    organization_id: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"))
    """Reference to the client who booked this appointment."""

    practitioner_id: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    service_id: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    date: Mapped[date_type] = mapped_column(Date)
    """Calendar day of the appointment (time-zone naive)."""

    start_time: Mapped[time] = mapped_column(Time)
    """Wall-clock start time in the organization's timezone."""

    duration: Mapped[int] = mapped_column(Integer)
    """Duration in minutes."""

    status: Mapped[str] = mapped_column(String(20), default=STATUS_SCHEDULED)
    """Valid values: 'scheduled', 'confirmed', 'completed', 'cancelled', 'no_show'."""

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    client = relationship("Client", back_populates="appointments")

    reminders: Mapped[List[AppointmentReminder]] = relationship(
        "AppointmentReminder",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentReminder.id",
    )
    """Reminder records, mutated only through the reminder-management methods below."""

    audit_entries: Mapped[List[AppointmentAuditEntry]] = relationship(
        "AppointmentAuditEntry",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentAuditEntry.id",
    )

    # ===== Derived timing =====

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration

    @property
    def start_time_str(self) -> str:
        return format_time(self.start_time)

    @property
    def end_time(self) -> str:
        """HH:MM end time; may read "24:00" for an appointment ending at midnight."""
        return minutes_to_time_string(self.end_minutes)

    @property
    def date_str(self) -> str:
        return format_date(self.date)

    def start_datetime(self, tz_name: Optional[str] = None) -> datetime:
        """Start of the appointment as an aware datetime in the organization's timezone."""
        return combine_in_zone(self.date, self.start_time, tz_name)

    # ===== Predicates =====

    @property
    def is_active(self) -> bool:
        """Whether the appointment occupies the practitioner's time."""
        return self.status in ACTIVE_STATUSES

    def can_be_modified(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def can_be_cancelled(
        self,
        deadline_hours: int,
        now: Optional[datetime] = None,
        tz_name: Optional[str] = None,
    ) -> bool:
        """
        Check whether the appointment can still be cancelled.

        True iff the status is not terminal and `now` is strictly before
        (start - deadline_hours).

        Args:
            deadline_hours: Minimum notice required, in hours
            now: Current time (defaults to now in the organization's timezone)
            tz_name: Organization timezone used to interpret date/start_time
        """
        if self.status in TERMINAL_STATUSES:
            return False
        if now is None:
            now = organization_now(tz_name)
        return hours_between(now, self.start_datetime(tz_name)) > deadline_hours

    def has_time_conflict(self, other: "Appointment") -> bool:
        """
        Check whether this appointment overlaps another one.

        Appointments on different dates, with different practitioners, or
        with the same id never conflict. Otherwise the [start, end)
        intervals are compared strictly, so back-to-back slots are fine.
        """
        if self.id is not None and self.id == other.id:
            return False
        if self.date != other.date or self.practitioner_id != other.practitioner_id:
            return False
        return self.start_minutes < other.end_minutes and self.end_minutes > other.start_minutes

    # ===== State machine =====

    def update_status(self, new_status: str, performed_by: str, reason: Optional[str] = None) -> None:
        """
        Transition to a new status and record the change.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        validate_status_transition(self.status, new_status)
        old_status = self.status
        self.status = new_status
        self.record_audit(
            "status_changed",
            performed_by,
            old_value={"status": old_status},
            new_value={"status": new_status},
            reason=reason,
        )

    # ===== Audit =====

    def record_audit(
        self,
        action: str,
        performed_by: str,
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> AppointmentAuditEntry:
        entry = AppointmentAuditEntry(
            action=action,
            performed_by=performed_by,
            old_value=old_value,
            new_value=new_value,
            reason=reason,
            created_at=utc_now(),
        )
        self.audit_entries.append(entry)
        return entry

    def apply_updates(
        self,
        changes: Dict[str, Any],
        performed_by: str,
        reason: Optional[str] = None,
        action: str = "updated",
    ) -> Dict[str, Any]:
        """
        Apply field changes and record a single audit entry.

        Only fields whose value actually changes are written and audited.

        Returns:
            Mapping of changed field names to their new values
        """
        old_values: Dict[str, Any] = {}
        new_values: Dict[str, Any] = {}
        for field_name, value in changes.items():
            current = getattr(self, field_name)
            if current == value:
                continue
            old_values[field_name] = _audit_value(current)
            new_values[field_name] = _audit_value(value)
            setattr(self, field_name, value)

        if new_values:
            self.record_audit(action, performed_by, old_value=old_values, new_value=new_values, reason=reason)
        return {name: getattr(self, name) for name in new_values}

    # ===== Reminder management =====

    def add_reminder(self, channel: str, scheduled_for: datetime) -> AppointmentReminder:
        if channel not in REMINDER_CHANNELS:
            raise ValidationError(f"Invalid reminder channel: {channel}")
        reminder = AppointmentReminder(
            channel=channel,
            scheduled_for=scheduled_for,
            status=REMINDER_PENDING,
            retry_count=0,
        )
        self.reminders.append(reminder)
        return reminder

    def get_reminder(self, reminder_id: int) -> AppointmentReminder:
        for reminder in self.reminders:
            if reminder.id == reminder_id:
                return reminder
        raise NotFoundError("Reminder not found", appointment_id=self.id, reminder_id=reminder_id)

    def update_reminder_status(
        self,
        reminder_id: int,
        status: str,
        error_message: Optional[str] = None,
        sent_at: Optional[datetime] = None,
    ) -> AppointmentReminder:
        """
        Update a reminder's delivery status.

        A failed delivery increments the retry counter; a sent reminder
        records its delivery time.
        """
        if status not in REMINDER_STATUSES:
            raise ValidationError(f"Invalid reminder status: {status}")
        reminder = self.get_reminder(reminder_id)
        reminder.status = status
        if status == REMINDER_FAILED:
            reminder.retry_count += 1
            reminder.error_message = error_message
        elif status == REMINDER_SENT:
            reminder.sent_at = sent_at or utc_now()
            reminder.error_message = None
        return reminder

    def get_pending_reminders(self, now: Optional[datetime] = None) -> List[AppointmentReminder]:
        """Pending reminders, optionally limited to those due at or before `now`."""
        pending = [r for r in self.reminders if r.status == REMINDER_PENDING]
        if now is not None:
            pending = [r for r in pending if ensure_aware(r.scheduled_for) <= now]
        return pending

    def cancel_pending_reminders(self) -> int:
        """Cancel all pending reminders. Returns the number cancelled."""
        pending = self.get_pending_reminders()
        for reminder in pending:
            reminder.status = REMINDER_CANCELLED
        return len(pending)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with wire formats for date and times."""
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "client_id": self.client_id,
            "practitioner_id": self.practitioner_id,
            "service_id": self.service_id,
            "date": self.date_str,
            "start_time": self.start_time_str,
            "end_time": self.end_time,
            "duration": self.duration,
            "status": self.status,
            "notes": self.notes,
        }

    def __repr__(self) -> str:
        return (
            f"<Appointment id={self.id} practitioner={self.practitioner_id} "
            f"date={self.date} start={self.start_time_str} status={self.status}>"
        )

    # Table indexes for performance
    __table_args__ = (
        Index('idx_appointments_practitioner_day', 'organization_id', 'practitioner_id', 'date', 'status'),
        Index('idx_appointments_client', 'client_id'),
        Index('idx_appointments_status', 'status'),
    )
