# Package initialization
# Import all models to ensure relationships are properly established
from .organization_schedule_settings import (
    BookingRules,
    OrganizationScheduleSettings,
    ReminderConfig,
    ScheduleSettings,
    WorkingDayHours,
)
from .client import Client
from .service import Service
from .practitioner_day_schedule import PractitionerDaySchedule
from .appointment_reminder import AppointmentReminder
from .appointment_audit_entry import AppointmentAuditEntry
from .appointment import Appointment, validate_status_transition

__all__ = [
    "BookingRules",
    "OrganizationScheduleSettings",
    "ReminderConfig",
    "ScheduleSettings",
    "WorkingDayHours",
    "Client",
    "Service",
    "PractitionerDaySchedule",
    "AppointmentReminder",
    "AppointmentAuditEntry",
    "Appointment",
    "validate_status_transition",
]
