"""
Services package for scheduling business logic.

This package contains the availability engine and the service classes that
orchestrate appointment scheduling on top of it.
"""

from .schedule_store import ScheduleStore
from .settings_service import SettingsService
from .availability_service import AvailabilityService
from .appointment_events import AppointmentEvent, AppointmentEventPublisher
from .appointment_service import AppointmentService
from .booking_service import BookingService

__all__ = [
    "ScheduleStore",
    "SettingsService",
    "AvailabilityService",
    "AppointmentEvent",
    "AppointmentEventPublisher",
    "AppointmentService",
    "BookingService",
]
