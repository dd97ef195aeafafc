"""
FastAPI dependencies wiring the scheduling services for one request.

Every request gets its own session-bound store; the services built on top of
it share that store, so one request is one transaction. The event publisher
lives on the application state and outlives requests.
"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import ValidationError
from services import (
    AppointmentEventPublisher,
    AppointmentService,
    AvailabilityService,
    BookingService,
    ScheduleStore,
    SettingsService,
)


def get_store(db: Session = Depends(get_db)) -> ScheduleStore:
    return ScheduleStore(db)


def get_event_publisher(request: Request) -> AppointmentEventPublisher:
    return request.app.state.event_publisher


def get_settings_service(store: ScheduleStore = Depends(get_store)) -> SettingsService:
    return SettingsService(store)


def get_availability_service(
    store: ScheduleStore = Depends(get_store),
    settings_service: SettingsService = Depends(get_settings_service)
) -> AvailabilityService:
    return AvailabilityService(store, settings_service)


def get_appointment_service(
    store: ScheduleStore = Depends(get_store),
    availability_service: AvailabilityService = Depends(get_availability_service),
    settings_service: SettingsService = Depends(get_settings_service),
    publisher: AppointmentEventPublisher = Depends(get_event_publisher)
) -> AppointmentService:
    return AppointmentService(store, availability_service, settings_service, publisher)


def get_booking_service(
    store: ScheduleStore = Depends(get_store),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> BookingService:
    return BookingService(store, appointment_service)


def get_actor_id(x_actor_id: Optional[str] = Header(default=None)) -> str:
    """
    Identify the staff member performing the request.

    Authentication happens upstream; the gateway forwards the user id in
    the X-Actor-Id header.
    """
    if not x_actor_id or not x_actor_id.strip():
        raise ValidationError("X-Actor-Id header is required")
    return x_actor_id.strip()
