"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across the
staff and public routers to ensure consistency and reduce duplication.
"""

from typing import List, Optional

from pydantic import BaseModel

from models import Appointment, Client
from shared_types.availability import AvailableSlot, Conflict


class AppointmentResponse(BaseModel):
    """Response model for an appointment."""
    id: int
    organization_id: str
    client_id: str
    practitioner_id: str
    service_id: str
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    duration: int
    status: str
    notes: Optional[str] = None

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls.model_validate(appointment.to_dict())


class AppointmentListResponse(BaseModel):
    """Response model for listing appointments."""
    appointments: List[AppointmentResponse]
    total: int


class ConflictResponse(BaseModel):
    type: str
    message: str
    conflicting_appointment_id: Optional[int] = None

    @classmethod
    def from_conflict(cls, conflict: Conflict) -> "ConflictResponse":
        return cls(
            type=conflict.type,
            message=conflict.message,
            conflicting_appointment_id=conflict.conflicting_appointment_id,
        )


class AvailabilityCheckResponse(BaseModel):
    """Result of an availability check; available iff there are no conflicts."""
    available: bool
    conflicts: List[ConflictResponse]


class SlotResponse(BaseModel):
    date: str
    start_time: str
    end_time: str
    duration: int
    practitioner_id: str
    service_id: Optional[str] = None

    @classmethod
    def from_slot(cls, slot: AvailableSlot) -> "SlotResponse":
        return cls.model_validate(slot.to_dict())


class SlotListResponse(BaseModel):
    """Response model for slot listings."""
    slots: List[SlotResponse]


class ClientResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    phone: str

    @classmethod
    def from_client(cls, client: Client) -> "ClientResponse":
        return cls(
            id=client.id,
            first_name=client.first_name,
            last_name=client.last_name,
            email=client.email,
            phone=client.phone,
        )


class BookingResponse(BaseModel):
    """Response model for a public booking."""
    appointment: AppointmentResponse
    client: ClientResponse
    is_new_client: bool
