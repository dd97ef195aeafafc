# pyright: reportMissingTypeStubs=false
"""
Public booking API endpoints.

No staff identity is involved: modify, cancel and confirm are authorized by
the client's email address.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from api.dependencies import get_booking_service
from api.responses import (
    AppointmentResponse,
    BookingResponse,
    ClientResponse,
    SlotListResponse,
    SlotResponse,
)
from core.constants import MAX_NOTES_LENGTH, MAX_REASON_LENGTH
from core.sentinels import MISSING
from services import BookingService
from shared_types.appointments import AppointmentUpdate, BookingRequest, ClientData

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class ClientDataRequest(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone: str


class BookingCreateRequest(BaseModel):
    client: ClientDataRequest
    service_id: str
    date: str = Field(..., description="YYYY-MM-DD")
    start_time: str = Field(..., description="HH:MM")
    practitioner_id: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)


class BookingModifyRequest(BaseModel):
    client_email: str
    date: Optional[str] = None
    start_time: Optional[str] = None
    service_id: Optional[str] = None
    practitioner_id: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)

    def to_update(self) -> AppointmentUpdate:
        return AppointmentUpdate(
            date=self.date or MISSING,
            start_time=self.start_time or MISSING,
            service_id=self.service_id or MISSING,
            practitioner_id=self.practitioner_id or MISSING,
            notes=self.notes if "notes" in self.model_fields_set else MISSING,
        )


class BookingCancelRequest(BaseModel):
    client_email: str
    reason: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)


class BookingConfirmRequest(BaseModel):
    client_email: str


# ===== Endpoints =====

@router.get("/{organization_id}/slots", summary="List bookable slots")
async def get_public_slots(
    organization_id: str,
    date: str = Query(..., description="YYYY-MM-DD"),
    service_id: Optional[str] = Query(None),
    practitioner_id: Optional[str] = Query(None),
    booking_service: BookingService = Depends(get_booking_service)
) -> SlotListResponse:
    slots = booking_service.get_available_slots(
        organization_id, date, service_id=service_id, practitioner_id=practitioner_id
    )
    return SlotListResponse(slots=[SlotResponse.from_slot(s) for s in slots])


@router.post(
    "/{organization_id}/bookings",
    summary="Book an appointment online",
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    organization_id: str,
    request: BookingCreateRequest,
    booking_service: BookingService = Depends(get_booking_service)
) -> BookingResponse:
    result = booking_service.create_booking(
        organization_id,
        BookingRequest(
            client=ClientData(**request.client.model_dump()),
            service_id=request.service_id,
            date=request.date,
            start_time=request.start_time,
            practitioner_id=request.practitioner_id,
            notes=request.notes,
        ),
    )
    return BookingResponse(
        appointment=AppointmentResponse.from_appointment(result["appointment"]),
        client=ClientResponse.from_client(result["client"]),
        is_new_client=result["is_new_client"],
    )


@router.put("/{organization_id}/bookings/{appointment_id}", summary="Modify a booking")
async def modify_booking(
    organization_id: str,
    appointment_id: int,
    request: BookingModifyRequest,
    booking_service: BookingService = Depends(get_booking_service)
) -> AppointmentResponse:
    appointment = booking_service.modify_booking(
        organization_id, appointment_id, request.to_update(), request.client_email
    )
    return AppointmentResponse.from_appointment(appointment)


@router.post("/{organization_id}/bookings/{appointment_id}/cancel", summary="Cancel a booking")
async def cancel_booking(
    organization_id: str,
    appointment_id: int,
    request: BookingCancelRequest,
    booking_service: BookingService = Depends(get_booking_service)
) -> AppointmentResponse:
    appointment = booking_service.cancel_booking(
        organization_id, appointment_id, request.client_email, request.reason
    )
    return AppointmentResponse.from_appointment(appointment)


@router.post("/{organization_id}/bookings/{appointment_id}/confirm", summary="Confirm a booking")
async def confirm_booking(
    organization_id: str,
    appointment_id: int,
    request: BookingConfirmRequest,
    booking_service: BookingService = Depends(get_booking_service)
) -> AppointmentResponse:
    appointment = booking_service.confirm_booking(organization_id, appointment_id, request.client_email)
    return AppointmentResponse.from_appointment(appointment)
