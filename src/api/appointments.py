# pyright: reportMissingTypeStubs=false
"""
Appointment Management API endpoints (staff-facing).
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from api.dependencies import get_actor_id, get_appointment_service
from api.responses import AppointmentListResponse, AppointmentResponse
from core.constants import MAX_NOTES_LENGTH, MAX_REASON_LENGTH
from core.sentinels import MISSING
from services import AppointmentService
from shared_types.appointments import AppointmentFilters, AppointmentRequest, AppointmentUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class AppointmentCreateRequest(BaseModel):
    """Request model for booking an appointment."""
    client_id: str
    practitioner_id: str
    service_id: str
    date: str = Field(..., description="YYYY-MM-DD")
    start_time: str = Field(..., description="HH:MM")
    duration: Optional[int] = Field(default=None, description="Minutes; defaults to the service duration")
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)


class AppointmentUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are changed."""
    practitioner_id: Optional[str] = None
    service_id: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    duration: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)
    reason: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)

    def to_update(self) -> AppointmentUpdate:
        provided = self.model_fields_set
        return AppointmentUpdate(
            practitioner_id=self.practitioner_id if "practitioner_id" in provided and self.practitioner_id else MISSING,
            service_id=self.service_id if "service_id" in provided and self.service_id else MISSING,
            date=self.date if "date" in provided and self.date else MISSING,
            start_time=self.start_time if "start_time" in provided and self.start_time else MISSING,
            duration=self.duration if "duration" in provided and self.duration is not None else MISSING,
            notes=self.notes if "notes" in provided else MISSING,
            reason=self.reason,
        )


class StatusUpdateRequest(BaseModel):
    status: str
    reason: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)


class CompleteRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)


class ReasonRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=MAX_REASON_LENGTH)


# ===== Endpoints =====

@router.post(
    "/{organization_id}/appointments",
    summary="Create an appointment",
    status_code=status.HTTP_201_CREATED,
)
async def create_appointment(
    organization_id: str,
    request: AppointmentCreateRequest,
    actor_id: str = Depends(get_actor_id),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> AppointmentResponse:
    appointment = appointment_service.create_appointment(
        AppointmentRequest(**request.model_dump()), organization_id, actor_id
    )
    return AppointmentResponse.from_appointment(appointment)


@router.get("/{organization_id}/appointments", summary="List appointments")
async def list_appointments(
    organization_id: str,
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    practitioner_id: Optional[str] = Query(None),
    service_id: Optional[str] = Query(None),
    client_id: Optional[str] = Query(None),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> AppointmentListResponse:
    appointments = appointment_service.get_appointments(
        organization_id,
        AppointmentFilters(
            start_date=start_date,
            end_date=end_date,
            practitioner_id=practitioner_id,
            service_id=service_id,
            client_id=client_id,
            statuses=status_filter or [],
            search=search,
        ),
    )
    return AppointmentListResponse(
        appointments=[AppointmentResponse.from_appointment(a) for a in appointments],
        total=len(appointments),
    )


@router.get("/{organization_id}/appointments/{appointment_id}", summary="Get an appointment")
async def get_appointment(
    organization_id: str,
    appointment_id: int,
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> AppointmentResponse:
    return AppointmentResponse.from_appointment(appointment_service.get_appointment(appointment_id, organization_id))


@router.put("/{organization_id}/appointments/{appointment_id}", summary="Update an appointment")
async def update_appointment(
    organization_id: str,
    appointment_id: int,
    request: AppointmentUpdateRequest,
    actor_id: str = Depends(get_actor_id),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> AppointmentResponse:
    appointment = appointment_service.update_appointment(appointment_id, request.to_update(), organization_id, actor_id)
    return AppointmentResponse.from_appointment(appointment)


@router.delete(
    "/{organization_id}/appointments/{appointment_id}",
    summary="Cancel (soft-delete) an appointment",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_appointment(
    organization_id: str,
    appointment_id: int,
    reason: Optional[str] = Query(None, max_length=MAX_REASON_LENGTH),
    actor_id: str = Depends(get_actor_id),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> None:
    appointment_service.delete_appointment(appointment_id, organization_id, actor_id, reason)


@router.put("/{organization_id}/appointments/{appointment_id}/status", summary="Change appointment status")
async def update_appointment_status(
    organization_id: str,
    appointment_id: int,
    request: StatusUpdateRequest,
    actor_id: str = Depends(get_actor_id),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> AppointmentResponse:
    appointment = appointment_service.update_appointment_status(
        appointment_id, request.status, organization_id, actor_id, request.reason
    )
    return AppointmentResponse.from_appointment(appointment)


@router.post("/{organization_id}/appointments/{appointment_id}/confirm", summary="Confirm an appointment")
async def confirm_appointment(
    organization_id: str,
    appointment_id: int,
    actor_id: str = Depends(get_actor_id),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> AppointmentResponse:
    return AppointmentResponse.from_appointment(
        appointment_service.confirm_appointment(appointment_id, organization_id, actor_id)
    )


@router.post("/{organization_id}/appointments/{appointment_id}/complete", summary="Complete an appointment")
async def complete_appointment(
    organization_id: str,
    appointment_id: int,
    request: Optional[CompleteRequest] = None,
    actor_id: str = Depends(get_actor_id),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> AppointmentResponse:
    notes = request.notes if request else None
    return AppointmentResponse.from_appointment(
        appointment_service.complete_appointment(appointment_id, organization_id, actor_id, notes)
    )


@router.post("/{organization_id}/appointments/{appointment_id}/cancel", summary="Cancel an appointment")
async def cancel_appointment(
    organization_id: str,
    appointment_id: int,
    request: Optional[ReasonRequest] = None,
    actor_id: str = Depends(get_actor_id),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> AppointmentResponse:
    reason = request.reason if request else None
    return AppointmentResponse.from_appointment(
        appointment_service.cancel_appointment(appointment_id, organization_id, actor_id, reason)
    )


@router.post("/{organization_id}/appointments/{appointment_id}/no-show", summary="Mark an appointment as no-show")
async def mark_as_no_show(
    organization_id: str,
    appointment_id: int,
    request: Optional[ReasonRequest] = None,
    actor_id: str = Depends(get_actor_id),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> AppointmentResponse:
    reason = request.reason if request else None
    return AppointmentResponse.from_appointment(
        appointment_service.mark_as_no_show(appointment_id, organization_id, actor_id, reason)
    )
