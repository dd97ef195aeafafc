# pyright: reportMissingTypeStubs=false
"""
Availability API endpoints (staff-facing).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from api.dependencies import get_appointment_service, get_availability_service
from api.responses import AvailabilityCheckResponse, ConflictResponse, SlotListResponse, SlotResponse
from services import AppointmentService, AvailabilityService
from services.appointment_service import parse_request_date, parse_request_time

logger = logging.getLogger(__name__)

router = APIRouter()


class AvailabilityCheckRequest(BaseModel):
    practitioner_id: str
    date: str = Field(..., description="YYYY-MM-DD")
    start_time: str = Field(..., description="HH:MM")
    duration: int = Field(..., gt=0)
    exclude_appointment_id: Optional[int] = None


@router.post("/{organization_id}/availability/check", summary="Check whether a slot is bookable")
async def check_availability(
    organization_id: str,
    request: AvailabilityCheckRequest,
    availability_service: AvailabilityService = Depends(get_availability_service)
) -> AvailabilityCheckResponse:
    conflicts = availability_service.check_availability(
        organization_id,
        request.practitioner_id,
        parse_request_date(request.date),
        parse_request_time(request.start_time),
        request.duration,
        request.exclude_appointment_id,
    )
    return AvailabilityCheckResponse(
        available=not conflicts,
        conflicts=[ConflictResponse.from_conflict(c) for c in conflicts],
    )


@router.get("/{organization_id}/availability/slots", summary="List free slots for a practitioner")
async def get_available_slots(
    organization_id: str,
    practitioner_id: str = Query(...),
    date: str = Query(..., description="YYYY-MM-DD"),
    service_id: Optional[str] = Query(None),
    duration: Optional[int] = Query(None, gt=0),
    appointment_service: AppointmentService = Depends(get_appointment_service)
) -> SlotListResponse:
    slots = appointment_service.get_available_slots(
        organization_id, practitioner_id, date, service_id=service_id, duration=duration
    )
    return SlotListResponse(slots=[SlotResponse.from_slot(s) for s in slots])
