"""
Shared type definitions for the scheduling core.

This module contains dataclasses that are used across multiple services.
"""

from shared_types.appointments import (
    AppointmentFilters,
    AppointmentRequest,
    AppointmentUpdate,
    BookingRequest,
    ClientData,
)
from shared_types.availability import AvailableSlot, Conflict

__all__ = [
    "AppointmentFilters",
    "AppointmentRequest",
    "AppointmentUpdate",
    "AvailableSlot",
    "BookingRequest",
    "ClientData",
    "Conflict",
]
