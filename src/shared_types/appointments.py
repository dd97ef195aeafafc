"""
Request and filter types passed into the scheduling and booking services.

Dates and times travel in their wire formats ("YYYY-MM-DD", "HH:MM") and are
parsed and validated by the services.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from core.sentinels import MISSING, MissingType


@dataclass
class AppointmentRequest:
    """Staff-side request to book a new appointment."""
    client_id: str
    practitioner_id: str
    service_id: str
    date: str  # Format: "YYYY-MM-DD"
    start_time: str  # Format: "HH:MM"
    duration: Optional[int] = None  # Falls back to service duration, then the organization default
    notes: Optional[str] = None


@dataclass
class AppointmentUpdate:
    """
    Partial update of an appointment.

    Fields left as MISSING are not touched. `notes=None` clears the notes.
    """
    practitioner_id: Union[str, MissingType] = MISSING
    service_id: Union[str, MissingType] = MISSING
    date: Union[str, MissingType] = MISSING
    start_time: Union[str, MissingType] = MISSING
    duration: Union[int, MissingType] = MISSING
    notes: Union[Optional[str], MissingType] = MISSING
    reason: Optional[str] = None

    def provided_fields(self) -> Dict[str, Any]:
        """Fields explicitly supplied by the caller (reason excluded)."""
        values = {
            "practitioner_id": self.practitioner_id,
            "service_id": self.service_id,
            "date": self.date,
            "start_time": self.start_time,
            "duration": self.duration,
            "notes": self.notes,
        }
        return {name: value for name, value in values.items() if not isinstance(value, MissingType)}


@dataclass
class AppointmentFilters:
    """Listing filters; every field is optional and they combine with AND."""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    practitioner_id: Optional[str] = None
    service_id: Optional[str] = None
    client_id: Optional[str] = None
    statuses: List[str] = field(default_factory=list)
    search: Optional[str] = None


@dataclass
class ClientData:
    """Identity supplied by a client booking online."""
    first_name: str
    last_name: str
    email: str
    phone: str


@dataclass
class BookingRequest:
    """Public booking request."""
    client: ClientData
    service_id: str
    date: str  # Format: "YYYY-MM-DD"
    start_time: str  # Format: "HH:MM"
    practitioner_id: Optional[str] = None  # Auto-assigned when omitted
    notes: Optional[str] = None
