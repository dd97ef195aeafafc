"""
Shared types for availability-related functionality.

This module contains the transient value types produced by the availability
engine. None of them are persisted.
"""

from dataclasses import dataclass
from typing import Optional

from core.constants import CONFLICT_MESSAGES


@dataclass(frozen=True)
class Conflict:
    """
    Describes why a proposed slot cannot be booked.

    An empty list of conflicts means the slot is bookable.
    """
    type: str  # outside_working_hours | time_overlap | daily_limit_reached
    message: str
    conflicting_appointment_id: Optional[int] = None

    @classmethod
    def of(cls, conflict_type: str, conflicting_appointment_id: Optional[int] = None) -> "Conflict":
        """Create a conflict with the standard message for its type."""
        return cls(
            type=conflict_type,
            message=CONFLICT_MESSAGES[conflict_type],
            conflicting_appointment_id=conflicting_appointment_id,
        )

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert to dictionary format."""
        result: dict[str, str | int | None] = {
            "type": self.type,
            "message": self.message,
        }
        if self.conflicting_appointment_id is not None:
            result["conflicting_appointment_id"] = self.conflicting_appointment_id
        return result


@dataclass(frozen=True)
class AvailableSlot:
    """
    Represents an available time slot for one practitioner.
    """
    date: str  # Format: "YYYY-MM-DD"
    start_time: str  # Format: "HH:MM"
    end_time: str  # Format: "HH:MM"
    duration: int
    practitioner_id: str
    service_id: Optional[str] = None

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert to dictionary format."""
        return {
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "practitioner_id": self.practitioner_id,
            "service_id": self.service_id,
        }
