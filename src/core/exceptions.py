"""
Domain error taxonomy for the scheduling core.

Services and entities raise these typed errors; only the HTTP boundary
(api.errors) translates them into status codes.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from shared_types.availability import Conflict


class SchedulingError(Exception):
    """Base class for all errors raised by the scheduling core."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}
        super().__init__(self.message)

    def with_context(self, **context: Any) -> "SchedulingError":
        """Attach operation context (appointment, organization) and return self."""
        for key, value in context.items():
            if value is not None:
                self.context.setdefault(key, value)
        return self


class ValidationError(SchedulingError):
    """Malformed user input: bad date/time format, past date, out-of-range duration."""


class BookingNotAllowedError(ValidationError):
    """Online booking disabled or booking window rules violated."""


class NotFoundError(SchedulingError):
    """Appointment, client, service or organization settings missing."""


class ConflictError(SchedulingError):
    """Requested slot is not bookable."""

    def __init__(self, conflicts: "Optional[List[Conflict]]" = None, message: Optional[str] = None, **context: Any):
        self.conflicts = list(conflicts or [])
        if message is None:
            message = "Appointment conflicts detected: " + ", ".join(c.message for c in self.conflicts)
        super().__init__(message, **context)


class NoPractitionerAvailableError(ConflictError):
    """No eligible practitioner is free for the requested slot."""

    def __init__(self, **context: Any):
        super().__init__([], message="No practitioner available for this time slot", **context)


class ConcurrentModificationError(ConflictError):
    """The practitioner's schedule changed between the availability check and the write."""

    def __init__(self, **context: Any):
        super().__init__(
            [],
            message="The schedule was modified by another request, please try again",
            **context,
        )


class InvalidTransitionError(SchedulingError):
    """Illegal appointment status change."""

    def __init__(self, current_status: str, requested_status: str, **context: Any):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Invalid status transition from {current_status} to {requested_status}",
            **context,
        )


class AuthorizationError(SchedulingError):
    """Caller identity does not match the appointment's client."""


class DeadlineError(SchedulingError):
    """Cancellation or modification window has passed."""

    def __init__(self, message: str, deadline_hours: int, **context: Any):
        self.deadline_hours = deadline_hours
        super().__init__(message, **context)
