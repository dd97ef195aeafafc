"""
Appointment lifecycle events.

The scheduling service publishes an event after every successful write.
Subscribers (notification, calendar sync, analytics) live outside the
scheduling core; a failing subscriber is logged and never aborts the
operation that published the event.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

EVENT_CREATED = "created"
EVENT_UPDATED = "updated"
EVENT_RESCHEDULED = "rescheduled"
EVENT_STATUS_CHANGED = "status_changed"
EVENT_CONFIRMED = "confirmed"
EVENT_COMPLETED = "completed"
EVENT_CANCELLED = "cancelled"
EVENT_NO_SHOW = "no_show"

# Status-specific event published alongside status_changed
STATUS_EVENTS = {
    "confirmed": EVENT_CONFIRMED,
    "completed": EVENT_COMPLETED,
    "cancelled": EVENT_CANCELLED,
    "no_show": EVENT_NO_SHOW,
}


@dataclass(frozen=True)
class AppointmentEvent:
    type: str
    appointment_id: int
    organization_id: str
    performed_by: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    occurred_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "appointment_id": self.appointment_id,
            "organization_id": self.organization_id,
            "performed_by": self.performed_by,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "occurred_at": self.occurred_at.isoformat(),
        }


EventHandler = Callable[[AppointmentEvent], None]


class AppointmentEventPublisher:
    """In-process publish/subscribe hub for appointment events."""

    def __init__(self) -> None:
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """
        Register a handler for every event.

        Returns:
            A callable that removes the handler again
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: AppointmentEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                logger.exception(
                    f"Appointment event handler failed for {event.type} "
                    f"on appointment {event.appointment_id}: {e}"
                )
