"""
Reminder records owned by an appointment.

Reminders are created and updated only through the Appointment entity's
reminder-management methods; the notification subsystem delivers them.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import REMINDER_PENDING
from core.database import Base


class AppointmentReminder(Base):
    """A single reminder (channel + scheduled time + delivery state)."""

    __tablename__ = "appointment_reminders"

    id: Mapped[int] = mapped_column(primary_key=True)

    appointment_id: Mapped[int] = mapped_column(ForeignKey("appointments.id", ondelete="CASCADE"))

    channel: Mapped[str] = mapped_column(String(20))
    """Delivery channel: 'email' or 'sms'."""

    scheduled_for: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    status: Mapped[str] = mapped_column(String(20), default=REMINDER_PENDING, nullable=False)
    """Delivery status: 'pending', 'sent', 'failed' or 'cancelled'."""

    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    sent_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    appointment = relationship("Appointment", back_populates="reminders")
