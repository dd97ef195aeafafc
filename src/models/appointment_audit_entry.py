"""
Audit trail entries recorded for every appointment change.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, ForeignKey, String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_REASON_LENGTH, MAX_STRING_LENGTH
from core.database import Base


class AppointmentAuditEntry(Base):
    """One audit record: {action, performed_by, old_value, new_value, reason}."""

    __tablename__ = "appointment_audit_entries"

    id: Mapped[int] = mapped_column(primary_key=True)

    appointment_id: Mapped[int] = mapped_column(ForeignKey("appointments.id", ondelete="CASCADE"))

    action: Mapped[str] = mapped_column(String(50))
    """e.g. 'created', 'updated', 'status_changed', 'cancelled'."""

    performed_by: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    old_value: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    new_value: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)

    reason: Mapped[Optional[str]] = mapped_column(String(MAX_REASON_LENGTH), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    appointment = relationship("Appointment", back_populates="audit_entries")
