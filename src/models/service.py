"""
Service model representing a bookable offering (consultation, haircut, ...).

A service defines the appointment duration and the ordered list of
practitioners eligible to provide it. It is read-only input to the
availability engine.
"""

import uuid
from datetime import datetime
from typing import List

from sqlalchemy import JSON, Boolean, Integer, String, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class Service(Base):
    """Bookable service offered by an organization."""

    __tablename__ = "services"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    organization_id: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    name: Mapped[str] = mapped_column(String(100))

    duration: Mapped[int] = mapped_column(Integer)
    """Appointment duration in minutes."""

    practitioners: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    """
    Ordered list of practitioner ids eligible for this service.

    Order matters: the public booking flow auto-assigns the first
    practitioner in this list who is free for the requested slot.
    """

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    def offers_practitioner(self, practitioner_id: str) -> bool:
        return practitioner_id in (self.practitioners or [])

    __table_args__ = (
        Index('idx_services_organization', 'organization_id'),
    )
