"""
Client model representing the party who books appointments.

Clients belong to exactly one organization. The scheduling core reads them
to check organization membership and, in the public booking flow, to match
the caller's email against the appointment's client.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class Client(Base):
    """Client entity (full CRUD is handled outside the scheduling core)."""

    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    """Unique identifier for the client."""

    organization_id: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Organization the client is registered with."""

    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100))

    email: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Contact email, stored lowercased. Used for identity checks in public booking."""

    phone: Mapped[str] = mapped_column(String(50))

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    appointments = relationship("Appointment", back_populates="client")

    def matches_email(self, email: str) -> bool:
        """Case-insensitive email comparison."""
        return bool(email) and self.email.strip().lower() == email.strip().lower()

    __table_args__ = (
        Index('idx_clients_organization_email', 'organization_id', 'email'),
    )
