"""
Concurrency token for a practitioner's day.

One row per (organization, practitioner, date). Every write that books or
releases time on that day bumps `version` with a conditional update, so two
requests that both passed the availability check cannot both commit.
"""

from datetime import date as date_type, datetime

from sqlalchemy import Date, Integer, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class PractitionerDaySchedule(Base):
    """Version counter guarding the check-then-write sequence of a practitioner's day."""

    __tablename__ = "practitioner_day_schedules"

    id: Mapped[int] = mapped_column(primary_key=True)

    organization_id: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    practitioner_id: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    date: Mapped[date_type] = mapped_column(Date)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Incremented on every committed appointment write for this day."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint('organization_id', 'practitioner_id', 'date', name='uq_practitioner_day_schedule'),
    )
