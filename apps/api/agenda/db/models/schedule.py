"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, ClassVar

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agenda.db.base import Base
from agenda.db.enums import ACTIVE_APPOINTMENT_STATUSES, DEFAULT_APPOINTMENT_STATUS, CommitmentKind
from agenda.db.types import utcnow
from agenda.services.interval import Interval

if TYPE_CHECKING:
    from agenda.db.models import Payment, Provider


class TemporalCommitment:
    """
    Shared contract of everything that occupies a provider's time.

    Columns: tenant_id, provider_id, start_at, end_at with start_at < end_at.
    The interval is half-open: [start_at, end_at).
    """

    kind: ClassVar[CommitmentKind]

    @property
    def interval(self) -> Interval:
        return Interval(self.start_at, self.end_at)

    @property
    def occupies_time(self) -> bool:
        return True


class Block(TemporalCommitment, Base):
    """Manually reserved unavailability on a provider's schedule."""

    __tablename__ = "blocks"
    __table_args__ = (
        Index("idx_blocks_provider_range", "tenant_id", "provider_id", "start_at", "end_at"),
        CheckConstraint("start_at < end_at", name="ck_blocks_valid_interval"),
    )

    kind = CommitmentKind.BLOCK

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    start_at: Mapped[datetime] = mapped_column(nullable=False)
    end_at: Mapped[datetime] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(String(280), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    provider: Mapped["Provider"] = relationship()


class Appointment(TemporalCommitment, Base):
    """
    A client booking on a provider's schedule.

    Cancellation changes status and keeps the row for history.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "idx_appointments_provider_range",
            "tenant_id", "provider_id", "status", "start_at", "end_at",
        ),
        CheckConstraint("start_at < end_at", name="ck_appointments_valid_interval"),
    )

    kind = CommitmentKind.APPOINTMENT

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False
    )
    location_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    start_at: Mapped[datetime] = mapped_column(nullable=False)
    end_at: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_APPOINTMENT_STATUS.value, nullable=False
    )

    # Cancellation
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    provider: Mapped["Provider"] = relationship()
    payment: Mapped["Payment | None"] = relationship(
        back_populates="appointment", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def occupies_time(self) -> bool:
        return self.status in ACTIVE_APPOINTMENT_STATUSES
