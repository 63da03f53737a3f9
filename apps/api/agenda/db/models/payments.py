"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agenda.db.base import Base
from agenda.db.enums import PaymentStatus
from agenda.db.types import utcnow

if TYPE_CHECKING:
    from agenda.db.models import Appointment


class Payment(Base):
    """
    Payment attached to an appointment.

    refund_requested/refunded are only written by the cancellation
    service and the refund webhook reconciliation. refunded is terminal.
    """

    __tablename__ = "payments"
    __table_args__ = (Index("idx_payments_tenant", "tenant_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appointments.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    amount_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING.value, nullable=False
    )
    refunded_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    appointment: Mapped["Appointment"] = relationship(back_populates="payment")


class ProcessedPaymentEvent(Base):
    """
    External payment event already applied.

    The primary key insert is what makes webhook redelivery a no-op.
    """

    __tablename__ = "processed_payment_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    received_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
