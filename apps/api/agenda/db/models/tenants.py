"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agenda.db.base import Base
from agenda.db.types import utcnow


class Tenant(Base):
    """
    A business in the multi-tenant system.

    All scheduling entities belong to a tenant
    and must be scoped by tenant_id in all queries.
    """

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    settings: Mapped["TenantSettings | None"] = relationship(
        back_populates="tenant", uselist=False, cascade="all, delete-orphan"
    )


class TenantSettings(Base):
    """
    Per-tenant scheduling policy.

    Zero disables the corresponding rule.
    """

    __tablename__ = "tenant_settings"

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True
    )
    # Hours before start after which only owner/admin may cancel or reschedule
    min_cancel_notice_hours: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )
    # Minutes kept free around each appointment
    buffer_between_appointments_min: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )

    tenant: Mapped["Tenant"] = relationship(back_populates="settings")


class Provider(Base):
    """
    A professional whose schedule holds commitments.

    user_id is the account allowed to manage this schedule with the
    provider role. Tenant linkage never changes after creation.
    """

    __tablename__ = "providers"
    __table_args__ = (
        Index("idx_providers_tenant", "tenant_id"),
        Index("idx_providers_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    location_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Bumped by every schedule write; the bump is the per-provider write lock
    schedule_version: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    tenant: Mapped["Tenant"] = relationship()
