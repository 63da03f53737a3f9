"""Schedule schemas - Pydantic models for blocks and appointments API."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field


# =============================================================================
# Blocks
# =============================================================================

class BlockCreate(BaseModel):
    """Schema for reserving unavailability on a provider's schedule."""
    provider_id: UUID
    start_at: AwareDatetime
    end_at: AwareDatetime
    reason: str | None = Field(None, max_length=280)


class BlockUpdate(BaseModel):
    """Schema for moving/resizing a block. Omitted bounds are kept."""
    start_at: AwareDatetime | None = None
    end_at: AwareDatetime | None = None
    reason: str | None = Field(None, max_length=280)


class BlockRead(BaseModel):
    """Schema for reading a block."""
    model_config = {"from_attributes": True}

    id: UUID
    provider_id: UUID
    start_at: datetime
    end_at: datetime
    reason: str | None


# =============================================================================
# Appointments
# =============================================================================

class PaymentRead(BaseModel):
    """Schema for reading an appointment payment."""
    model_config = {"from_attributes": True}

    id: UUID
    status: str
    amount_cents: int | None
    refunded_at: datetime | None


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment on a provider's schedule."""
    provider_id: UUID
    start_at: AwareDatetime
    end_at: AwareDatetime
    location_id: UUID | None = None
    payment_status: Literal["pending", "paid"] | None = None
    amount_cents: int | None = Field(None, ge=0)


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment."""
    start_at: AwareDatetime | None = None
    end_at: AwareDatetime | None = None


class AppointmentCancelRefund(BaseModel):
    """Schema for cancelling an appointment with refund."""
    reason: str | None = Field(None, max_length=280)


class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""
    model_config = {"from_attributes": True}

    id: UUID
    provider_id: UUID
    location_id: UUID | None
    start_at: datetime
    end_at: datetime
    status: str
    cancellation_reason: str | None
    cancelled_at: datetime | None
    payment: PaymentRead | None = None


class CancelRefundResponse(BaseModel):
    """Result of a cancel-and-refund request."""
    replay: bool
    appointment: AppointmentRead
    payment: PaymentRead | None = None


# =============================================================================
# Day view
# =============================================================================

class CommitmentRead(BaseModel):
    """One entry of a provider's day, block or appointment."""
    id: UUID
    kind: Literal["block", "appointment"]
    provider_id: UUID
    start_at: datetime
    end_at: datetime
    status: str | None = None
    reason: str | None = None


class DayScheduleResponse(BaseModel):
    provider_id: UUID
    date: str
    items: list[CommitmentRead]
