"""Pydantic schemas for API request/response models."""

from agenda.schemas.schedule import (
    AppointmentCancelRefund,
    AppointmentCreate,
    AppointmentRead,
    AppointmentReschedule,
    BlockCreate,
    BlockRead,
    BlockUpdate,
    CancelRefundResponse,
    CommitmentRead,
    DayScheduleResponse,
    PaymentRead,
)

__all__ = [
    "AppointmentCancelRefund",
    "AppointmentCreate",
    "AppointmentRead",
    "AppointmentReschedule",
    "BlockCreate",
    "BlockRead",
    "BlockUpdate",
    "CancelRefundResponse",
    "CommitmentRead",
    "DayScheduleResponse",
    "PaymentRead",
]
