"""Enum definitions for application constants."""

from agenda.db.enums.appointments import (
    ACTIVE_APPOINTMENT_STATUSES,
    DEFAULT_APPOINTMENT_STATUS,
    NON_CANCELLABLE_STATUSES,
    AppointmentStatus,
    CommitmentKind,
    ScheduleAction,
)
from agenda.db.enums.auth import Role
from agenda.db.enums.notifications import ScheduleEventKind
from agenda.db.enums.payments import REFUNDABLE_PAYMENT_STATUSES, PaymentStatus

__all__ = [
    "ACTIVE_APPOINTMENT_STATUSES",
    "AppointmentStatus",
    "CommitmentKind",
    "DEFAULT_APPOINTMENT_STATUS",
    "NON_CANCELLABLE_STATUSES",
    "PaymentStatus",
    "REFUNDABLE_PAYMENT_STATUSES",
    "Role",
    "ScheduleAction",
    "ScheduleEventKind",
]
