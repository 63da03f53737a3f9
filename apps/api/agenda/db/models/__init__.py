"""SQLAlchemy ORM models."""

from agenda.db.models.payments import Payment, ProcessedPaymentEvent
from agenda.db.models.schedule import Appointment, Block, TemporalCommitment
from agenda.db.models.tenants import Provider, Tenant, TenantSettings

__all__ = [
    "Appointment",
    "Block",
    "Payment",
    "ProcessedPaymentEvent",
    "Provider",
    "TemporalCommitment",
    "Tenant",
    "TenantSettings",
]
