"""Commitment store gateway.

`CommitmentStore` is the narrow persistence contract the schedule and
cancellation services depend on. `SqlCommitmentStore` implements it on a
SQLAlchemy session.

Write paths follow one discipline: open `transaction()`, call
`lock_provider()` first, then read conflicts and write. The lock is an
UPDATE of the provider row, so two writers on the same provider are
serialized. On PostgreSQL this is a row lock and writers on different
providers never wait on each other; SQLite serializes every writer.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from agenda.db.enums import ACTIVE_APPOINTMENT_STATUSES
from agenda.db.models import (
    Appointment,
    Block,
    Payment,
    ProcessedPaymentEvent,
    Provider,
    TemporalCommitment,
    TenantSettings,
)
from agenda.services.interval import Interval, overlaps
from agenda.services.schedule_errors import (
    InvalidProviderError,
    ScheduleError,
    TransientFailureError,
)

logger = logging.getLogger(__name__)


class CommitmentStore(ABC):
    """Persistence contract for provider commitments, scoped by tenant."""

    @abstractmethod
    def get_provider(self, tenant_id: UUID, provider_id: UUID) -> Provider | None:
        ...

    @abstractmethod
    def get_tenant_settings(self, tenant_id: UUID) -> TenantSettings | None:
        ...

    @abstractmethod
    def lock_provider(self, tenant_id: UUID, provider_id: UUID) -> None:
        """Serialize schedule writes for one provider until the transaction ends."""

    @abstractmethod
    def find_overlapping(
        self,
        tenant_id: UUID,
        provider_id: UUID,
        start,
        end,
        exclude_id: UUID | None = None,
    ) -> list[TemporalCommitment]:
        """Blocks and active appointments overlapping [start, end), blocks first."""

    @abstractmethod
    def find_in_range(
        self, tenant_id: UUID, provider_id: UUID, start, end
    ) -> list[TemporalCommitment]:
        """Every commitment intersecting [start, end), any status, by start_at."""

    @abstractmethod
    def get_commitment(self, tenant_id: UUID, commitment_id: UUID) -> TemporalCommitment | None:
        ...

    @abstractmethod
    def find_appointment_with_payment(
        self, tenant_id: UUID, appointment_id: UUID
    ) -> tuple[Appointment, Payment | None] | None:
        ...

    @abstractmethod
    def get_payment(self, payment_id: UUID) -> Payment | None:
        ...

    @abstractmethod
    def record_payment_event(
        self, event_id: str, event_type: str, payment_id: UUID | None = None
    ) -> bool:
        """Remember an external event id. False when it was already recorded."""

    @abstractmethod
    def add(self, obj) -> None:
        ...

    @abstractmethod
    def delete(self, obj) -> None:
        ...

    @abstractmethod
    def transaction(
        self, integrity_error: type[ScheduleError] = TransientFailureError
    ):
        """Context manager: commit on success, roll back on any error."""


class SqlCommitmentStore(CommitmentStore):
    """SQLAlchemy implementation of the commitment store."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Providers and settings
    # -------------------------------------------------------------------------

    def get_provider(self, tenant_id: UUID, provider_id: UUID) -> Provider | None:
        return self.db.scalars(
            select(Provider).where(
                Provider.id == provider_id,
                Provider.tenant_id == tenant_id,
            )
        ).first()

    def get_tenant_settings(self, tenant_id: UUID) -> TenantSettings | None:
        return self.db.get(TenantSettings, tenant_id)

    def lock_provider(self, tenant_id: UUID, provider_id: UUID) -> None:
        result = self.db.execute(
            update(Provider)
            .where(Provider.id == provider_id, Provider.tenant_id == tenant_id)
            .values(schedule_version=Provider.schedule_version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidProviderError("providerId is not valid for this tenant")

    # -------------------------------------------------------------------------
    # Commitments
    # -------------------------------------------------------------------------

    def find_overlapping(
        self,
        tenant_id: UUID,
        provider_id: UUID,
        start,
        end,
        exclude_id: UUID | None = None,
    ) -> list[TemporalCommitment]:
        window = Interval(start, end)

        block_query = select(Block).where(
            Block.tenant_id == tenant_id,
            Block.provider_id == provider_id,
            Block.start_at < end,
            Block.end_at > start,
        )
        appointment_query = select(Appointment).where(
            Appointment.tenant_id == tenant_id,
            Appointment.provider_id == provider_id,
            Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
            Appointment.start_at < end,
            Appointment.end_at > start,
        )
        if exclude_id:
            block_query = block_query.where(Block.id != exclude_id)
            appointment_query = appointment_query.where(Appointment.id != exclude_id)

        blocks = self.db.scalars(block_query.order_by(Block.start_at)).all()
        appointments = self.db.scalars(appointment_query.order_by(Appointment.start_at)).all()

        # The SQL filter narrows rows; overlaps() has the final say
        return [
            c for c in [*blocks, *appointments] if c.occupies_time and overlaps(c.interval, window)
        ]

    def find_in_range(
        self, tenant_id: UUID, provider_id: UUID, start, end
    ) -> list[TemporalCommitment]:
        window = Interval(start, end)
        blocks = self.db.scalars(
            select(Block).where(
                Block.tenant_id == tenant_id,
                Block.provider_id == provider_id,
                Block.start_at < end,
                Block.end_at > start,
            )
        ).all()
        appointments = self.db.scalars(
            select(Appointment).where(
                Appointment.tenant_id == tenant_id,
                Appointment.provider_id == provider_id,
                Appointment.start_at < end,
                Appointment.end_at > start,
            )
        ).all()
        found = [c for c in [*blocks, *appointments] if overlaps(c.interval, window)]
        return sorted(found, key=lambda c: (c.start_at, c.end_at))

    def get_commitment(self, tenant_id: UUID, commitment_id: UUID) -> TemporalCommitment | None:
        for model in (Block, Appointment):
            found = self.db.scalars(
                select(model)
                .where(model.id == commitment_id, model.tenant_id == tenant_id)
                .execution_options(populate_existing=True)
            ).first()
            if found is not None:
                return found
        return None

    def find_appointment_with_payment(
        self, tenant_id: UUID, appointment_id: UUID
    ) -> tuple[Appointment, Payment | None] | None:
        appointment = self.db.scalars(
            select(Appointment)
            .where(Appointment.id == appointment_id, Appointment.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        ).first()
        if appointment is None:
            return None
        payment = self.db.scalars(
            select(Payment)
            .where(Payment.appointment_id == appointment.id, Payment.tenant_id == tenant_id)
            .execution_options(populate_existing=True)
        ).first()
        return appointment, payment

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def get_payment(self, payment_id: UUID) -> Payment | None:
        return self.db.scalars(
            select(Payment)
            .where(Payment.id == payment_id)
            .execution_options(populate_existing=True)
        ).first()

    def record_payment_event(
        self, event_id: str, event_type: str, payment_id: UUID | None = None
    ) -> bool:
        if self.db.get(ProcessedPaymentEvent, event_id) is not None:
            return False
        self.db.add(
            ProcessedPaymentEvent(
                event_id=event_id,
                event_type=event_type,
                payment_id=payment_id,
            )
        )
        try:
            self.db.flush()
        except IntegrityError:
            # Same event id committed by a concurrent delivery
            self.db.rollback()
            return False
        return True

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add(self, obj) -> None:
        self.db.add(obj)

    def delete(self, obj) -> None:
        self.db.delete(obj)

    @contextmanager
    def transaction(
        self, integrity_error: type[ScheduleError] = TransientFailureError
    ) -> Iterator["SqlCommitmentStore"]:
        try:
            yield self
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.info("Schedule write rejected by database constraint: %s", exc.orig)
            raise integrity_error("Interval conflicts with a concurrent write") from exc
        except DBAPIError as exc:
            self.db.rollback()
            logger.warning("Schedule write failed, rolled back: %s", exc.orig)
            raise TransientFailureError("Temporary storage failure, please retry") from exc
        except BaseException:
            self.db.rollback()
            raise
