"""Cancellation service - idempotent cancel-and-refund for appointments.

State machine on (appointment.status, payment.status):

    Active (scheduled|in_service, pending|paid)
      -> refund in flight (payment refund_requested, appointment unchanged)
      -> cancelled + refunded              terminal
    Active without refundable payment
      -> cancelled (+ payment untouched)   terminal

The refund runs between two short transactions:

1. lock provider, check state, mark the payment refund_requested, commit
2. call the payment collaborator (no transaction open)
3. lock provider, mark appointment cancelled and payment refunded, commit

A failed refund puts the payment back to paid and leaves the appointment
as it was. A crash after step 1 leaves refund_requested, which the next
call finishes. The refund idempotency key is derived from the payment id,
so repeating step 2 never refunds twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from agenda.core.policies import Actor, authorize, require_allowed
from agenda.core.structured_logging import build_log_context
from agenda.db.enums import (
    ACTIVE_APPOINTMENT_STATUSES,
    NON_CANCELLABLE_STATUSES,
    REFUNDABLE_PAYMENT_STATUSES,
    AppointmentStatus,
    PaymentStatus,
    ScheduleAction,
    ScheduleEventKind,
)
from agenda.db.models import Appointment, Payment
from agenda.db.types import utcnow
from agenda.services import schedule_events
from agenda.services.commitment_store import CommitmentStore
from agenda.services.payment_gateway import (
    PaymentGateway,
    PaymentGatewayError,
    refund_idempotency_key,
)
from agenda.services.schedule_errors import (
    NotCancellableError,
    NotFoundError,
    TransientFailureError,
)
from agenda.services.schedule_service import assert_min_cancel_notice

logger = logging.getLogger(__name__)


@dataclass
class CancellationResult:
    replay: bool
    appointment: Appointment
    payment: Payment | None = None


@dataclass
class RefundEventResult:
    replay: bool
    applied: bool
    payment: Payment | None = None


# =============================================================================
# Helpers
# =============================================================================

def _needs_refund(payment: Payment | None) -> bool:
    return payment is not None and payment.status in REFUNDABLE_PAYMENT_STATUSES


def is_replay(appointment: Appointment, payment: Payment | None) -> bool:
    """Cancelled and nothing left to refund: a repeated request changes nothing."""
    return (
        appointment.status == AppointmentStatus.CANCELLED.value
        and not _needs_refund(payment)
    )


def _mark_cancelled(appointment: Appointment, reason: str | None, now: datetime) -> None:
    if appointment.status != AppointmentStatus.CANCELLED.value:
        appointment.status = AppointmentStatus.CANCELLED.value
        appointment.cancelled_at = now
    if reason is not None:
        appointment.cancellation_reason = reason


def _mark_refunded(payment: Payment, now: datetime) -> None:
    if payment.status != PaymentStatus.REFUNDED.value:
        payment.status = PaymentStatus.REFUNDED.value
        payment.refunded_at = now


def _load(store: CommitmentStore, tenant_id: UUID, appointment_id: UUID) -> tuple[Appointment, Payment | None]:
    loaded = store.find_appointment_with_payment(tenant_id, appointment_id)
    if loaded is None:
        raise NotFoundError("Appointment not found")
    return loaded


def _emit_cancelled(appointment: Appointment, payment: Payment | None, user_id: UUID | None) -> None:
    schedule_events.emit(
        schedule_events.ScheduleEvent(
            tenant_id=appointment.tenant_id,
            provider_id=appointment.provider_id,
            user_id=user_id,
            kind=ScheduleEventKind.APPOINTMENT_CANCELLED,
            payload={
                "appointment_id": str(appointment.id),
                "start_at": appointment.start_at.isoformat(),
                "reason": appointment.cancellation_reason,
                "refunded": payment is not None and payment.status == PaymentStatus.REFUNDED.value,
            },
        )
    )


# =============================================================================
# Cancel and refund
# =============================================================================

def cancel_and_refund(
    store: CommitmentStore,
    actor: Actor,
    appointment_id: UUID,
    payments: PaymentGateway,
    reason: str | None = None,
    now: datetime | None = None,
) -> CancellationResult:
    """
    Cancel an appointment and refund its payment exactly once.

    Safe to call repeatedly: once the appointment is cancelled with nothing
    left to refund, further calls return replay=True without side effects.
    """
    tenant_id = actor.tenant_id
    appointment, payment = _load(store, tenant_id, appointment_id)
    provider = store.get_provider(tenant_id, appointment.provider_id)
    require_allowed(authorize(actor, tenant_id, provider, ScheduleAction.CANCEL))

    log_context = build_log_context(
        tenant_id=tenant_id,
        provider_id=appointment.provider_id,
        actor_id=actor.actor_id,
        commitment_id=appointment_id,
    )
    now = now or utcnow()

    # Phase 1: decide under the provider lock
    with store.transaction():
        store.lock_provider(tenant_id, provider.id)
        appointment, payment = _load(store, tenant_id, appointment_id)

        # A cancelled appointment with a pending payment is a replay: nothing was captured
        if is_replay(appointment, payment):
            logger.info("Cancellation replay", extra=log_context)
            return CancellationResult(replay=True, appointment=appointment, payment=payment)

        if appointment.status in NON_CANCELLABLE_STATUSES:
            raise NotCancellableError(
                f"Cannot cancel appointment with status {appointment.status}"
            )

        # An already-claimed refund always finishes, even inside the notice window
        resuming = payment is not None and payment.status == PaymentStatus.REFUND_REQUESTED.value
        if appointment.status in ACTIVE_APPOINTMENT_STATUSES and not resuming:
            assert_min_cancel_notice(store, actor, appointment, "cancel", now=now)

        refund_needed = _needs_refund(payment)
        claimed_from_paid = False
        if not refund_needed:
            _mark_cancelled(appointment, reason, now)
        elif payment.status == PaymentStatus.PAID.value:
            payment.status = PaymentStatus.REFUND_REQUESTED.value
            claimed_from_paid = True

    if not refund_needed:
        logger.info("Appointment cancelled without refund", extra=log_context)
        _emit_cancelled(appointment, payment, provider.user_id)
        return CancellationResult(replay=False, appointment=appointment, payment=payment)

    # Phase 2: refund outside any transaction
    payment_id = payment.id
    try:
        result = payments.refund(
            payment_id,
            amount_cents=payment.amount_cents,
            idempotency_key=refund_idempotency_key(payment_id),
        )
    except PaymentGatewayError as exc:
        logger.warning("Refund failed, cancellation not applied: %s", exc, extra=log_context)
        if claimed_from_paid:
            with store.transaction():
                store.lock_provider(tenant_id, provider.id)
                _, current = _load(store, tenant_id, appointment_id)
                if current is not None and current.status == PaymentStatus.REFUND_REQUESTED.value:
                    current.status = PaymentStatus.PAID.value
        raise TransientFailureError("Refund failed; appointment left unchanged, retry later") from exc

    if result.already_refunded:
        logger.info("Payment already refunded at provider", extra=log_context)

    # Phase 3: commit cancellation and refund together
    with store.transaction():
        store.lock_provider(tenant_id, provider.id)
        appointment, payment = _load(store, tenant_id, appointment_id)
        _mark_cancelled(appointment, reason, now)
        if payment is not None:
            _mark_refunded(payment, now)

    logger.info("Appointment cancelled and refunded", extra=log_context)
    _emit_cancelled(appointment, payment, provider.user_id)
    return CancellationResult(replay=False, appointment=appointment, payment=payment)


# =============================================================================
# Refund webhook reconciliation
# =============================================================================

def apply_refund_event(
    store: CommitmentStore,
    event_id: str,
    payment_id: UUID,
    event_type: str = "charge.refunded",
    now: datetime | None = None,
) -> RefundEventResult:
    """
    Reflect a refund made at the payment provider.

    Each event id is applied once; redeliveries return replay=True. The
    appointment is cancelled together with the payment becoming refunded.
    """
    now = now or utcnow()
    payment = store.get_payment(payment_id)
    if payment is None:
        with store.transaction():
            if not store.record_payment_event(event_id, event_type, payment_id):
                return RefundEventResult(replay=True, applied=False)
        logger.info("Refund event %s for unknown payment ignored", event_id)
        return RefundEventResult(replay=False, applied=False)

    tenant_id = payment.tenant_id
    appointment_id = payment.appointment_id
    applied = False

    with store.transaction():
        appointment, _ = _load(store, tenant_id, appointment_id)
        store.lock_provider(tenant_id, appointment.provider_id)
        if not store.record_payment_event(event_id, event_type, payment_id):
            logger.info("Refund event %s already processed", event_id)
            return RefundEventResult(replay=True, applied=False, payment=payment)

        appointment, payment = _load(store, tenant_id, appointment_id)
        if payment is not None and payment.status in REFUNDABLE_PAYMENT_STATUSES:
            _mark_refunded(payment, now)
            _mark_cancelled(appointment, None, now)
            applied = True

    if applied:
        provider = store.get_provider(tenant_id, appointment.provider_id)
        _emit_cancelled(appointment, payment, provider.user_id if provider else None)
    return RefundEventResult(replay=False, applied=applied, payment=payment)
