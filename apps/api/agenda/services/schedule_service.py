"""Schedule service - conflict resolution for provider commitments.

Handles:
- Creating blocks and appointments without overlapping active commitments
- Moving/resizing a commitment (checked against the other commitments only)
- Removing commitments
- Listing a provider's day

Every write runs inside one provider-locked store transaction, so the
conflict check and the write are atomic per provider.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from uuid import UUID

from agenda.core.policies import Actor, authorize, can_override_notice, require_allowed
from agenda.core.structured_logging import build_log_context
from agenda.db.enums import (
    ACTIVE_APPOINTMENT_STATUSES,
    NON_CANCELLABLE_STATUSES,
    REFUNDABLE_PAYMENT_STATUSES,
    AppointmentStatus,
    CommitmentKind,
    PaymentStatus,
    ScheduleAction,
    ScheduleEventKind,
)
from agenda.db.models import Appointment, Block, Payment, Provider, TemporalCommitment
from agenda.db.types import utcnow
from agenda.services import schedule_events
from agenda.services.commitment_store import CommitmentStore
from agenda.services.interval import Interval, day_window, validate_interval, widen
from agenda.services.schedule_errors import (
    AppointmentConflictError,
    BlockConflictError,
    ConflictError,
    MinCancelNoticeError,
    NotCancellableError,
    NotFoundError,
    NotReschedulableError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================

def _authorized_provider(
    store: CommitmentStore,
    actor: Actor,
    provider_id: UUID,
    action: ScheduleAction,
) -> Provider:
    """Load the provider inside the actor's tenant and apply the policy."""
    provider = store.get_provider(actor.tenant_id, provider_id)
    require_allowed(authorize(actor, actor.tenant_id, provider, action))
    return provider


def _conflict_error_for(kind: CommitmentKind) -> type[ConflictError]:
    if kind == CommitmentKind.BLOCK:
        return BlockConflictError
    return AppointmentConflictError


def _probe_interval(
    store: CommitmentStore,
    tenant_id: UUID,
    interval: Interval,
    kind: CommitmentKind,
) -> Interval:
    """Interval used for conflict checks; appointments carry the tenant buffer."""
    if kind != CommitmentKind.APPOINTMENT:
        return interval
    tenant_settings = store.get_tenant_settings(tenant_id)
    buffer_min = tenant_settings.buffer_between_appointments_min if tenant_settings else 0
    return widen(interval, max(0, buffer_min or 0))


def _assert_no_conflict(
    store: CommitmentStore,
    tenant_id: UUID,
    provider_id: UUID,
    interval: Interval,
    kind: CommitmentKind,
    exclude_id: UUID | None = None,
) -> None:
    """Raise on the first overlap; blocks are reported before appointments."""
    probe = _probe_interval(store, tenant_id, interval, kind)
    found = store.find_overlapping(
        tenant_id, provider_id, probe.start, probe.end, exclude_id=exclude_id
    )
    blocks = [c for c in found if c.kind == CommitmentKind.BLOCK]
    if blocks:
        raise BlockConflictError(
            "Interval conflicts with a schedule block", conflicting_id=blocks[0].id
        )
    appointments = [c for c in found if c.kind == CommitmentKind.APPOINTMENT]
    if appointments:
        raise AppointmentConflictError(
            "Interval conflicts with an existing appointment",
            conflicting_id=appointments[0].id,
        )


def assert_min_cancel_notice(
    store: CommitmentStore,
    actor: Actor,
    appointment: Appointment,
    action: str,
    now: datetime | None = None,
) -> None:
    """Enforce the tenant's minimum notice before start. Owner/admin may always override."""
    if can_override_notice(actor):
        return
    tenant_settings = store.get_tenant_settings(appointment.tenant_id)
    hours = tenant_settings.min_cancel_notice_hours if tenant_settings else 0
    if not hours or hours <= 0:
        return

    now = now or utcnow()
    cutoff = appointment.start_at - timedelta(hours=hours)
    if now > cutoff:
        raise MinCancelNoticeError(
            f"Cannot {action} less than {hours}h before the appointment",
            min_notice_hours=hours,
            cutoff_at=cutoff,
        )


def _emit(kind: ScheduleEventKind, provider: Provider, commitment: TemporalCommitment, **extra) -> None:
    payload = {
        "commitment_id": str(commitment.id),
        "commitment_kind": commitment.kind.value,
        "start_at": commitment.start_at.isoformat(),
        "end_at": commitment.end_at.isoformat(),
    }
    payload.update(extra)
    schedule_events.emit(
        schedule_events.ScheduleEvent(
            tenant_id=provider.tenant_id,
            provider_id=provider.id,
            user_id=provider.user_id,
            kind=kind,
            payload=payload,
        )
    )


# =============================================================================
# Create
# =============================================================================

def propose_create(
    store: CommitmentStore,
    actor: Actor,
    provider_id: UUID,
    start: datetime,
    end: datetime,
    kind: CommitmentKind = CommitmentKind.BLOCK,
    reason: str | None = None,
    location_id: UUID | None = None,
    payment_status: PaymentStatus | None = None,
    amount_cents: int | None = None,
) -> TemporalCommitment:
    """
    Create a block or appointment if the interval is free.

    Raises InvalidInterval, authorization errors, BlockConflict or
    AppointmentConflict. Appointments may be created with a pending or
    paid payment.
    """
    provider = _authorized_provider(store, actor, provider_id, ScheduleAction.CREATE)
    interval = validate_interval(start, end)
    tenant_id = actor.tenant_id

    if kind == CommitmentKind.BLOCK:
        commitment: TemporalCommitment = Block(
            tenant_id=tenant_id,
            provider_id=provider.id,
            start_at=interval.start,
            end_at=interval.end,
            reason=reason,
        )
    else:
        commitment = Appointment(
            tenant_id=tenant_id,
            provider_id=provider.id,
            location_id=location_id or provider.location_id,
            start_at=interval.start,
            end_at=interval.end,
            status=AppointmentStatus.SCHEDULED.value,
        )
        if payment_status is not None:
            commitment.payment = Payment(
                tenant_id=tenant_id,
                amount_cents=amount_cents,
                status=PaymentStatus(payment_status).value,
            )

    log_context = build_log_context(
        tenant_id=tenant_id, provider_id=provider.id, actor_id=actor.actor_id, kind=kind.value
    )
    try:
        with store.transaction(integrity_error=_conflict_error_for(kind)):
            store.lock_provider(tenant_id, provider.id)
            _assert_no_conflict(store, tenant_id, provider.id, interval, kind)
            store.add(commitment)
    except ConflictError as exc:
        logger.info("Commitment create rejected: %s", exc.kind, extra=log_context)
        raise

    _emit(ScheduleEventKind.COMMITMENT_CREATED, provider, commitment)
    return commitment


# =============================================================================
# Update
# =============================================================================

def propose_update(
    store: CommitmentStore,
    actor: Actor,
    commitment_id: UUID,
    new_start: datetime | None = None,
    new_end: datetime | None = None,
    reason: str | None = None,
    now: datetime | None = None,
) -> TemporalCommitment:
    """
    Move or resize a commitment.

    The commitment's own current record is excluded from the check, so a
    commitment may overlap its previous self. Missing bounds keep their
    current value.
    """
    commitment = store.get_commitment(actor.tenant_id, commitment_id)
    if commitment is None:
        raise NotFoundError("Commitment not found")

    provider = _authorized_provider(store, actor, commitment.provider_id, ScheduleAction.UPDATE)
    interval = validate_interval(
        new_start if new_start is not None else commitment.start_at,
        new_end if new_end is not None else commitment.end_at,
    )
    tenant_id = actor.tenant_id
    kind = commitment.kind

    log_context = build_log_context(
        tenant_id=tenant_id,
        provider_id=provider.id,
        actor_id=actor.actor_id,
        commitment_id=commitment_id,
        kind=kind.value,
    )
    try:
        with store.transaction(integrity_error=_conflict_error_for(kind)):
            store.lock_provider(tenant_id, provider.id)
            # Re-read under the lock
            commitment = store.get_commitment(tenant_id, commitment_id)
            if commitment is None:
                raise NotFoundError("Commitment not found")

            if kind == CommitmentKind.APPOINTMENT:
                if commitment.status not in ACTIVE_APPOINTMENT_STATUSES:
                    raise NotReschedulableError(
                        f"Cannot reschedule appointment with status {commitment.status}"
                    )
                assert_min_cancel_notice(store, actor, commitment, "reschedule", now=now)

            _assert_no_conflict(
                store, tenant_id, provider.id, interval, kind, exclude_id=commitment.id
            )
            commitment.start_at = interval.start
            commitment.end_at = interval.end
            if reason is not None and kind == CommitmentKind.BLOCK:
                commitment.reason = reason
    except ConflictError as exc:
        logger.info("Commitment update rejected: %s", exc.kind, extra=log_context)
        raise

    _emit(ScheduleEventKind.COMMITMENT_UPDATED, provider, commitment)
    return commitment


# =============================================================================
# Remove
# =============================================================================

def _cancel_without_refund(
    store: CommitmentStore,
    actor: Actor,
    provider: Provider,
    appointment_id: UUID,
    now: datetime | None = None,
) -> Appointment:
    """Soft-cancel an appointment that holds no money. The row stays for history."""
    tenant_id = actor.tenant_id
    now = now or utcnow()

    with store.transaction():
        store.lock_provider(tenant_id, provider.id)
        loaded = store.find_appointment_with_payment(tenant_id, appointment_id)
        if loaded is None:
            raise NotFoundError("Appointment not found")
        appointment, payment = loaded

        # Money is only ever returned through cancel_and_refund
        if payment is not None and payment.status in REFUNDABLE_PAYMENT_STATUSES:
            raise NotCancellableError(
                "Appointment has a paid payment; cancel it with refund instead"
            )
        if appointment.status == AppointmentStatus.CANCELLED.value:
            return appointment
        if appointment.status in NON_CANCELLABLE_STATUSES:
            raise NotCancellableError(
                f"Cannot cancel appointment with status {appointment.status}"
            )

        assert_min_cancel_notice(store, actor, appointment, "cancel", now=now)
        appointment.status = AppointmentStatus.CANCELLED.value
        appointment.cancelled_at = now

    schedule_events.emit(
        schedule_events.ScheduleEvent(
            tenant_id=provider.tenant_id,
            provider_id=provider.id,
            user_id=provider.user_id,
            kind=ScheduleEventKind.APPOINTMENT_CANCELLED,
            payload={
                "appointment_id": str(appointment.id),
                "start_at": appointment.start_at.isoformat(),
                "reason": appointment.cancellation_reason,
                "refunded": False,
            },
        )
    )
    return appointment


def remove(
    store: CommitmentStore,
    actor: Actor,
    commitment_id: UUID,
    now: datetime | None = None,
) -> Appointment | None:
    """
    Remove a commitment. No conflict check; authorization still applies.

    Blocks are deleted. Appointments are cancelled and kept; one with a
    paid or refund_requested payment raises NotCancellable and must go
    through cancel_and_refund. Returns the cancelled appointment, or None
    for a block.
    """
    commitment = store.get_commitment(actor.tenant_id, commitment_id)
    if commitment is None:
        raise NotFoundError("Commitment not found")

    provider = _authorized_provider(store, actor, commitment.provider_id, ScheduleAction.DELETE)
    if commitment.kind == CommitmentKind.APPOINTMENT:
        return _cancel_without_refund(store, actor, provider, commitment_id, now=now)

    snapshot = {
        "commitment_id": commitment.id,
        "kind": commitment.kind,
        "start_at": commitment.start_at,
        "end_at": commitment.end_at,
    }

    with store.transaction():
        store.lock_provider(actor.tenant_id, provider.id)
        commitment = store.get_commitment(actor.tenant_id, commitment_id)
        if commitment is None:
            raise NotFoundError("Commitment not found")
        store.delete(commitment)

    schedule_events.emit(
        schedule_events.ScheduleEvent(
            tenant_id=provider.tenant_id,
            provider_id=provider.id,
            user_id=provider.user_id,
            kind=ScheduleEventKind.COMMITMENT_REMOVED,
            payload={
                "commitment_id": str(snapshot["commitment_id"]),
                "commitment_kind": snapshot["kind"].value,
                "start_at": snapshot["start_at"].isoformat(),
                "end_at": snapshot["end_at"].isoformat(),
            },
        )
    )
    return None


# =============================================================================
# Read
# =============================================================================

def list_for_day(
    store: CommitmentStore,
    actor: Actor,
    provider_id: UUID,
    day: date,
) -> list[TemporalCommitment]:
    """All commitments intersecting the UTC day, ordered by start_at."""
    provider = _authorized_provider(store, actor, provider_id, ScheduleAction.LIST)
    window = day_window(day)
    return store.find_in_range(actor.tenant_id, provider.id, window.start, window.end)
