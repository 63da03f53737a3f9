"""Appointments router - booking, rescheduling and cancel+refund."""

from uuid import UUID

from fastapi import APIRouter, Depends

from agenda.core.deps import get_actor, get_payment_gateway, get_store
from agenda.core.policies import Actor
from agenda.db.enums import CommitmentKind
from agenda.schemas.schedule import (
    AppointmentCancelRefund,
    AppointmentCreate,
    AppointmentRead,
    AppointmentReschedule,
    CancelRefundResponse,
    PaymentRead,
)
from agenda.services import cancellation_service, schedule_service
from agenda.services.commitment_store import SqlCommitmentStore
from agenda.services.payment_gateway import PaymentGateway
from agenda.services.schedule_errors import NotFoundError

router = APIRouter()


def _require_appointment(store: SqlCommitmentStore, actor: Actor, appointment_id: UUID) -> None:
    existing = store.get_commitment(actor.tenant_id, appointment_id)
    if existing is None or existing.kind != CommitmentKind.APPOINTMENT:
        raise NotFoundError("Appointment not found")


@router.post("", response_model=AppointmentRead, status_code=201)
def create_appointment(
    data: AppointmentCreate,
    actor: Actor = Depends(get_actor),
    store: SqlCommitmentStore = Depends(get_store),
):
    """Book an appointment if the provider is free."""
    appointment = schedule_service.propose_create(
        store,
        actor,
        provider_id=data.provider_id,
        start=data.start_at,
        end=data.end_at,
        kind=CommitmentKind.APPOINTMENT,
        location_id=data.location_id,
        payment_status=data.payment_status,
        amount_cents=data.amount_cents,
    )
    return AppointmentRead.model_validate(appointment)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentRead)
def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    actor: Actor = Depends(get_actor),
    store: SqlCommitmentStore = Depends(get_store),
):
    """Move an appointment, checked against the provider's other commitments."""
    _require_appointment(store, actor, appointment_id)
    appointment = schedule_service.propose_update(
        store,
        actor,
        appointment_id,
        new_start=data.start_at,
        new_end=data.end_at,
    )
    return AppointmentRead.model_validate(appointment)


@router.post("/{appointment_id}/cancel-refund", response_model=CancelRefundResponse)
def cancel_and_refund(
    appointment_id: UUID,
    data: AppointmentCancelRefund,
    actor: Actor = Depends(get_actor),
    store: SqlCommitmentStore = Depends(get_store),
    payments: PaymentGateway = Depends(get_payment_gateway),
):
    """Cancel an appointment and refund its payment. Safe to retry."""
    result = cancellation_service.cancel_and_refund(
        store,
        actor,
        appointment_id,
        payments,
        reason=data.reason,
    )
    return CancelRefundResponse(
        replay=result.replay,
        appointment=AppointmentRead.model_validate(result.appointment),
        payment=PaymentRead.model_validate(result.payment) if result.payment else None,
    )


@router.delete("/{appointment_id}", response_model=AppointmentRead)
def delete_appointment(
    appointment_id: UUID,
    actor: Actor = Depends(get_actor),
    store: SqlCommitmentStore = Depends(get_store),
):
    """Cancel an appointment that holds no paid payment. The record is kept."""
    _require_appointment(store, actor, appointment_id)
    appointment = schedule_service.remove(store, actor, appointment_id)
    return AppointmentRead.model_validate(appointment)
