"""
Tests for Cancellation Service - idempotent cancel-and-refund.

Coverage:
- Replay detection and a single refund call
- Failed refund leaves everything as it was
- Crash recovery from refund_requested
- Terminal statuses and appointments without payment
- Minimum notice
- Events after commit
"""

from datetime import timedelta

import pytest

from agenda.db.enums import AppointmentStatus, CommitmentKind, PaymentStatus, Role, ScheduleEventKind
from agenda.db.models import Appointment, Payment
from agenda.services import cancellation_service, schedule_service
from agenda.services.payment_gateway import refund_idempotency_key
from agenda.services.schedule_errors import (
    ForbiddenOwnershipError,
    MinCancelNoticeError,
    NotCancellableError,
    NotFoundError,
    TransientFailureError,
)

from conftest import at


@pytest.fixture
def paid_appointment(store, attendant, test_provider) -> Appointment:
    return schedule_service.propose_create(
        store,
        attendant,
        test_provider.id,
        at(10),
        at(11),
        kind=CommitmentKind.APPOINTMENT,
        payment_status=PaymentStatus.PAID,
        amount_cents=8000,
    )


def reload(db, appointment_id):
    db.expire_all()
    appointment = db.get(Appointment, appointment_id)
    return appointment, appointment.payment


class ResumeDuringRefundGateway:
    """Runs another cancellation while the first one is waiting on the provider."""

    def __init__(self, inner, during_refund):
        self.inner = inner
        self.during_refund = during_refund

    def refund(self, payment_id, amount_cents=None, idempotency_key=None):
        if self.during_refund is not None:
            during_refund, self.during_refund = self.during_refund, None
            during_refund()
        return self.inner.refund(payment_id, amount_cents=amount_cents, idempotency_key=idempotency_key)


class TestCancelAndRefund:
    def test_cancel_then_retry_is_replay(self, db, store, attendant, payments, paid_appointment):
        first = cancellation_service.cancel_and_refund(
            store, attendant, paid_appointment.id, payments, reason="client cancelled"
        )

        assert first.replay is False
        assert first.appointment.status == AppointmentStatus.CANCELLED.value
        assert first.payment.status == PaymentStatus.REFUNDED.value
        assert first.appointment.cancellation_reason == "client cancelled"
        assert first.appointment.cancelled_at is not None
        assert first.payment.refunded_at is not None

        second = cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        assert second.replay is True
        assert second.appointment.status == AppointmentStatus.CANCELLED.value
        assert second.payment.status == PaymentStatus.REFUNDED.value
        assert second.appointment.cancellation_reason == "client cancelled"
        assert len(payments.calls) == 1

    def test_refund_uses_payment_idempotency_key(self, store, attendant, payments, paid_appointment):
        cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        call = payments.calls[0]
        payment_id = paid_appointment.payment.id
        assert call["payment_id"] == payment_id
        assert call["amount_cents"] == 8000
        assert call["idempotency_key"] == refund_idempotency_key(payment_id)

    def test_refund_failure_leaves_state_unchanged(
        self, db, store, attendant, payments, paid_appointment, captured_events
    ):
        payments.fail = True

        with pytest.raises(TransientFailureError):
            cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        appointment, payment = reload(db, paid_appointment.id)
        assert appointment.status == AppointmentStatus.SCHEDULED.value
        assert appointment.cancelled_at is None
        assert payment.status == PaymentStatus.PAID.value
        assert captured_events == []

    def test_retry_after_refund_failure_completes(
        self, db, store, attendant, payments, paid_appointment
    ):
        payments.fail = True
        with pytest.raises(TransientFailureError):
            cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        payments.fail = False
        result = cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        assert result.replay is False
        assert result.payment.status == PaymentStatus.REFUNDED.value
        assert len(payments.calls) == 2
        assert payments.calls[0]["idempotency_key"] == payments.calls[1]["idempotency_key"]

    def test_resumes_interrupted_refund(self, db, store, attendant, payments, paid_appointment):
        # Simulates a crash after the refund was requested
        paid_appointment.payment.status = PaymentStatus.REFUND_REQUESTED.value
        db.commit()

        result = cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        assert result.replay is False
        assert result.appointment.status == AppointmentStatus.CANCELLED.value
        assert result.payment.status == PaymentStatus.REFUNDED.value
        assert len(payments.calls) == 1

    def test_failed_resume_keeps_refund_requested(
        self, db, store, attendant, payments, paid_appointment
    ):
        paid_appointment.payment.status = PaymentStatus.REFUND_REQUESTED.value
        db.commit()
        payments.fail = True

        with pytest.raises(TransientFailureError):
            cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        _, payment = reload(db, paid_appointment.id)
        assert payment.status == PaymentStatus.REFUND_REQUESTED.value

    def test_cancelled_but_paid_is_finished_not_replayed(
        self, db, store, attendant, payments, paid_appointment
    ):
        paid_appointment.status = AppointmentStatus.CANCELLED.value
        db.commit()

        result = cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        assert result.replay is False
        assert result.payment.status == PaymentStatus.REFUNDED.value
        assert len(payments.calls) == 1

    def test_already_refunded_at_provider(self, store, attendant, payments, paid_appointment):
        payments.already_refunded = True

        result = cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        assert result.replay is False
        assert result.payment.status == PaymentStatus.REFUNDED.value

    def test_without_payment_cancels_without_refund(
        self, store, attendant, payments, test_provider
    ):
        appointment = schedule_service.propose_create(
            store, attendant, test_provider.id, at(10), at(11), kind=CommitmentKind.APPOINTMENT
        )

        result = cancellation_service.cancel_and_refund(store, attendant, appointment.id, payments)

        assert result.replay is False
        assert result.appointment.status == AppointmentStatus.CANCELLED.value
        assert result.payment is None
        assert payments.calls == []

        again = cancellation_service.cancel_and_refund(store, attendant, appointment.id, payments)
        assert again.replay is True

    def test_pending_payment_is_left_untouched(self, store, attendant, payments, test_provider):
        appointment = schedule_service.propose_create(
            store,
            attendant,
            test_provider.id,
            at(10),
            at(11),
            kind=CommitmentKind.APPOINTMENT,
            payment_status=PaymentStatus.PENDING,
        )

        result = cancellation_service.cancel_and_refund(store, attendant, appointment.id, payments)

        assert result.appointment.status == AppointmentStatus.CANCELLED.value
        assert result.payment.status == PaymentStatus.PENDING.value
        assert payments.calls == []

    def test_cancelled_with_pending_payment_is_replay(
        self, db, store, attendant, payments, test_provider
    ):
        appointment = schedule_service.propose_create(
            store,
            attendant,
            test_provider.id,
            at(10),
            at(11),
            kind=CommitmentKind.APPOINTMENT,
            payment_status=PaymentStatus.PENDING,
        )
        appointment.status = AppointmentStatus.CANCELLED.value
        db.commit()

        result = cancellation_service.cancel_and_refund(store, attendant, appointment.id, payments)

        assert result.replay is True
        assert result.payment.status == PaymentStatus.PENDING.value
        assert payments.calls == []

    def test_overlapping_resumes_share_idempotency_key(
        self, db, store, attendant, payments, paid_appointment
    ):
        paid_appointment.payment.status = PaymentStatus.REFUND_REQUESTED.value
        db.commit()
        payment_id = paid_appointment.payment.id

        def second_resume():
            cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        gateway = ResumeDuringRefundGateway(payments, second_resume)
        result = cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, gateway)

        assert result.payment.status == PaymentStatus.REFUNDED.value
        assert result.appointment.status == AppointmentStatus.CANCELLED.value
        assert len(payments.calls) == 2
        keys = {call["idempotency_key"] for call in payments.calls}
        assert keys == {refund_idempotency_key(payment_id)}

    @pytest.mark.parametrize("status", [AppointmentStatus.DONE, AppointmentStatus.NO_SHOW])
    def test_finished_appointment_not_cancellable(
        self, db, store, attendant, payments, paid_appointment, status
    ):
        paid_appointment.status = status.value
        db.commit()

        with pytest.raises(NotCancellableError):
            cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)
        assert payments.calls == []

    def test_in_service_appointment_can_be_cancelled(
        self, db, store, attendant, payments, paid_appointment
    ):
        paid_appointment.status = AppointmentStatus.IN_SERVICE.value
        db.commit()

        result = cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        assert result.appointment.status == AppointmentStatus.CANCELLED.value

    def test_cancelled_appointment_frees_interval(
        self, store, attendant, payments, paid_appointment, test_provider
    ):
        cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        replacement = schedule_service.propose_create(
            store, attendant, test_provider.id, at(10), at(11), kind=CommitmentKind.APPOINTMENT
        )
        assert replacement.id != paid_appointment.id

    def test_unknown_appointment(self, store, attendant, payments, test_provider):
        with pytest.raises(NotFoundError):
            cancellation_service.cancel_and_refund(store, attendant, test_provider.id, payments)

    def test_provider_cannot_cancel_others_appointment(
        self, store, make_actor, payments, paid_appointment, other_provider
    ):
        intruder = make_actor(Role.PROVIDER, actor_id=other_provider.user_id)

        with pytest.raises(ForbiddenOwnershipError):
            cancellation_service.cancel_and_refund(store, intruder, paid_appointment.id, payments)
        assert payments.calls == []

    def test_provider_cancels_own_appointment(
        self, store, provider_actor, payments, paid_appointment
    ):
        result = cancellation_service.cancel_and_refund(
            store, provider_actor, paid_appointment.id, payments
        )
        assert result.appointment.status == AppointmentStatus.CANCELLED.value


class TestMinCancelNotice:
    @pytest.fixture(autouse=True)
    def notice_tenant(self, db, test_tenant):
        test_tenant.settings.min_cancel_notice_hours = 24
        db.commit()

    def test_attendant_blocked_inside_window(self, store, attendant, payments, paid_appointment):
        with pytest.raises(MinCancelNoticeError):
            cancellation_service.cancel_and_refund(
                store, attendant, paid_appointment.id, payments, now=at(10) - timedelta(hours=3)
            )
        assert payments.calls == []

    def test_admin_overrides_window(self, store, make_actor, payments, paid_appointment):
        admin = make_actor(Role.ADMIN)

        result = cancellation_service.cancel_and_refund(
            store, admin, paid_appointment.id, payments, now=at(10) - timedelta(hours=3)
        )

        assert result.appointment.status == AppointmentStatus.CANCELLED.value

    def test_notice_skipped_for_cancelled_appointment(
        self, db, store, attendant, payments, paid_appointment
    ):
        paid_appointment.status = AppointmentStatus.CANCELLED.value
        db.commit()

        result = cancellation_service.cancel_and_refund(
            store, attendant, paid_appointment.id, payments, now=at(10) - timedelta(hours=3)
        )

        assert result.payment.status == PaymentStatus.REFUNDED.value

    def test_interrupted_refund_finishes_inside_window(
        self, db, store, attendant, payments, paid_appointment
    ):
        paid_appointment.payment.status = PaymentStatus.REFUND_REQUESTED.value
        db.commit()

        result = cancellation_service.cancel_and_refund(
            store, attendant, paid_appointment.id, payments, now=at(10) - timedelta(hours=2)
        )

        assert result.appointment.status == AppointmentStatus.CANCELLED.value
        assert result.payment.status == PaymentStatus.REFUNDED.value
        assert len(payments.calls) == 1


class TestCancellationEvents:
    def test_event_emitted_once(self, store, attendant, payments, paid_appointment, captured_events):
        captured_events.clear()

        cancellation_service.cancel_and_refund(
            store, attendant, paid_appointment.id, payments, reason="sick"
        )
        cancellation_service.cancel_and_refund(store, attendant, paid_appointment.id, payments)

        assert [e.kind for e in captured_events] == [ScheduleEventKind.APPOINTMENT_CANCELLED]
        event = captured_events[0]
        assert event.payload["appointment_id"] == str(paid_appointment.id)
        assert event.payload["refunded"] is True
        assert event.payload["reason"] == "sick"

    def test_failing_emitter_does_not_undo_cancellation(
        self, db, store, attendant, payments, paid_appointment
    ):
        from agenda.services import schedule_events

        def broken(event):
            raise RuntimeError("push service down")

        schedule_events.register_emitter(broken)
        try:
            result = cancellation_service.cancel_and_refund(
                store, attendant, paid_appointment.id, payments
            )
        finally:
            schedule_events.unregister_emitter(broken)

        assert result.replay is False
        payment = db.get(Payment, result.payment.id)
        assert payment.status == PaymentStatus.REFUNDED.value
