"""Payment enums."""

from enum import Enum


class PaymentStatus(str, Enum):
    """
    Booking payment status.

    Flow: pending → paid → refund_requested → refunded
    """

    PENDING = "pending"  # Checkout started, not captured
    PAID = "paid"  # Captured
    REFUND_REQUESTED = "refund_requested"  # Refund in flight
    REFUNDED = "refunded"  # Terminal


# Statuses that still hold money to give back
REFUNDABLE_PAYMENT_STATUSES = (
    PaymentStatus.PAID.value,
    PaymentStatus.REFUND_REQUESTED.value,
)
