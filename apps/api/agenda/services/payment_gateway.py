"""Payment collaborator contract and HTTP adapter.

The schedule core only ever asks for a refund. Capture, checkout and
pricing live with the payment provider.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

import httpx

from agenda.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefundResult:
    """Outcome of a refund request."""

    already_refunded: bool = False
    external_id: str | None = None


class PaymentGatewayError(Exception):
    """Refund could not be confirmed; the caller may retry."""

    pass


class PaymentGateway(Protocol):
    def refund(
        self,
        payment_id: UUID,
        amount_cents: int | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        ...


def refund_idempotency_key(payment_id: UUID) -> str:
    """One key per payment, so every retry maps to the same refund."""
    return f"refund:{payment_id}"


class HttpPaymentGateway:
    """Refunds through the payment provider's REST API.

    POST {base_url}/payments/{payment_id}/refunds with an Idempotency-Key
    header. 409 means the payment was already refunded.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.PAYMENT_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.PAYMENT_API_KEY
        self.timeout = timeout or settings.PAYMENT_TIMEOUT_SECONDS
        self.transport = transport

    def refund(
        self,
        payment_id: UUID,
        amount_cents: int | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        headers = {"Idempotency-Key": idempotency_key or refund_idempotency_key(payment_id)}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {}
        if amount_cents is not None:
            body["amount_cents"] = amount_cents

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    f"{self.base_url}/payments/{payment_id}/refunds",
                    json=body,
                    headers=headers,
                )
        except httpx.RequestError as exc:
            logger.warning("Refund request failed for payment %s: %s", payment_id, exc)
            raise PaymentGatewayError(f"Refund request failed: {exc}") from exc

        if response.status_code == 409:
            return RefundResult(already_refunded=True)
        if response.status_code >= 400:
            logger.warning(
                "Refund rejected for payment %s with HTTP %s", payment_id, response.status_code
            )
            raise PaymentGatewayError(f"Refund rejected with HTTP {response.status_code}")

        data = response.json() if response.content else {}
        return RefundResult(
            already_refunded=bool(data.get("already_refunded", False)),
            external_id=data.get("id"),
        )
