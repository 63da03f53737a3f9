"""Payment webhooks - refunds performed at the payment provider."""

import hmac
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

from agenda.core.config import settings
from agenda.core.deps import get_store
from agenda.services import cancellation_service
from agenda.services.commitment_store import SqlCommitmentStore

router = APIRouter()


class RefundEvent(BaseModel):
    id: str
    type: str = "charge.refunded"
    payment_id: UUID


def _verify_secret(provided: str | None) -> None:
    expected = settings.PAYMENT_WEBHOOK_SECRET
    if not expected or not provided or not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")


@router.post("/payments/refunds")
def payment_refunded(
    event: RefundEvent,
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
    store: SqlCommitmentStore = Depends(get_store),
):
    """Apply a refund event once; redeliveries answer replay=true."""
    _verify_secret(x_webhook_secret)
    result = cancellation_service.apply_refund_event(
        store,
        event_id=event.id,
        payment_id=event.payment_id,
        event_type=event.type,
    )
    return {"received": True, "replay": result.replay, "applied": result.applied}
