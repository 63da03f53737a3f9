"""Schedule router - a provider's day across blocks and appointments."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from agenda.core.deps import get_actor, get_store
from agenda.core.policies import Actor
from agenda.schemas.schedule import CommitmentRead, DayScheduleResponse
from agenda.services import schedule_service
from agenda.services.commitment_store import SqlCommitmentStore

router = APIRouter()


def _to_commitment_read(commitment) -> CommitmentRead:
    """Flatten a block or appointment into a day-view entry."""
    if commitment.kind.value == "block":
        return CommitmentRead(
            id=commitment.id,
            kind="block",
            provider_id=commitment.provider_id,
            start_at=commitment.start_at,
            end_at=commitment.end_at,
            reason=commitment.reason,
        )
    return CommitmentRead(
        id=commitment.id,
        kind="appointment",
        provider_id=commitment.provider_id,
        start_at=commitment.start_at,
        end_at=commitment.end_at,
        status=commitment.status,
        reason=commitment.cancellation_reason,
    )


@router.get("/day", response_model=DayScheduleResponse)
def get_day(
    provider_id: UUID = Query(...),
    day: date = Query(..., alias="date"),
    actor: Actor = Depends(get_actor),
    store: SqlCommitmentStore = Depends(get_store),
):
    """Blocks and appointments of a provider for one UTC day, by start time."""
    items = schedule_service.list_for_day(store, actor, provider_id, day)
    return DayScheduleResponse(
        provider_id=provider_id,
        date=day.isoformat(),
        items=[_to_commitment_read(c) for c in items],
    )
