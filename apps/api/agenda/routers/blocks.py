"""Blocks router - manual unavailability on provider schedules."""

from uuid import UUID

from fastapi import APIRouter, Depends

from agenda.core.deps import get_actor, get_store
from agenda.core.policies import Actor
from agenda.db.enums import CommitmentKind
from agenda.schemas.schedule import BlockCreate, BlockRead, BlockUpdate
from agenda.services import schedule_service
from agenda.services.commitment_store import SqlCommitmentStore
from agenda.services.schedule_errors import NotFoundError

router = APIRouter()


@router.post("", response_model=BlockRead, status_code=201)
def create_block(
    data: BlockCreate,
    actor: Actor = Depends(get_actor),
    store: SqlCommitmentStore = Depends(get_store),
):
    """Reserve an interval on a provider's schedule."""
    block = schedule_service.propose_create(
        store,
        actor,
        provider_id=data.provider_id,
        start=data.start_at,
        end=data.end_at,
        kind=CommitmentKind.BLOCK,
        reason=data.reason,
    )
    return BlockRead.model_validate(block)


@router.patch("/{block_id}", response_model=BlockRead)
def update_block(
    block_id: UUID,
    data: BlockUpdate,
    actor: Actor = Depends(get_actor),
    store: SqlCommitmentStore = Depends(get_store),
):
    """Move or resize a block."""
    existing = store.get_commitment(actor.tenant_id, block_id)
    if existing is None or existing.kind != CommitmentKind.BLOCK:
        raise NotFoundError("Block not found")
    block = schedule_service.propose_update(
        store,
        actor,
        block_id,
        new_start=data.start_at,
        new_end=data.end_at,
        reason=data.reason,
    )
    return BlockRead.model_validate(block)


@router.delete("/{block_id}")
def delete_block(
    block_id: UUID,
    actor: Actor = Depends(get_actor),
    store: SqlCommitmentStore = Depends(get_store),
):
    """Remove a block."""
    existing = store.get_commitment(actor.tenant_id, block_id)
    if existing is None or existing.kind != CommitmentKind.BLOCK:
        raise NotFoundError("Block not found")
    schedule_service.remove(store, actor, block_id)
    return {"deleted": True}
