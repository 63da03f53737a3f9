"""FastAPI dependencies for actor context, database and collaborators."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from agenda.core.policies import Actor
from agenda.db.session import SessionLocal
from agenda.services.commitment_store import SqlCommitmentStore
from agenda.services.payment_gateway import HttpPaymentGateway, PaymentGateway

# Headers set by the authenticating gateway in front of this service
ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"
TENANT_ID_HEADER = "X-Tenant-Id"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> SqlCommitmentStore:
    return SqlCommitmentStore(db)


def get_payment_gateway() -> PaymentGateway:
    return HttpPaymentGateway()


def get_actor(
    actor_id: str | None = Header(None, alias=ACTOR_ID_HEADER),
    actor_role: str | None = Header(None, alias=ACTOR_ROLE_HEADER),
    tenant_id: str | None = Header(None, alias=TENANT_ID_HEADER),
) -> Actor:
    """
    Build the actor triple from trusted upstream headers.

    Credentials are verified upstream; this only checks the triple is
    well formed. Unknown roles pass through and are denied by the
    schedule policy.

    Raises:
        HTTPException 401: Missing or malformed actor context
    """
    if not actor_id or not actor_role or not tenant_id:
        raise HTTPException(status_code=401, detail="Missing actor context")
    try:
        actor_uuid = UUID(actor_id)
        tenant_uuid = UUID(tenant_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Malformed actor context")

    return Actor(actor_id=actor_uuid, role=actor_role.strip().lower(), tenant_id=tenant_uuid)
