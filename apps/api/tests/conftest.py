"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema rebuilt for each test
- Tenants, providers and actor factories
- A recording payment gateway and an event capture
- HTTPX AsyncClient wired to the test session
"""
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

# Must be set before agenda.core.config is imported
os.environ["DATABASE_URL"] = "sqlite+pysqlite://"
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")

from agenda.main import app
from agenda.core.deps import get_db, get_payment_gateway
from agenda.core.policies import Actor
from agenda.db.base import Base
from agenda.db.enums import Role
from agenda.db.models import Provider, Tenant, TenantSettings
from agenda.db.session import SessionLocal, engine
from agenda.services import schedule_events
from agenda.services.commitment_store import SqlCommitmentStore
from agenda.services.payment_gateway import PaymentGatewayError, RefundResult


def at(hour: int, minute: int = 0, day: int = 1) -> datetime:
    """UTC instant on 2030-01-<day>, far enough ahead for notice rules."""
    return datetime(2030, 1, day, hour, minute, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Creates a fresh schema and session for each test.

    Services commit for real, so isolation comes from dropping the
    schema afterwards rather than from a rolled-back outer transaction.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def store(db: Session) -> SqlCommitmentStore:
    return SqlCommitmentStore(db)


@pytest.fixture(scope="function")
def test_tenant(db: Session) -> Tenant:
    """Create a test tenant with notice and buffer rules disabled."""
    tenant = Tenant(
        id=uuid.uuid4(),
        name="Test Salon",
        slug=f"test-salon-{uuid.uuid4().hex[:8]}",
    )
    tenant.settings = TenantSettings(min_cancel_notice_hours=0, buffer_between_appointments_min=0)
    db.add(tenant)
    db.commit()
    return tenant


@pytest.fixture(scope="function")
def other_tenant(db: Session) -> Tenant:
    tenant = Tenant(
        id=uuid.uuid4(),
        name="Other Salon",
        slug=f"other-salon-{uuid.uuid4().hex[:8]}",
    )
    db.add(tenant)
    db.commit()
    return tenant


def _make_provider(db: Session, tenant: Tenant, name: str) -> Provider:
    provider = Provider(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        user_id=uuid.uuid4(),
        location_id=uuid.uuid4(),
        name=name,
    )
    db.add(provider)
    db.commit()
    return provider


@pytest.fixture(scope="function")
def test_provider(db: Session, test_tenant: Tenant) -> Provider:
    """Provider owned by its own user account in test_tenant."""
    return _make_provider(db, test_tenant, "Ana")


@pytest.fixture(scope="function")
def other_provider(db: Session, test_tenant: Tenant) -> Provider:
    """Second provider in the same tenant, owned by a different user."""
    return _make_provider(db, test_tenant, "Bruno")


@pytest.fixture(scope="function")
def foreign_provider(db: Session, other_tenant: Tenant) -> Provider:
    return _make_provider(db, other_tenant, "Carla")


# =============================================================================
# Actor Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def make_actor(test_tenant: Tenant) -> Callable[..., Actor]:
    """Factory: make_actor(Role.ATTENDANT) or make_actor("provider", actor_id=...)."""

    def _make(role: Role | str, actor_id: uuid.UUID | None = None, tenant_id: uuid.UUID | None = None) -> Actor:
        return Actor(
            actor_id=actor_id or uuid.uuid4(),
            role=role.value if isinstance(role, Role) else role,
            tenant_id=tenant_id or test_tenant.id,
        )

    return _make


@pytest.fixture(scope="function")
def attendant(make_actor) -> Actor:
    return make_actor(Role.ATTENDANT)


@pytest.fixture(scope="function")
def owner(make_actor) -> Actor:
    return make_actor(Role.OWNER)


@pytest.fixture(scope="function")
def provider_actor(make_actor, test_provider: Provider) -> Actor:
    """The account that owns test_provider, acting with the provider role."""
    return make_actor(Role.PROVIDER, actor_id=test_provider.user_id)


# =============================================================================
# Collaborators
# =============================================================================

@dataclass
class FakePaymentGateway:
    """Records refund calls; can be told to fail or to report a prior refund."""
    fail: bool = False
    already_refunded: bool = False
    calls: list[dict] = field(default_factory=list)

    def refund(self, payment_id, amount_cents=None, idempotency_key=None) -> RefundResult:
        self.calls.append(
            {"payment_id": payment_id, "amount_cents": amount_cents, "idempotency_key": idempotency_key}
        )
        if self.fail:
            raise PaymentGatewayError("payment provider unavailable")
        return RefundResult(already_refunded=self.already_refunded, external_id=f"re_{len(self.calls)}")


@pytest.fixture(scope="function")
def payments() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture(scope="function")
def captured_events() -> Generator[list, None, None]:
    """Collect schedule events emitted during the test."""
    events: list = []
    emitter = events.append
    schedule_events.register_emitter(emitter)
    yield events
    schedule_events.unregister_emitter(emitter)


# =============================================================================
# HTTP Client
# =============================================================================

def actor_headers(actor: Actor) -> dict[str, str]:
    return {
        "X-Actor-Id": str(actor.actor_id),
        "X-Actor-Role": actor.role,
        "X-Tenant-Id": str(actor.tenant_id),
    }


@pytest.fixture(scope="function")
async def client(db: Session, payments: FakePaymentGateway) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client sharing the test session; pass actor_headers() per request."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: payments

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
