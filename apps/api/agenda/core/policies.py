"""Schedule authorization policy.

Decides whether an actor may act on a provider's schedule. Rules are
evaluated in order and the first match wins:

1. Provider missing or outside the actor's tenant -> InvalidProvider
2. owner / admin / attendant -> allowed on any provider of the tenant
3. provider -> allowed only on the provider they own, else ForbiddenOwnership
4. anything else -> ForbiddenRole
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from agenda.db.enums import Role, ScheduleAction
from agenda.services.schedule_errors import (
    ForbiddenOwnershipError,
    ForbiddenRoleError,
    InvalidProviderError,
    ScheduleError,
)

if TYPE_CHECKING:
    from agenda.db.models import Provider


TENANT_WIDE_ROLES = frozenset({Role.OWNER.value, Role.ADMIN.value, Role.ATTENDANT.value})

# Roles that bypass the tenant's minimum cancel notice
NOTICE_OVERRIDE_ROLES = frozenset({Role.OWNER.value, Role.ADMIN.value})


@dataclass(frozen=True)
class Actor:
    """Caller identity as supplied by the authenticated request layer."""

    actor_id: UUID
    role: str
    tenant_id: UUID


@dataclass(frozen=True)
class Allow:
    allowed = True


@dataclass(frozen=True)
class Deny:
    kind: str
    reason: str
    allowed = False


Decision = Allow | Deny

_DENY_ERRORS: dict[str, type[ScheduleError]] = {
    InvalidProviderError.kind: InvalidProviderError,
    ForbiddenOwnershipError.kind: ForbiddenOwnershipError,
    ForbiddenRoleError.kind: ForbiddenRoleError,
}


def authorize(
    actor: Actor,
    tenant_id: UUID,
    provider: Provider | None,
    action: ScheduleAction,
) -> Decision:
    """Evaluate the schedule policy. Pure: no I/O, no exceptions."""
    if provider is None or provider.tenant_id != tenant_id or actor.tenant_id != tenant_id:
        return Deny(InvalidProviderError.kind, "providerId is not valid for this tenant")

    role = actor.role.value if isinstance(actor.role, Role) else actor.role
    if role in TENANT_WIDE_ROLES:
        return Allow()

    if role == Role.PROVIDER.value:
        if provider.user_id == actor.actor_id:
            return Allow()
        return Deny(
            ForbiddenOwnershipError.kind,
            f"Not allowed to {action.value} on another provider's schedule",
        )

    return Deny(ForbiddenRoleError.kind, f"Role '{role}' cannot manage schedules")


def require_allowed(decision: Decision) -> None:
    """Raise the typed error matching a Deny decision."""
    if isinstance(decision, Deny):
        raise _DENY_ERRORS[decision.kind](decision.reason)


def can_override_notice(actor: Actor) -> bool:
    role = actor.role.value if isinstance(actor.role, Role) else actor.role
    return role in NOTICE_OVERRIDE_ROLES
