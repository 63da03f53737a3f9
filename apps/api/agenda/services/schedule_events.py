"""Schedule events facade.

Services call `emit()` after their transaction has committed. Delivery
belongs to the registered emitters; a failing emitter is logged and never
fails the schedule operation that raised the event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import UUID

from agenda.core.structured_logging import build_log_context
from agenda.db.enums import ScheduleEventKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleEvent:
    tenant_id: UUID
    provider_id: UUID
    user_id: UUID | None
    kind: ScheduleEventKind
    payload: dict[str, Any] = field(default_factory=dict)


Emitter = Callable[[ScheduleEvent], None]

_emitters: list[Emitter] = []


def log_emitter(event: ScheduleEvent) -> None:
    logger.info(
        "Schedule event %s",
        event.kind.value,
        extra=build_log_context(tenant_id=event.tenant_id, provider_id=event.provider_id),
    )


def register_emitter(emitter: Emitter) -> None:
    if emitter not in _emitters:
        _emitters.append(emitter)


def unregister_emitter(emitter: Emitter) -> None:
    if emitter in _emitters:
        _emitters.remove(emitter)


def emit(event: ScheduleEvent) -> None:
    """Fan an event out to every emitter, best-effort."""
    for emitter in list(_emitters):
        try:
            emitter(event)
        except Exception:
            logger.warning(
                "Schedule event emitter failed for %s",
                event.kind.value,
                exc_info=True,
                extra=build_log_context(tenant_id=event.tenant_id, provider_id=event.provider_id),
            )


register_emitter(log_emitter)
