"""Structured logging helpers (PII-safe)."""

import logging
from typing import Any
from uuid import UUID

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for entry points (API, CLI)."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )


def build_log_context(
    *,
    tenant_id: UUID | str | None = None,
    provider_id: UUID | str | None = None,
    actor_id: UUID | str | None = None,
    commitment_id: UUID | str | None = None,
    kind: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (ids and kinds only)."""
    context: dict[str, Any] = {}
    if tenant_id:
        context["tenant_id"] = str(tenant_id)
    if provider_id:
        context["provider_id"] = str(provider_id)
    if actor_id:
        context["actor_id"] = str(actor_id)
    if commitment_id:
        context["commitment_id"] = str(commitment_id)
    if kind:
        context["kind"] = kind
    return context
