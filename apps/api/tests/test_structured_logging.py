"""Tests for PII-safe log context."""

import logging
import uuid

import pytest

from agenda.core.structured_logging import build_log_context
from agenda.db.enums import CommitmentKind
from agenda.services import schedule_service
from agenda.services.schedule_errors import BlockConflictError

from conftest import at


def test_build_log_context_keeps_ids_only():
    tenant_id = uuid.uuid4()
    provider_id = uuid.uuid4()

    context = build_log_context(tenant_id=tenant_id, provider_id=provider_id, kind="block")

    assert context == {
        "tenant_id": str(tenant_id),
        "provider_id": str(provider_id),
        "kind": "block",
    }


def test_build_log_context_omits_empty_values():
    assert build_log_context() == {}


def test_rejected_create_logs_kind_with_context(caplog, store, attendant, test_provider):
    schedule_service.propose_create(
        store, attendant, test_provider.id, at(9), at(10), kind=CommitmentKind.BLOCK
    )

    with caplog.at_level(logging.INFO, logger="agenda.services.schedule_service"):
        with pytest.raises(BlockConflictError):
            schedule_service.propose_create(
                store, attendant, test_provider.id, at(9), at(10), kind=CommitmentKind.BLOCK
            )

    record = next(r for r in caplog.records if "rejected" in r.getMessage())
    assert "BlockConflict" in record.getMessage()
    assert record.provider_id == str(test_provider.id)
    assert record.tenant_id == str(attendant.tenant_id)
