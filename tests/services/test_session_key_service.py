"""
End-to-end scenarios through the caller-facing SessionKeyService.
"""

import logging
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
import structlog

from sessionvault.core.session_keys import ErrorKind, SessionStoreError
from sessionvault.services.session_keys import OperationResult, SessionKeyService


@pytest.fixture
def service(store, registry, manager, queries) -> SessionKeyService:
    return SessionKeyService(store=store, registry=registry, lifecycle=manager, queries=queries)


@pytest.mark.asyncio
async def test_full_session_lifecycle(service, make_request, store):
    # Scenario A: approval page reads the request
    await make_request(
        "R1",
        valid_for=timedelta(days=5),
        max_transactions=10,
        max_amount_per_tx=500_000_000,
        allowed_programs=["ProgA"],
    )
    config = await service.get_config("R1")
    assert config.success is True
    assert config.data["validDays"] == 5
    assert config.data["maxAmountDisplay"] == 0.5

    # Scenario B: user consents, a retry is refused
    authorized = await service.authorize("R1", "PK1", "secret", "W1")
    assert authorized.success is True
    assert authorized.data["maxTransactions"] == 10
    session = await store.get_session(authorized.data["sessionId"])
    assert session.is_active is True
    assert session.status.value == "authorized"
    assert (await store.get_request("R1")).status.value == "completed"

    retry = await service.authorize("R1", "PK1", "secret", "W1")
    assert retry.success is False
    assert retry.error_kind == ErrorKind.INVALID_STATE

    info = await service.get_info("user-1")
    assert info.data["hasActiveSession"] is True
    assert info.data["sessionPublicKey"] == "PK1"

    # Scenario C: revocation
    revoked = await service.revoke("user-1")
    assert revoked.data == {"revokedCount": 1}
    session = await store.get_session(session.id)
    assert session.is_active is False
    assert session.status.value == "revoked"

    after = await service.get_info("user-1")
    assert after.data == {"hasActiveSession": False}

    again = await service.revoke("user-1")
    assert again.data == {"revokedCount": 0}


@pytest.mark.asyncio
async def test_budget_projection(service, make_session):
    # Scenario D
    await make_session(max_transactions=20, transactions_used=5, expires_in=timedelta(days=3))

    info = await service.get_info("user-1")

    assert info.data["transactionsRemaining"] == 15
    assert info.data["daysRemaining"] == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", ["get_config", "authorize"])
async def test_expired_request_reported_by_both_operations(service, make_request, clock, operation):
    await make_request("R1", valid_for=timedelta(days=1))
    clock.advance(days=3)

    if operation == "get_config":
        result = await service.get_config("R1")
    else:
        result = await service.authorize("R1", "PK1", "secret", "W1")

    assert result.success is False
    assert result.error_kind == ErrorKind.EXPIRED


@pytest.mark.asyncio
async def test_domain_failures_keep_kind_and_message(service):
    missing = await service.get_config("nope")
    invalid = await service.authorize("R1", "", "secret", "W1")

    assert missing.error == {"kind": "not_found", "message": "Session request not found"}
    assert invalid.error_kind == ErrorKind.VALIDATION
    assert invalid.to_dict() == {
        "success": False,
        "error": "Missing required fields",
        "kind": "validation_error",
    }


@pytest.mark.asyncio
async def test_storage_failure_is_opaque(service, store, caplog):
    store.revoke_active_sessions = AsyncMock(side_effect=RuntimeError("db password=hunter2"))

    result = await service.revoke("user-1")

    assert result.success is False
    assert result.error == {"kind": "internal_error", "message": "Failed to revoke session"}
    assert "hunter2" not in str(result.to_dict())
    assert "Session key revoke failed" in caplog.text


@pytest.mark.asyncio
async def test_store_error_is_opaque(service, store, caplog):
    store.find_active_session = AsyncMock(side_effect=SessionStoreError("Session storage unavailable"))

    with caplog.at_level(logging.INFO, logger="sessionvault.services.session_keys"):
        result = await service.get_info("user-1")

    assert result.error == {"kind": "internal_error", "message": "Failed to get session information"}
    [record] = [r for r in caplog.records if r.name == "sessionvault.services.session_keys"]
    assert record.levelno == logging.ERROR
    assert record.getMessage() == "Session key get_info failed"
    assert record.exc_info[0] is SessionStoreError


@pytest.mark.asyncio
async def test_caller_log_context_survives(service):
    structlog.contextvars.bind_contextvars(request_id="req-abc")
    try:
        await service.get_info("user-1")

        context = structlog.contextvars.get_contextvars()
        assert context["request_id"] == "req-abc"
        assert "principal_id" not in context
    finally:
        structlog.contextvars.clear_contextvars()


@pytest.mark.asyncio
async def test_secret_never_in_failure(service, make_request, store):
    await make_request("R1")
    store.complete_request = AsyncMock(side_effect=RuntimeError("insert failed"))

    result = await service.authorize("R1", "PK1", "super-secret-key", "W1")

    assert result.success is False
    assert "super-secret-key" not in str(result.to_dict())


@pytest.mark.asyncio
async def test_request_authorization(service):
    result = await service.request_authorization("user-1", chat_id="chat-1")

    assert result.success is True
    assert result.data["isAuthorized"] is False
    assert "session-auth?sessionId=" in result.data["authUrl"]


def test_operation_result_ok_shape():
    result = OperationResult.ok({"revokedCount": 0})

    assert result.to_dict() == {"success": True, "data": {"revokedCount": 0}}
    assert result.error_kind is None
