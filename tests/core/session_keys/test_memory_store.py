"""
Tests for InMemorySessionStore conditional operations.
"""

from datetime import timedelta

import pytest

from sessionvault.core.session_keys import (
    InMemorySessionStore,
    RequestStatus,
    SessionStoreError,
    UserSession,
)


def _session(principal_id, clock, session_id="sess_x"):
    return UserSession(
        id=session_id,
        principal_id=principal_id,
        session_key_public="PK",
        session_key_private="ct",
        encryption_iv="iv",
        expires_at=clock.now + timedelta(days=1),
        max_transactions=1,
        max_amount_per_tx=1,
        created_at=clock.now,
    )


@pytest.mark.asyncio
async def test_duplicate_request_rejected(store, make_request):
    request = await make_request("R1")

    with pytest.raises(SessionStoreError):
        await store.create_request(request)


@pytest.mark.asyncio
async def test_find_request_if_status(store, make_request):
    await make_request("R1")

    assert await store.find_request_if_status("R1", RequestStatus.PENDING_AUTH) is not None
    assert await store.find_request_if_status("R1", RequestStatus.COMPLETED) is None
    assert await store.find_request_if_status("missing", RequestStatus.PENDING_AUTH) is None


@pytest.mark.asyncio
async def test_complete_request_bumps_version(store, make_request, clock):
    await make_request("R1")

    applied = await store.complete_request("R1", 0, _session("user-1", clock), clock.now)

    assert applied is True
    stored = await store.get_request("R1")
    assert stored.status == RequestStatus.COMPLETED
    assert stored.version == 1
    assert await store.get_session("sess_x") is not None


@pytest.mark.asyncio
async def test_complete_request_with_stale_version(store, make_request, clock):
    await make_request("R1", version=3)

    applied = await store.complete_request("R1", 2, _session("user-1", clock), clock.now)

    assert applied is False
    assert store.session_count == 0
    assert (await store.get_request("R1")).status == RequestStatus.PENDING_AUTH


@pytest.mark.asyncio
async def test_complete_missing_request(store, clock):
    applied = await store.complete_request("nope", 0, _session("user-1", clock), clock.now)

    assert applied is False


@pytest.mark.asyncio
async def test_returned_entities_are_copies(store, make_session):
    session = await make_session()

    fetched = await store.get_session(session.id)
    fetched.transactions_used = 99

    assert (await store.get_session(session.id)).transactions_used == 0


@pytest.mark.asyncio
async def test_list_sessions_newest_first(store, make_session):
    await make_session(id="a", created_ago=timedelta(days=2))
    await make_session(id="b")
    await make_session(id="c", created_ago=timedelta(days=1))

    sessions = await store.list_sessions("user-1")

    assert [s.id for s in sessions] == ["b", "c", "a"]


@pytest.mark.asyncio
async def test_close_is_noop():
    await InMemorySessionStore().close()
