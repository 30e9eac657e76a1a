"""Shared fixtures for session key tests."""

from datetime import datetime, timedelta, timezone

import pytest
from nacl import pwhash

from sessionvault.core.session_keys import (
    InMemorySessionStore,
    KeyEncryptionService,
    SessionKeyRequest,
    SessionLifecycleManager,
    SessionQueryService,
    SessionRequestRegistry,
    UserSession,
)


class FixedClock:
    """Deterministic clock that tests move forward by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def encryption() -> KeyEncryptionService:
    """Encryption service with the cheapest scrypt parameters."""
    return KeyEncryptionService(
        master_key="test-master-key",
        encryption_secret="test-salt-secret",
        opslimit=pwhash.scrypt.OPSLIMIT_MIN,
        memlimit=pwhash.scrypt.MEMLIMIT_MIN,
    )


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def registry(store, clock) -> SessionRequestRegistry:
    return SessionRequestRegistry(store, clock=clock)


@pytest.fixture
def manager(store, registry, encryption, clock) -> SessionLifecycleManager:
    return SessionLifecycleManager(store, registry=registry, encryption=encryption, clock=clock)


@pytest.fixture
def queries(store, encryption, clock) -> SessionQueryService:
    return SessionQueryService(store, encryption=encryption, clock=clock)


@pytest.fixture
def make_request(store, clock):
    """Insert a SessionKeyRequest directly, as an outside collaborator would."""

    async def _make(
        request_id: str = "req-1",
        principal_id: str = "user-1",
        valid_for: timedelta = timedelta(days=5),
        **overrides,
    ) -> SessionKeyRequest:
        request = SessionKeyRequest(
            id=request_id,
            principal_id=principal_id,
            valid_until=clock.now + valid_for,
            max_transactions=overrides.pop("max_transactions", 10),
            max_amount_per_tx=overrides.pop("max_amount_per_tx", 500_000_000),
            allowed_programs=overrides.pop("allowed_programs", ["ProgA"]),
            created_at=clock.now,
            **overrides,
        )
        await store.put_request(request)
        return request

    return _make


@pytest.fixture
def make_session(store, clock):
    """Insert a UserSession directly, bypassing authorization."""
    counter = {"n": 0}

    async def _make(
        principal_id: str = "user-1",
        expires_in: timedelta = timedelta(days=3),
        created_ago: timedelta = timedelta(0),
        **overrides,
    ) -> UserSession:
        counter["n"] += 1
        session = UserSession(
            id=overrides.pop("id", f"sess_{counter['n']}"),
            principal_id=principal_id,
            session_key_public=overrides.pop("session_key_public", f"PK{counter['n']}"),
            session_key_private=overrides.pop("session_key_private", "00"),
            encryption_iv=overrides.pop("encryption_iv", "00"),
            expires_at=clock.now + expires_in,
            max_transactions=overrides.pop("max_transactions", 20),
            max_amount_per_tx=overrides.pop("max_amount_per_tx", 1_000_000_000),
            created_at=clock.now - created_ago,
            **overrides,
        )
        await store.put_session(session)
        return session

    return _make
