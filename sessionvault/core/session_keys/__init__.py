"""
Session Key Module

Delegated signing credentials for autonomous agent execution:
- SessionRequestRegistry: Create and look up pending authorization requests
- SessionLifecycleManager: Authorize requests into sessions, revoke sessions
- SessionQueryService: Remaining budget and lifetime of active sessions
- KeyEncryptionService: Per-principal encryption of session private keys

Usage:
    from sessionvault.core.session_keys import (
        InMemorySessionStore,
        KeyEncryptionService,
        SessionLifecycleManager,
        SessionQueryService,
        SessionRequestRegistry,
    )

    store = InMemorySessionStore()
    registry = SessionRequestRegistry(store)
    manager = SessionLifecycleManager(
        store, registry=registry, encryption=KeyEncryptionService(master_key="...")
    )

    request = await registry.create_request("user-1", valid_days=7)
    config = await registry.get_config(request.id)

    receipt = await manager.authorize(
        request.id,
        session_key_public="...",
        session_key_private="...",
        principal_wallet="...",
    )

    info = await SessionQueryService(store).get_info("user-1")
    await manager.revoke("user-1")
"""

from .encryption import KeyEncryptionService, get_encryption_service
from .errors import (
    ConfigurationError,
    DecryptionError,
    ErrorKind,
    InternalSessionError,
    InvalidSessionStateError,
    SessionExpiredError,
    SessionKeyError,
    SessionNotFoundError,
    SessionValidationError,
)
from .lifecycle import AuthorizeSessionInput, SessionLifecycleManager
from .memory_store import InMemorySessionStore
from .models import (
    AuthorizationReceipt,
    AuthorizationStatus,
    EncryptedKey,
    RequestStatus,
    RevocationResult,
    SessionConfig,
    SessionInfo,
    SessionKeyRequest,
    SessionStatus,
    UserSession,
)
from .queries import SessionQueryService, project_session_info
from .registry import SessionRequestRegistry
from .store import SessionStore, SessionStoreError

__all__ = [
    # Models
    "AuthorizationReceipt",
    "AuthorizationStatus",
    "EncryptedKey",
    "RequestStatus",
    "RevocationResult",
    "SessionConfig",
    "SessionInfo",
    "SessionKeyRequest",
    "SessionStatus",
    "UserSession",
    # Errors
    "ConfigurationError",
    "DecryptionError",
    "ErrorKind",
    "InternalSessionError",
    "InvalidSessionStateError",
    "SessionExpiredError",
    "SessionKeyError",
    "SessionNotFoundError",
    "SessionValidationError",
    # Storage
    "InMemorySessionStore",
    "SessionStore",
    "SessionStoreError",
    # Components
    "AuthorizeSessionInput",
    "KeyEncryptionService",
    "SessionLifecycleManager",
    "SessionQueryService",
    "SessionRequestRegistry",
    "get_encryption_service",
    "project_session_info",
]
