"""
Caller-facing session key service.

Wraps the registry, lifecycle manager and query service so that every
operation returns an OperationResult instead of raising. Domain failures keep
their kind and message; anything else is logged here with full context and
reported as a generic internal error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sessionvault.config import settings
from sessionvault.core.session_keys import (
    ErrorKind,
    InMemorySessionStore,
    KeyEncryptionService,
    SessionKeyError,
    SessionLifecycleManager,
    SessionQueryService,
    SessionRequestRegistry,
    SessionStore,
)
from sessionvault.logging_config import principal_log_context

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGES = {
    "get_config": "Failed to get session configuration",
    "authorize": "Failed to authorize session",
    "revoke": "Failed to revoke session",
    "get_info": "Failed to get session information",
    "request_authorization": "Failed to check session authorization",
}


@dataclass
class OperationResult:
    """Outcome of a service call: data on success, error otherwise."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, str]] = None

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return ErrorKind(self.error["kind"]) if self.error else None

    @classmethod
    def ok(cls, data: Dict[str, Any]) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, kind: ErrorKind, message: str) -> "OperationResult":
        return cls(success=False, error={"kind": kind.value, "message": message})

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error["message"], "kind": self.error["kind"]}


def build_session_store() -> SessionStore:
    """Store selected by settings.session_store_backend."""
    if settings.uses_convex:
        from sessionvault.core.session_keys.convex_store import ConvexSessionStore

        return ConvexSessionStore()
    return InMemorySessionStore()


class SessionKeyService:
    """
    Session key operations as the HTTP layer or a workflow block calls them.

    Usage:
        service = SessionKeyService(store=InMemorySessionStore())

        result = await service.get_config("a1b2...")
        if result.success:
            print(result.data["validDays"])
        else:
            print(result.error["kind"], result.error["message"])
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        encryption: Optional[KeyEncryptionService] = None,
        registry: Optional[SessionRequestRegistry] = None,
        lifecycle: Optional[SessionLifecycleManager] = None,
        queries: Optional[SessionQueryService] = None,
    ) -> None:
        self.store = store or build_session_store()
        self.registry = registry or SessionRequestRegistry(self.store)
        self.lifecycle = lifecycle or SessionLifecycleManager(
            self.store,
            registry=self.registry,
            encryption=encryption,
        )
        self.queries = queries or SessionQueryService(self.store, encryption=encryption)

    async def _run(
        self,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        principal_id: Optional[str] = None,
    ) -> OperationResult:
        with principal_log_context(principal_id):
            try:
                result = await call()
            except SessionKeyError as e:
                if e.kind == ErrorKind.INTERNAL:
                    logger.exception(f"Session key {operation} failed")
                    return OperationResult.failed(ErrorKind.INTERNAL, INTERNAL_ERROR_MESSAGES[operation])
                logger.info(f"Session key {operation} rejected: {e.kind.value}: {e.message}")
                return OperationResult.failed(e.kind, e.message)
            except Exception:
                logger.exception(f"Session key {operation} failed")
                return OperationResult.failed(ErrorKind.INTERNAL, INTERNAL_ERROR_MESSAGES[operation])
        return OperationResult.ok(result.to_dict())

    async def get_config(self, request_id: str) -> OperationResult:
        return await self._run("get_config", lambda: self.registry.get_config(request_id))

    async def authorize(
        self,
        request_id: str,
        session_key_public: str,
        session_key_private: str,
        principal_wallet: str,
        request_ip: Optional[str] = None,
        request_user_agent: Optional[str] = None,
    ) -> OperationResult:
        return await self._run(
            "authorize",
            lambda: self.lifecycle.authorize(
                request_id,
                session_key_public,
                session_key_private,
                principal_wallet,
                request_ip=request_ip,
                request_user_agent=request_user_agent,
            ),
        )

    async def revoke(self, principal_id: str) -> OperationResult:
        return await self._run(
            "revoke",
            lambda: self.lifecycle.revoke(principal_id),
            principal_id=principal_id,
        )

    async def get_info(self, principal_id: str) -> OperationResult:
        return await self._run(
            "get_info",
            lambda: self.queries.get_info(principal_id),
            principal_id=principal_id,
        )

    async def request_authorization(
        self,
        principal_id: str,
        chat_id: Optional[str] = None,
        valid_days: Optional[int] = None,
        max_transactions: Optional[int] = None,
        max_amount_display: Optional[float] = None,
        allowed_programs: Optional[List[str]] = None,
    ) -> OperationResult:
        return await self._run(
            "request_authorization",
            lambda: self.lifecycle.request_authorization(
                principal_id,
                chat_id=chat_id,
                valid_days=valid_days,
                max_transactions=max_transactions,
                max_amount_display=max_amount_display,
                allowed_programs=allowed_programs,
            ),
            principal_id=principal_id,
        )

    async def close(self) -> None:
        await self.store.close()


_session_key_service: Optional[SessionKeyService] = None


def get_session_key_service() -> SessionKeyService:
    """Get the process-wide session key service."""
    global _session_key_service
    if _session_key_service is None:
        _session_key_service = SessionKeyService()
    return _session_key_service
