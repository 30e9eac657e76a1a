"""
In-process session store.

Backs single-process deployments and tests. A single asyncio.Lock serializes
every write, which gives complete_request and revoke_active_sessions the same
atomicity a database transaction would.
"""

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from .models import RequestStatus, SessionKeyRequest, UserSession
from .store import SessionStore, SessionStoreError


class InMemorySessionStore(SessionStore):
    """Dictionary-backed SessionStore. Returned entities are copies."""

    def __init__(self) -> None:
        self._requests: Dict[str, SessionKeyRequest] = {}
        self._sessions: Dict[str, UserSession] = {}
        self._lock = asyncio.Lock()

    async def create_request(self, request: SessionKeyRequest) -> SessionKeyRequest:
        async with self._lock:
            if request.id in self._requests:
                raise SessionStoreError(f"Request {request.id} already exists")
            self._requests[request.id] = replace(request)
        return replace(request)

    async def get_request(self, request_id: str) -> Optional[SessionKeyRequest]:
        request = self._requests.get(request_id)
        return replace(request) if request else None

    async def complete_request(
        self,
        request_id: str,
        expected_version: int,
        session: UserSession,
        completed_at: datetime,
    ) -> bool:
        async with self._lock:
            current = self._requests.get(request_id)
            if (
                current is None
                or current.status != RequestStatus.PENDING_AUTH
                or current.version != expected_version
            ):
                return False
            if session.id in self._sessions:
                raise SessionStoreError(f"Session {session.id} already exists")

            self._sessions[session.id] = replace(session)
            self._requests[request_id] = current.completed(completed_at)
            return True

    async def get_session(self, session_id: str) -> Optional[UserSession]:
        session = self._sessions.get(session_id)
        return replace(session) if session else None

    async def list_sessions(self, principal_id: str) -> List[UserSession]:
        sessions = [
            replace(s) for s in self._sessions.values()
            if s.principal_id == principal_id
        ]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    async def find_active_session(
        self,
        principal_id: str,
        now: datetime,
    ) -> Optional[UserSession]:
        for session in await self.list_sessions(principal_id):
            if session.is_usable(now):
                return session
        return None

    async def revoke_active_sessions(self, principal_id: str, revoked_at: datetime) -> int:
        count = 0
        async with self._lock:
            for session_id, session in self._sessions.items():
                if session.principal_id == principal_id and session.is_active:
                    self._sessions[session_id] = session.revoked(revoked_at)
                    count += 1
        return count

    async def sweep_lapsed_requests(self, now: datetime) -> int:
        count = 0
        async with self._lock:
            for request_id, request in self._requests.items():
                if request.status == RequestStatus.PENDING_AUTH and request.valid_until < now:
                    self._requests[request_id] = replace(
                        request,
                        status=RequestStatus.LAPSED,
                        version=request.version + 1,
                    )
                    count += 1
        return count

    # Test and executor helpers, not part of the SessionStore port

    async def put_session(self, session: UserSession) -> None:
        async with self._lock:
            self._sessions[session.id] = replace(session)

    async def put_request(self, request: SessionKeyRequest) -> None:
        async with self._lock:
            self._requests[request.id] = replace(request)

    @property
    def request_count(self) -> int:
        return len(self._requests)

    @property
    def session_count(self) -> int:
        return len(self._sessions)
