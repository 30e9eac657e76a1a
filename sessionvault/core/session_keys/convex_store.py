"""
Convex-backed session store.

Each conditional write maps to exactly one Convex mutation. Convex executes a
mutation as a serializable transaction, so the version check, the session
insert and the request completion in completeWithSession commit together or
not at all.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sessionvault.db.convex_client import ConvexClient, ConvexError, get_convex_client

from .models import SessionKeyRequest, UserSession, to_millis
from .store import SessionStore, SessionStoreError


logger = logging.getLogger(__name__)


class ConvexSessionStore(SessionStore):
    """SessionStore over the sessionKeyRequests and userSessions tables."""

    def __init__(self, convex: Optional[ConvexClient] = None):
        self.convex = convex or get_convex_client()

    async def _query(self, function_name: str, args: dict):
        try:
            return await self.convex.query(function_name, args)
        except ConvexError as e:
            logger.error(f"Convex query {function_name} failed: {e}")
            raise SessionStoreError("Session storage unavailable") from e

    async def _mutation(self, function_name: str, args: dict):
        try:
            return await self.convex.mutation(function_name, args)
        except ConvexError as e:
            logger.error(f"Convex mutation {function_name} failed: {e}")
            raise SessionStoreError("Session storage unavailable") from e

    async def create_request(self, request: SessionKeyRequest) -> SessionKeyRequest:
        await self._mutation("sessionKeyRequests:create", request.to_dict())
        return request

    async def get_request(self, request_id: str) -> Optional[SessionKeyRequest]:
        data = await self._query("sessionKeyRequests:get", {"requestId": request_id})
        if not data:
            return None
        return SessionKeyRequest.from_dict(data)

    async def complete_request(
        self,
        request_id: str,
        expected_version: int,
        session: UserSession,
        completed_at: datetime,
    ) -> bool:
        result = await self._mutation(
            "sessionKeyRequests:completeWithSession",
            {
                "requestId": request_id,
                "expectedVersion": expected_version,
                "completedAt": to_millis(completed_at),
                "session": session.to_dict(),
            },
        )
        return bool(result and result.get("applied"))

    async def get_session(self, session_id: str) -> Optional[UserSession]:
        data = await self._query("userSessions:get", {"sessionId": session_id})
        if not data:
            return None
        return UserSession.from_dict(data)

    async def list_sessions(self, principal_id: str) -> List[UserSession]:
        data = await self._query(
            "userSessions:listByPrincipal",
            {"principalId": principal_id},
        )
        sessions = [UserSession.from_dict(d) for d in (data or [])]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    async def find_active_session(
        self,
        principal_id: str,
        now: datetime,
    ) -> Optional[UserSession]:
        data = await self._query(
            "userSessions:findActive",
            {"principalId": principal_id, "now": to_millis(now)},
        )
        if not data:
            return None
        session = UserSession.from_dict(data)
        # The query filters on the server clock too; re-check against ours
        return session if session.is_usable(now) else None

    async def revoke_active_sessions(self, principal_id: str, revoked_at: datetime) -> int:
        result = await self._mutation(
            "userSessions:revokeAllForPrincipal",
            {"principalId": principal_id, "revokedAt": to_millis(revoked_at)},
        )
        return int((result or {}).get("revokedCount", 0))

    async def sweep_lapsed_requests(self, now: datetime) -> int:
        result = await self._mutation(
            "sessionKeyRequests:sweepLapsed",
            {"now": to_millis(now)},
        )
        return int((result or {}).get("lapsedCount", 0))

    async def close(self) -> None:
        await self.convex.close()
