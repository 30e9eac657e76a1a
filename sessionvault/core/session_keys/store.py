"""
Storage port for session key requests and delegated sessions.

Implementations must make each method atomic with respect to the others. In
particular complete_request checks the request's version and status, inserts
the session and completes the request as one unit, so two concurrent
authorizations of the same request can never both succeed.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .errors import InternalSessionError
from .models import RequestStatus, SessionKeyRequest, UserSession


class SessionStoreError(InternalSessionError):
    """The backing store failed; the caller sees a generic internal error."""
    pass


class SessionStore(ABC):
    """Abstract persistence for SessionKeyRequest and UserSession."""

    @abstractmethod
    async def create_request(self, request: SessionKeyRequest) -> SessionKeyRequest:
        """Insert a new request. Ids are unique."""

    @abstractmethod
    async def get_request(self, request_id: str) -> Optional[SessionKeyRequest]:
        """Fetch a request by id, whatever its status."""

    async def find_request_if_status(
        self,
        request_id: str,
        status: RequestStatus,
    ) -> Optional[SessionKeyRequest]:
        """Fetch a request only when it is in the given status."""
        request = await self.get_request(request_id)
        if request is None or request.status != status:
            return None
        return request

    @abstractmethod
    async def complete_request(
        self,
        request_id: str,
        expected_version: int,
        session: UserSession,
        completed_at: datetime,
    ) -> bool:
        """
        Insert session and mark the request completed in one unit of work.

        Applies only if the stored request is still pending_auth at
        expected_version. Returns False (and writes nothing) otherwise.
        """

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[UserSession]:
        """Fetch a session by id."""

    @abstractmethod
    async def list_sessions(self, principal_id: str) -> List[UserSession]:
        """All sessions of a principal, newest first."""

    @abstractmethod
    async def find_active_session(
        self,
        principal_id: str,
        now: datetime,
    ) -> Optional[UserSession]:
        """Newest session with is_active set and expires_at after now."""

    @abstractmethod
    async def revoke_active_sessions(self, principal_id: str, revoked_at: datetime) -> int:
        """
        Conditional bulk update of every active session of a principal.

        Sets is_active=False, status=revoked, revoked_at. Returns how many
        rows this call changed.
        """

    @abstractmethod
    async def sweep_lapsed_requests(self, now: datetime) -> int:
        """Flip pending requests whose deadline has passed to lapsed."""

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
