"""
Session key request registry.

Creates pending authorization requests and evaluates whether one can still be
approved. Expiry is recomputed from valid_until on every read.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from urllib.parse import urlencode

from sessionvault.config import Settings, settings as default_settings

from .errors import (
    InvalidSessionStateError,
    SessionExpiredError,
    SessionNotFoundError,
    SessionValidationError,
)
from .models import (
    RequestStatus,
    SessionConfig,
    SessionKeyRequest,
    days_until,
    lamports_to_sol,
    sol_to_lamports,
    utcnow,
)
from .store import SessionStore


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class SessionRequestRegistry:
    """Looks up and creates SessionKeyRequests."""

    def __init__(
        self,
        store: SessionStore,
        clock: Clock = utcnow,
        config: Optional[Settings] = None,
    ):
        self.store = store
        self.clock = clock
        self.config = config or default_settings

    async def get_pending(self, request_id: str, now: Optional[datetime] = None) -> SessionKeyRequest:
        """
        Fetch a request that can still be approved.

        Checks run in order: existence, status, deadline. A request the
        housekeeping sweep marked lapsed reports as expired, not as a bad state.

        Raises:
            SessionNotFoundError: No request with that id
            InvalidSessionStateError: Request already completed
            SessionExpiredError: valid_until has passed
        """
        now = now or self.clock()
        request = await self.store.get_request(request_id)

        if request is None:
            raise SessionNotFoundError("Session request not found")

        if request.status == RequestStatus.COMPLETED:
            raise InvalidSessionStateError("Session request already completed")

        if request.is_expired(now):
            raise SessionExpiredError("Session request expired")

        if request.status != RequestStatus.PENDING_AUTH:
            raise InvalidSessionStateError(
                f"Session request is {request.status.value}"
            )

        return request

    async def get_config(self, request_id: str) -> SessionConfig:
        """Describe a pending request for the approval page."""
        now = self.clock()
        request = await self.get_pending(request_id, now=now)

        return SessionConfig(
            request_id=request.id,
            valid_days=days_until(request.valid_until, now),
            max_transactions=request.max_transactions,
            max_amount_display=lamports_to_sol(request.max_amount_per_tx),
            allowed_programs=list(request.allowed_programs),
        )

    async def create_request(
        self,
        principal_id: str,
        chat_id: Optional[str] = None,
        valid_days: Optional[int] = None,
        max_transactions: Optional[int] = None,
        max_amount_display: Optional[float] = None,
        allowed_programs: Optional[List[str]] = None,
    ) -> SessionKeyRequest:
        """
        Open a new pending request for a principal.

        Args:
            principal_id: Principal the session key will act for
            chat_id: Conversation that asked for authorization, if any
            valid_days: Lifetime of the request and of the session it produces
            max_transactions: Transaction ceiling for the session
            max_amount_display: Per-transaction cap in SOL
            allowed_programs: Program allowlist (default: settings)

        Returns:
            The stored SessionKeyRequest in pending_auth
        """
        valid_days = self.config.default_valid_days if valid_days is None else valid_days
        max_transactions = (
            self.config.default_max_transactions if max_transactions is None else max_transactions
        )
        max_amount_display = (
            self.config.default_max_amount_sol if max_amount_display is None else max_amount_display
        )

        if not principal_id:
            raise SessionValidationError("Principal ID required")
        if valid_days <= 0:
            raise SessionValidationError("validDays must be positive")
        if max_transactions < 0:
            raise SessionValidationError("maxTransactions cannot be negative")
        if max_amount_display < 0:
            raise SessionValidationError("maxAmount cannot be negative")

        now = self.clock()
        request = SessionKeyRequest(
            id=SessionKeyRequest.generate_id(),
            principal_id=principal_id,
            chat_id=chat_id,
            valid_until=now + timedelta(days=valid_days),
            max_transactions=max_transactions,
            max_amount_per_tx=sol_to_lamports(max_amount_display),
            allowed_programs=list(
                allowed_programs if allowed_programs is not None
                else self.config.default_allowed_programs
            ),
            created_at=now,
        )

        stored = await self.store.create_request(request)

        logger.info(
            f"Session authorization requested {stored.id} for {principal_id}, "
            f"valid {valid_days} days, max {max_transactions} transactions"
        )
        return stored

    def authorization_url(self, request_id: str) -> str:
        base = self.config.frontend_url.rstrip("/")
        return f"{base}/session-auth?{urlencode({'sessionId': request_id})}"
