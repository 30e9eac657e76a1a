"""
Session key lifecycle.

Drives a request through authorization into an active UserSession and takes
sessions out of service again:

- authorize: pending request -> completed request + authorized session
- revoke: every active session of a principal -> revoked
- request_authorization: report an active session or open a new request
- sweep_lapsed_requests: housekeeping for requests nobody approved
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .encryption import KeyEncryptionService, get_encryption_service
from .errors import InvalidSessionStateError, SessionValidationError
from .models import (
    AuthorizationReceipt,
    AuthorizationStatus,
    RevocationResult,
    UserSession,
    utcnow,
)
from .queries import project_session_info
from .registry import SessionRequestRegistry
from .store import SessionStore


logger = logging.getLogger(__name__)


class AuthorizeSessionInput(BaseModel):
    """Fields the approval page posts back when the user consents."""
    request_id: str = Field(min_length=1)
    session_key_public: str = Field(min_length=1)
    session_key_private: str = Field(min_length=1, repr=False)
    principal_wallet: str = Field(min_length=1)
    request_ip: Optional[str] = None
    request_user_agent: Optional[str] = None


def _missing_fields(error: ValidationError) -> List[str]:
    return sorted({str(e["loc"][0]) for e in error.errors() if e.get("loc")})


class SessionLifecycleManager:
    """
    Orchestrates request -> authorize -> active -> revoked transitions.

    Multiple sessions per principal may be active at once; authorize does not
    retire older ones and readers pick the newest.
    """

    def __init__(
        self,
        store: SessionStore,
        registry: Optional[SessionRequestRegistry] = None,
        encryption: Optional[KeyEncryptionService] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.clock = clock
        self.registry = registry or SessionRequestRegistry(store, clock=clock)
        self._encryption = encryption

    @property
    def encryption(self) -> KeyEncryptionService:
        if self._encryption is None:
            self._encryption = get_encryption_service()
        return self._encryption

    async def authorize(
        self,
        request_id: str,
        session_key_public: str,
        session_key_private: str,
        principal_wallet: str,
        request_ip: Optional[str] = None,
        request_user_agent: Optional[str] = None,
    ) -> AuthorizationReceipt:
        """
        Complete a pending request and create the delegated session.

        Args:
            request_id: The pending SessionKeyRequest
            session_key_public: Public key of the generated session keypair
            session_key_private: Private key, encrypted before it is stored
            principal_wallet: Primary wallet that approved the delegation
            request_ip: Client IP recorded on the session
            request_user_agent: Client user agent recorded on the session

        Returns:
            AuthorizationReceipt with the new session id

        Raises:
            SessionValidationError: A required field is missing
            SessionNotFoundError: Unknown request
            InvalidSessionStateError: Request already completed, including by
                a concurrent call that won the race
            SessionExpiredError: Request deadline passed
        """
        try:
            payload = AuthorizeSessionInput(
                request_id=request_id or "",
                session_key_public=session_key_public or "",
                session_key_private=session_key_private or "",
                principal_wallet=principal_wallet or "",
                request_ip=request_ip,
                request_user_agent=request_user_agent,
            )
        except ValidationError as e:
            missing = _missing_fields(e)
            raise SessionValidationError(
                "Missing required fields",
                details={"fields": missing},
            ) from None

        now = self.clock()
        request = await self.registry.get_pending(payload.request_id, now=now)

        sealed = await asyncio.to_thread(
            self.encryption.encrypt,
            payload.session_key_private,
            request.principal_id,
        )

        session = UserSession(
            id=UserSession.generate_id(),
            principal_id=request.principal_id,
            request_id=request.id,
            session_key_public=payload.session_key_public,
            session_key_private=sealed.ciphertext,
            encryption_iv=sealed.iv,
            expires_at=request.valid_until,
            max_transactions=request.max_transactions,
            max_amount_per_tx=request.max_amount_per_tx,
            allowed_programs=list(request.allowed_programs),
            request_ip=payload.request_ip,
            request_user_agent=payload.request_user_agent,
            created_at=now,
            last_used_at=now,
        )

        applied = await self.store.complete_request(
            request_id=request.id,
            expected_version=request.version,
            session=session,
            completed_at=now,
        )
        if not applied:
            logger.warning(
                f"Session request {request.id} changed during authorization; "
                f"no session created"
            )
            raise InvalidSessionStateError("Session request already completed")

        logger.info(
            f"Session key authorized for {request.principal_id}: session {session.id}, "
            f"public key {session.session_key_public}, wallet {payload.principal_wallet}"
        )

        return AuthorizationReceipt(
            session_id=session.id,
            expires_at=session.expires_at.isoformat(),
            max_transactions=session.max_transactions,
        )

    async def revoke(self, principal_id: str) -> RevocationResult:
        """
        Revoke every active session of a principal.

        Safe to repeat: a second call finds nothing active and returns 0.
        """
        if not principal_id:
            raise SessionValidationError("Principal ID required")

        count = await self.store.revoke_active_sessions(principal_id, self.clock())

        logger.info(f"Sessions revoked for {principal_id}: {count}")
        return RevocationResult(revoked_count=count)

    async def request_authorization(
        self,
        principal_id: str,
        chat_id: Optional[str] = None,
        valid_days: Optional[int] = None,
        max_transactions: Optional[int] = None,
        max_amount_display: Optional[float] = None,
        allowed_programs: Optional[List[str]] = None,
    ) -> AuthorizationStatus:
        """
        Check whether a principal can trade, opening a request if not.

        An existing active session is reported as is. Otherwise a new pending
        request is created and its approval URL returned.
        """
        if not principal_id:
            raise SessionValidationError("Principal ID required")

        now = self.clock()
        session = await self.store.find_active_session(principal_id, now)
        info = project_session_info(session, now)

        if info.has_active_session:
            logger.info(
                f"Principal {principal_id} has active session, "
                f"{info.transactions_remaining} transactions remaining"
            )
            return AuthorizationStatus(
                is_authorized=True,
                session_info=info,
                message=(
                    f"Authorized! {info.transactions_remaining} trades left, "
                    f"expires in {info.days_remaining} days"
                ),
            )

        request = await self.registry.create_request(
            principal_id,
            chat_id=chat_id,
            valid_days=valid_days,
            max_transactions=max_transactions,
            max_amount_display=max_amount_display,
            allowed_programs=allowed_programs,
        )
        days = (request.valid_until - request.created_at).days

        return AuthorizationStatus(
            is_authorized=False,
            request=request,
            auth_url=self.registry.authorization_url(request.id),
            message=(
                f"Authorization required. Valid for {days} days, "
                f"max {request.max_transactions} trades"
            ),
        )

    async def sweep_lapsed_requests(self) -> int:
        """Mark pending requests past their deadline as lapsed."""
        count = await self.store.sweep_lapsed_requests(self.clock())
        logger.info(f"Swept {count} lapsed session requests")
        return count
