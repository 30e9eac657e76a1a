"""
Read-only projections over delegated sessions.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from .encryption import KeyEncryptionService, get_encryption_service
from .errors import SessionNotFoundError
from .models import SessionInfo, UserSession, days_until, lamports_to_sol, utcnow
from .store import SessionStore


logger = logging.getLogger(__name__)


def project_session_info(session: Optional[UserSession], now: datetime) -> SessionInfo:
    """Budget and lifetime view of a session, or the inactive marker."""
    if session is None or not session.is_usable(now):
        return SessionInfo.inactive()

    return SessionInfo(
        has_active_session=True,
        session_public_key=session.session_key_public,
        expires_at=session.expires_at.isoformat(),
        days_remaining=days_until(session.expires_at, now),
        transactions_used=session.transactions_used,
        transactions_remaining=session.transactions_remaining,
        max_amount_display=lamports_to_sol(session.max_amount_per_tx),
        status=session.status.value,
    )


class SessionQueryService:
    """Reports on a principal's newest usable session without changing it."""

    def __init__(
        self,
        store: SessionStore,
        encryption: Optional[KeyEncryptionService] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self._encryption = encryption
        self.clock = clock

    @property
    def encryption(self) -> KeyEncryptionService:
        if self._encryption is None:
            self._encryption = get_encryption_service()
        return self._encryption

    async def get_active_session(self, principal_id: str) -> Optional[UserSession]:
        """Newest session that is active and not past expiry, if any."""
        now = self.clock()
        session = await self.store.find_active_session(principal_id, now)
        if session is None or not session.is_usable(now):
            return None
        return session

    async def get_info(self, principal_id: str) -> SessionInfo:
        now = self.clock()
        session = await self.store.find_active_session(principal_id, now)
        return project_session_info(session, now)

    async def unlock_signing_key(self, principal_id: str) -> Tuple[UserSession, str]:
        """
        Decrypt the signing key of the principal's active session.

        Used by the transaction executor right before it signs. The plaintext
        is returned to the caller and nowhere else.

        Raises:
            SessionNotFoundError: No active session. Please authorize first
            DecryptionError: Stored material cannot be opened
        """
        session = await self.get_active_session(principal_id)
        if session is None:
            raise SessionNotFoundError("No active session found")

        plaintext = await asyncio.to_thread(
            self.encryption.decrypt,
            session.session_key_private,
            session.encryption_iv,
            session.principal_id,
        )

        logger.debug(f"Unlocked session key {session.session_key_public} for {principal_id}")
        return session, plaintext
