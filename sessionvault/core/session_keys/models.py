"""
Session key request and delegated session models.

A SessionKeyRequest is a proposal for delegation that a user still has to
approve. Approving it produces a UserSession holding the encrypted session key
that an automated agent signs with. Expiry is never stored on either entity;
it is derived from the deadline every time it is read.
"""

import math
import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sessionvault.config import LAMPORTS_PER_SOL


ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_millis(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def from_millis(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def days_until(deadline: datetime, now: datetime) -> int:
    """Whole days left before a deadline, rounded up."""
    return math.ceil((deadline - now) / ONE_DAY)


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


def sol_to_lamports(amount_sol: float) -> int:
    return math.floor(amount_sol * LAMPORTS_PER_SOL)


class RequestStatus(str, Enum):
    """Stored status of a session key request."""
    PENDING_AUTH = "pending_auth"
    COMPLETED = "completed"
    LAPSED = "lapsed"  # Written only by the housekeeping sweep


class SessionStatus(str, Enum):
    """Stored status of a delegated session."""
    AUTHORIZED = "authorized"
    REVOKED = "revoked"


@dataclass
class SessionKeyRequest:
    """A pending proposal to delegate a session key, not yet usable."""
    id: str
    principal_id: str
    valid_until: datetime
    max_amount_per_tx: int
    max_transactions: int = 100
    allowed_programs: List[str] = field(default_factory=list)
    chat_id: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING_AUTH
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    version: int = 0

    @staticmethod
    def generate_id() -> str:
        return secrets.token_hex(16)

    def is_expired(self, now: datetime) -> bool:
        """Past the deadline and never completed."""
        if self.status == RequestStatus.COMPLETED:
            return False
        return self.valid_until < now

    def completed(self, at: datetime) -> "SessionKeyRequest":
        return replace(
            self,
            status=RequestStatus.COMPLETED,
            completed_at=at,
            version=self.version + 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "requestId": self.id,
            "principalId": self.principal_id,
            "chatId": self.chat_id,
            "status": self.status.value,
            "validUntil": to_millis(self.valid_until),
            "maxTransactions": self.max_transactions,
            "maxAmountPerTx": self.max_amount_per_tx,
            "allowedPrograms": list(self.allowed_programs),
            "createdAt": to_millis(self.created_at),
            "completedAt": to_millis(self.completed_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionKeyRequest":
        """Create from dictionary (from storage)."""
        return cls(
            id=data["requestId"],
            principal_id=data["principalId"],
            chat_id=data.get("chatId"),
            status=RequestStatus(data.get("status", "pending_auth")),
            valid_until=from_millis(data["validUntil"]),
            max_transactions=data.get("maxTransactions", 100),
            max_amount_per_tx=int(data["maxAmountPerTx"]),
            allowed_programs=list(data.get("allowedPrograms") or []),
            created_at=from_millis(data["createdAt"]),
            completed_at=from_millis(data.get("completedAt")),
            version=data.get("version", 0),
        )


@dataclass
class UserSession:
    """
    An active or historical delegated credential.

    session_key_private holds ciphertext only. transactions_used is advanced by
    the transaction executor and never moves backwards.
    """
    id: str
    principal_id: str
    session_key_public: str
    session_key_private: str = field(repr=False)
    encryption_iv: str
    expires_at: datetime
    max_transactions: int
    max_amount_per_tx: int
    allowed_programs: List[str] = field(default_factory=list)
    request_id: Optional[str] = None
    status: SessionStatus = SessionStatus.AUTHORIZED
    is_active: bool = True
    transactions_used: int = 0
    request_ip: Optional[str] = None
    request_user_agent: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    last_used_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None

    @staticmethod
    def generate_id() -> str:
        return f"sess_{secrets.token_urlsafe(32)}"

    def is_usable(self, now: datetime) -> bool:
        """Active flag set and not past expiry."""
        return self.is_active and self.expires_at > now

    @property
    def transactions_remaining(self) -> int:
        # Not clamped: over-use shows up as a negative remainder
        return self.max_transactions - self.transactions_used

    def revoked(self, at: datetime) -> "UserSession":
        return replace(
            self,
            is_active=False,
            status=SessionStatus.REVOKED,
            revoked_at=at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "sessionId": self.id,
            "principalId": self.principal_id,
            "requestId": self.request_id,
            "sessionKeyPublic": self.session_key_public,
            "sessionKeyPrivate": self.session_key_private,
            "encryptionIV": self.encryption_iv,
            "expiresAt": to_millis(self.expires_at),
            "maxTransactions": self.max_transactions,
            "maxAmountPerTx": self.max_amount_per_tx,
            "allowedPrograms": list(self.allowed_programs),
            "status": self.status.value,
            "isActive": self.is_active,
            "transactionsUsed": self.transactions_used,
            "requestIp": self.request_ip,
            "requestUserAgent": self.request_user_agent,
            "createdAt": to_millis(self.created_at),
            "lastUsedAt": to_millis(self.last_used_at),
            "revokedAt": to_millis(self.revoked_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSession":
        """Create from dictionary (from storage)."""
        return cls(
            id=data["sessionId"],
            principal_id=data["principalId"],
            request_id=data.get("requestId"),
            session_key_public=data["sessionKeyPublic"],
            session_key_private=data["sessionKeyPrivate"],
            encryption_iv=data["encryptionIV"],
            expires_at=from_millis(data["expiresAt"]),
            max_transactions=data.get("maxTransactions", 100),
            max_amount_per_tx=int(data["maxAmountPerTx"]),
            allowed_programs=list(data.get("allowedPrograms") or []),
            status=SessionStatus(data.get("status", "authorized")),
            is_active=data.get("isActive", True),
            transactions_used=data.get("transactionsUsed") or 0,
            request_ip=data.get("requestIp"),
            request_user_agent=data.get("requestUserAgent"),
            created_at=from_millis(data["createdAt"]),
            last_used_at=from_millis(data.get("lastUsedAt")),
            revoked_at=from_millis(data.get("revokedAt")),
        )


@dataclass
class EncryptedKey:
    """Ciphertext and the nonce it was sealed with, both hex encoded."""
    ciphertext: str
    iv: str


@dataclass
class SessionConfig:
    """What the approval page shows before the user consents."""
    request_id: str
    valid_days: int
    max_transactions: int
    max_amount_display: float
    allowed_programs: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requestId": self.request_id,
            "validDays": self.valid_days,
            "maxTransactions": self.max_transactions,
            "maxAmountDisplay": self.max_amount_display,
            "allowedPrograms": list(self.allowed_programs),
        }


@dataclass
class AuthorizationReceipt:
    session_id: str
    expires_at: str
    max_transactions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "expiresAt": self.expires_at,
            "maxTransactions": self.max_transactions,
        }


@dataclass
class RevocationResult:
    revoked_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"revokedCount": self.revoked_count}


@dataclass
class SessionInfo:
    """Status projection of a principal's newest usable session."""
    has_active_session: bool
    session_public_key: Optional[str] = None
    expires_at: Optional[str] = None
    days_remaining: Optional[int] = None
    transactions_used: Optional[int] = None
    transactions_remaining: Optional[int] = None
    max_amount_display: Optional[float] = None
    status: Optional[str] = None

    @classmethod
    def inactive(cls) -> "SessionInfo":
        return cls(has_active_session=False)

    def to_dict(self) -> Dict[str, Any]:
        if not self.has_active_session:
            return {"hasActiveSession": False}
        return {
            "hasActiveSession": True,
            "sessionPublicKey": self.session_public_key,
            "expiresAt": self.expires_at,
            "daysRemaining": self.days_remaining,
            "transactionsUsed": self.transactions_used,
            "transactionsRemaining": self.transactions_remaining,
            "maxAmountDisplay": self.max_amount_display,
            "status": self.status,
        }


@dataclass
class AuthorizationStatus:
    """Outcome of asking whether a principal can trade, creating a request if not."""
    is_authorized: bool
    message: str
    session_info: Optional[SessionInfo] = None
    request: Optional[SessionKeyRequest] = None
    auth_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "isAuthorized": self.is_authorized,
            "message": self.message,
        }
        if self.session_info is not None:
            data.update(self.session_info.to_dict())
        if self.request is not None:
            data["requestId"] = self.request.id
            data["authUrl"] = self.auth_url
            data["validDays"] = days_until(self.request.valid_until, self.request.created_at)
            data["maxTransactions"] = self.request.max_transactions
            data["maxAmountDisplay"] = lamports_to_sol(self.request.max_amount_per_tx)
        return data
