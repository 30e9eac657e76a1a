"""
Session key error taxonomy.

Every failure the credential subsystem reports to a caller carries an ErrorKind
and a message that is safe to show to an end user. Messages never contain key
material.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Failure kinds surfaced to callers."""
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    EXPIRED = "expired"
    DECRYPTION = "decryption_error"
    INTERNAL = "internal_error"


class SessionKeyError(Exception):
    """Base exception for session key errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


class SessionValidationError(SessionKeyError):
    """Required input missing or malformed."""
    kind = ErrorKind.VALIDATION


class SessionNotFoundError(SessionKeyError):
    """No request or session with the given id."""
    kind = ErrorKind.NOT_FOUND


class InvalidSessionStateError(SessionKeyError):
    """Entity is not in the status the operation requires."""
    kind = ErrorKind.INVALID_STATE


class SessionExpiredError(SessionKeyError):
    """Deadline has passed."""
    kind = ErrorKind.EXPIRED


class DecryptionError(SessionKeyError):
    """Stored key material could not be decrypted for this principal."""
    kind = ErrorKind.DECRYPTION


class InternalSessionError(SessionKeyError):
    """Storage or infrastructure failure, details withheld from the caller."""
    kind = ErrorKind.INTERNAL


class ConfigurationError(Exception):
    """Server is missing configuration required for key custody."""
    pass
