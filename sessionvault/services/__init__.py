from .session_keys import (
    OperationResult,
    SessionKeyService,
    build_session_store,
    get_session_key_service,
)

__all__ = [
    "OperationResult",
    "SessionKeyService",
    "build_session_store",
    "get_session_key_service",
]
