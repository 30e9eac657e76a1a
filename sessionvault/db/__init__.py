from .convex_client import (
    ConvexAuthError,
    ConvexClient,
    ConvexError,
    ConvexMutationError,
    ConvexQueryError,
    close_convex_client,
    get_convex_client,
)

__all__ = [
    "ConvexAuthError",
    "ConvexClient",
    "ConvexError",
    "ConvexMutationError",
    "ConvexQueryError",
    "close_convex_client",
    "get_convex_client",
]
