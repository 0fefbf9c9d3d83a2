"""PyMoveIt - mirror a local folder into a MOVEit Cloud home folder."""

from .api import MoveItClient
from .auth import AuthToken, TokenAuth, TokenManager
from .exceptions import (
    HomeFolderNotFoundError,
    MoveItAPIError,
    MoveItAuthenticationError,
    MoveItConfigError,
    MoveItError,
    MoveItInvalidResponseError,
    MoveItNetworkError,
    MoveItNotFoundError,
    MoveItPermissionError,
    MoveItRateLimitError,
    MoveItTokenError,
    SyncError,
    SyncInitializationError,
    SyncNotInitializedError,
)
from .retry import RetryPolicy, exponential_backoff

__all__ = [
    "MoveItClient",
    "AuthToken",
    "TokenAuth",
    "TokenManager",
    "RetryPolicy",
    "exponential_backoff",
    "MoveItError",
    "MoveItAPIError",
    "MoveItAuthenticationError",
    "MoveItConfigError",
    "MoveItInvalidResponseError",
    "MoveItNetworkError",
    "MoveItNotFoundError",
    "MoveItPermissionError",
    "MoveItRateLimitError",
    "MoveItTokenError",
    "SyncError",
    "SyncInitializationError",
    "SyncNotInitializedError",
    "HomeFolderNotFoundError",
]
