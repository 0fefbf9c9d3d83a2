"""Exceptions raised by pymoveit."""

from typing import Optional


class MoveItError(Exception):
    """Base exception for all pymoveit errors."""


class MoveItAPIError(MoveItError):
    """The MOVEit API answered with an error status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class MoveItAuthenticationError(MoveItAPIError):
    """Credentials or access token were rejected (401)."""


class MoveItPermissionError(MoveItAPIError):
    """Access to the resource is forbidden (403)."""


class MoveItNotFoundError(MoveItAPIError):
    """The requested resource does not exist (404)."""


class MoveItRateLimitError(MoveItAPIError):
    """Too many requests (429)."""


class MoveItNetworkError(MoveItError):
    """The request never got an answer (connection, timeout, ...)."""


class MoveItInvalidResponseError(MoveItError):
    """The response could not be parsed or lacks a required field."""


class MoveItConfigError(MoveItError):
    """Missing or invalid configuration."""


class MoveItTokenError(MoveItError):
    """An access token could not be obtained or refreshed."""


class SyncError(MoveItError):
    """Base exception for sync engine failures."""


class SyncNotInitializedError(SyncError):
    """An operation was attempted before the engine was initialized."""


class HomeFolderNotFoundError(SyncError):
    """The signed in user has no home folder."""


class SyncInitializationError(SyncError):
    """Fetching the remote folder contents failed or was cancelled."""
