"""Access token lifecycle and request authentication."""

import logging
import threading
import time
from collections.abc import Generator
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .api import MoveItClient
from .config import DEFAULT_TOKEN_EXPIRY_TOLERANCE_SECONDS
from .exceptions import MoveItAPIError, MoveItTokenError
from .models import TokenResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthToken:
    """An access token together with its refresh token and expiry."""

    access_token: str
    refresh_token: Optional[str]
    expires_at: float
    """Clock reading (seconds) at which the access token expires"""


class TokenManager:
    """Keeps a valid MOVEit access token around.

    The first call signs in with username and password. Later calls reuse the
    token until it is about to expire, then renew it with the refresh token
    when one was issued, or sign in again otherwise.

    Renewal is single-flight: concurrent callers that find the token expiring
    wait on one lock, and only the first of them talks to the token endpoint.
    The others pick up the token it stored.
    """

    def __init__(
        self,
        client: MoveItClient,
        username: str,
        password: str,
        expiry_tolerance: float = DEFAULT_TOKEN_EXPIRY_TOLERANCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the token manager.

        Args:
            client: API client used for the token endpoint
            username: MOVEit username
            password: MOVEit password
            expiry_tolerance: Seconds before expiry at which the token is
                already treated as expired
            clock: Monotonic time source
        """
        self.client = client
        self.expiry_tolerance = expiry_tolerance
        self._username = username
        self._password = password
        self._clock = clock
        self._token: Optional[AuthToken] = None
        self._lock = threading.RLock()

    @property
    def token(self) -> Optional[AuthToken]:
        """The current token, if any."""
        return self._token

    def _needs_renewal(self, token: AuthToken) -> bool:
        return self._clock() > token.expires_at - self.expiry_tolerance

    def ensure_valid_token(self) -> str:
        """Return an access token that is not about to expire.

        Returns:
            The access token string

        Raises:
            MoveItAPIError: If the token endpoint rejects the request
            MoveItTokenError: If the token response is unusable
        """
        token = self._token
        if token is not None and not self._needs_renewal(token):
            return token.access_token

        with self._lock:
            # Another caller may have renewed while we waited for the lock
            token = self._token
            if token is None:
                token = self.acquire_token()
            elif self._needs_renewal(token):
                if token.refresh_token:
                    token = self.refresh_token()
                else:
                    token = self.acquire_token()
            return token.access_token

    def acquire_token(self) -> AuthToken:
        """Sign in with username and password and store the new token."""
        with self._lock:
            try:
                response = self.client.exchange_credentials(
                    self._username, self._password
                )
            except MoveItAPIError as e:
                logger.error(
                    "API error while acquiring token: %s - %s",
                    e.status_code,
                    e.response,
                )
                raise
            except Exception:
                logger.exception("Unexpected error while acquiring token")
                raise

            self._token = self._build_token(response)
            logger.info("Token acquired. Expires in %s seconds.", response.expires_in)
            return self._token

    def refresh_token(self) -> AuthToken:
        """Exchange the held refresh token for a new token.

        Raises:
            MoveItTokenError: If no refresh token is held
        """
        with self._lock:
            current = self._token
            if current is None or not current.refresh_token:
                raise MoveItTokenError("Refresh token is not available")

            try:
                response = self.client.exchange_refresh_token(current.refresh_token)
            except MoveItAPIError as e:
                logger.error(
                    "API error while refreshing token: %s - %s",
                    e.status_code,
                    e.response,
                )
                raise
            except Exception:
                logger.exception("Unexpected error while refreshing token")
                raise

            self._token = self._build_token(response)
            logger.info("Token refreshed. Expires in %s seconds.", response.expires_in)
            return self._token

    def invalidate(self) -> None:
        """Drop the current token; the next request signs in again."""
        with self._lock:
            self._token = None

    def _build_token(self, response: TokenResponse) -> AuthToken:
        if response.expires_in is None:
            raise MoveItTokenError("Token expiration time is not defined")
        return AuthToken(
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            expires_at=self._clock() + response.expires_in,
        )


class TokenAuth(httpx.Auth):
    """Attach a bearer token from a TokenManager to every request."""

    def __init__(self, token_manager: TokenManager):
        self.token_manager = token_manager

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        token = self.token_manager.ensure_valid_token()
        request.headers["Authorization"] = f"Bearer {token}"
        yield request
