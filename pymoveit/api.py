"""API client for MOVEit Cloud."""

from __future__ import annotations

import logging
from typing import Any, BinaryIO, NoReturn

import httpx

from .config import config
from .exceptions import (
    MoveItAPIError,
    MoveItAuthenticationError,
    MoveItInvalidResponseError,
    MoveItNetworkError,
    MoveItNotFoundError,
    MoveItPermissionError,
    MoveItRateLimitError,
)
from .models import FolderContentPage, TokenResponse, UploadResult, UserDetails

logger = logging.getLogger(__name__)


class MoveItClient:
    """Client for the MOVEit Cloud REST API.

    Retrying is left to the caller; every method raises on the first failure.
    """

    def __init__(
        self,
        api_url: str | None = None,
        auth: httpx.Auth | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize MOVEit API client.

        Args:
            api_url: API base URL, e.g. ``https://host/api/v1`` (uses config
                if not provided)
            auth: Auth hook attached to every request except token exchanges
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.auth = auth
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                auth=self.auth,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> MoveItClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _raise_for_status(self, e: httpx.HTTPStatusError) -> NoReturn:
        """Translate an HTTP status error into a MoveItAPIError."""
        status_code = e.response.status_code
        body = e.response.text

        detail = None
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    detail = (
                        error_data.get("detail")
                        or error_data.get("message")
                        or error_data.get("error_description")
                        or error_data.get("error")
                    )
        except ValueError:
            # Body is not JSON, keep the status based message
            detail = None

        if status_code == 401:
            error_class: type[MoveItAPIError] = MoveItAuthenticationError
            message = "Unauthorized - invalid credentials or expired token"
        elif status_code == 403:
            error_class = MoveItPermissionError
            message = "Access forbidden - check your permissions"
        elif status_code == 404:
            error_class = MoveItNotFoundError
            message = "Resource not found"
        elif status_code == 429:
            error_class = MoveItRateLimitError
            message = "Rate limit exceeded - please try again later"
        else:
            error_class = MoveItAPIError
            message = f"API request failed with status {status_code}"

        if detail:
            message = f"{message}: {detail}"
        raise error_class(message, status_code=status_code, response=body) from e

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data (``{}`` for an empty body)

        Raises:
            MoveItAPIError: On an error status
            MoveItNetworkError: If no response was received
            MoveItInvalidResponseError: If the body is not JSON
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        logger.debug("%s %s", method, url)

        try:
            response = self._get_client().request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self._raise_for_status(e)
        except httpx.RequestError as e:
            raise MoveItNetworkError(f"Network error: {e}") from e

        if not response.content:
            return {}

        content_type = response.headers.get("Content-Type", "")
        if "json" not in content_type:
            raise MoveItInvalidResponseError(
                f"Unexpected response type: {content_type or 'unknown'}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise MoveItInvalidResponseError("Invalid JSON response from server") from e

    # =========================
    # Authentication Operations
    # =========================

    def exchange_credentials(self, username: str, password: str) -> TokenResponse:
        """Get an access token for a username and password.

        Args:
            username: MOVEit username
            password: MOVEit password

        Returns:
            TokenResponse with access token, refresh token and lifetime
        """
        data = {"grant_type": "password", "username": username, "password": password}
        # Token requests never go through the auth hook
        result = self._request("POST", "/token", data=data, auth=None)
        return TokenResponse.from_api_response(result)

    def exchange_refresh_token(self, refresh_token: str) -> TokenResponse:
        """Get a new access token for a refresh token."""
        data = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        result = self._request("POST", "/token", data=data, auth=None)
        return TokenResponse.from_api_response(result)

    # =========================
    # User Operations
    # =========================

    def get_current_user(self) -> UserDetails:
        """Get details of the signed in user, including the home folder."""
        return UserDetails.from_api_response(self._request("GET", "/users/self"))

    # =========================
    # Folder Operations
    # =========================

    def list_folder_contents(
        self,
        folder_id: int,
        page: int = 1,
        per_page: int = 100,
    ) -> FolderContentPage:
        """List one page of the files and subfolders of a folder.

        Args:
            folder_id: ID of the folder
            page: Page number (1-based)
            per_page: Entries per page

        Returns:
            FolderContentPage with the items and paging information
        """
        params = {"page": page, "perPage": per_page}
        result = self._request("GET", f"/folders/{folder_id}/content", params=params)
        return FolderContentPage.from_api_response(result)

    # =========================
    # File Operations
    # =========================

    def upload_file(
        self,
        folder_id: int,
        stream: BinaryIO,
        file_name: str,
    ) -> UploadResult:
        """Upload a file into a folder.

        Args:
            folder_id: ID of the target folder
            stream: Open binary stream with the file contents
            file_name: Name of the file in the folder

        Returns:
            UploadResult with the id assigned to the new file
        """
        files = {"file": (file_name, stream, "application/octet-stream")}
        result = self._request("POST", f"/folders/{folder_id}/files", files=files)
        return UploadResult.from_api_response(result)

    def delete_file(self, file_id: int) -> None:
        """Delete a file by id."""
        self._request("DELETE", f"/files/{file_id}")
