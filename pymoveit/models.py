"""Data models for MOVEit API responses."""

from dataclasses import dataclass, field
from typing import Any, Optional

from .exceptions import MoveItInvalidResponseError


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class UserDetails:
    """The signed in user."""

    id: Optional[str]
    username: Optional[str]
    home_folder_id: Optional[int]

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "UserDetails":
        return cls(
            id=data.get("id"),
            username=data.get("username"),
            home_folder_id=_optional_int(data.get("homeFolderID")),
        )


@dataclass
class FolderContentItem:
    """A file or subfolder listed in a folder."""

    id: Optional[int]
    name: Optional[str]
    type: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "FolderContentItem":
        return cls(
            id=_optional_int(data.get("id")),
            name=data.get("name"),
            type=data.get("type"),
        )


@dataclass
class FolderContentPage:
    """One page of a folder listing."""

    items: list[FolderContentItem] = field(default_factory=list)
    page: int = 1
    per_page: Optional[int] = None
    total_items: Optional[int] = None
    total_pages: int = 1

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "FolderContentPage":
        """Parse a paged folder content response.

        Args:
            data: Response JSON with ``items`` and ``paging`` keys

        Returns:
            FolderContentPage instance (a missing ``paging`` block counts as
            a single page)
        """
        items = [
            FolderContentItem.from_api_response(item)
            for item in data.get("items") or []
            if isinstance(item, dict)
        ]
        paging = data.get("paging") or {}
        return cls(
            items=items,
            page=_optional_int(paging.get("page")) or 1,
            per_page=_optional_int(paging.get("perPage")),
            total_items=_optional_int(paging.get("totalItems")),
            total_pages=_optional_int(paging.get("totalPages")) or 1,
        )


@dataclass
class UploadResult:
    """Result of a file upload."""

    file_id: Optional[int]
    name: Optional[str] = None
    size: Optional[int] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "UploadResult":
        raw_id = data.get("fileId", data.get("id"))
        file_id: Optional[int] = None
        if raw_id not in (None, ""):
            try:
                file_id = int(raw_id)
            except (TypeError, ValueError) as e:
                raise MoveItInvalidResponseError(
                    f"Upload response has a non-numeric file id: {raw_id!r}"
                ) from e
        return cls(
            file_id=file_id,
            name=data.get("name"),
            size=_optional_int(data.get("size")),
        )


@dataclass
class TokenResponse:
    """Answer of the token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "TokenResponse":
        access_token = data.get("access_token")
        if not access_token:
            raise MoveItInvalidResponseError("Token response has no access_token")
        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expires_in=_optional_int(data.get("expires_in")),
        )
