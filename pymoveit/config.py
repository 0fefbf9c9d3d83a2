"""Configuration management for pymoveit.

Values are looked up in this order: environment variables, the JSON config
file in ``~/.config/pymoveit/config.json``, built-in defaults.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .exceptions import MoveItConfigError

DEFAULT_API_URL = "https://moveitcloud.com/api/v1"

DEFAULT_FETCH_FILES_PER_PAGE = 100
DEFAULT_MAX_DEGREE_OF_PARALLELISM = 5
DEFAULT_READ_BUFFER_SIZE = 80 * 1024
DEFAULT_UPLOAD_RETRY_COUNT = 3
DEFAULT_UPLOAD_RETRY_DELAY_SECONDS = 2.0
DEFAULT_TOKEN_EXPIRY_TOLERANCE_SECONDS = 30.0

# Keys persisted in the config file. The password is never written.
_SAVED_KEYS = (
    "api_url",
    "username",
    "watch_path",
    "log_file",
    "fetch_files_per_page",
    "max_degree_of_parallelism",
    "read_buffer_size",
    "upload_retry_count",
    "upload_retry_delay_seconds",
    "token_expiry_tolerance_seconds",
)


@dataclass
class SyncSettings:
    """Tunables consumed by the sync engine, token manager and coordinator."""

    fetch_files_per_page: int = DEFAULT_FETCH_FILES_PER_PAGE
    max_degree_of_parallelism: int = DEFAULT_MAX_DEGREE_OF_PARALLELISM
    read_buffer_size: int = DEFAULT_READ_BUFFER_SIZE
    upload_retry_count: int = DEFAULT_UPLOAD_RETRY_COUNT
    upload_retry_delay_seconds: float = DEFAULT_UPLOAD_RETRY_DELAY_SECONDS
    token_expiry_tolerance_seconds: float = DEFAULT_TOKEN_EXPIRY_TOLERANCE_SECONDS

    def __post_init__(self) -> None:
        for name in (
            "fetch_files_per_page",
            "max_degree_of_parallelism",
            "read_buffer_size",
        ):
            if getattr(self, name) < 1:
                raise MoveItConfigError(f"{name} must be at least 1")
        if self.upload_retry_count < 0:
            raise MoveItConfigError("upload_retry_count must not be negative")
        if self.upload_retry_delay_seconds < 0:
            raise MoveItConfigError("upload_retry_delay_seconds must not be negative")
        if self.token_expiry_tolerance_seconds < 0:
            raise MoveItConfigError(
                "token_expiry_tolerance_seconds must not be negative"
            )


class Config:
    """Reads and writes the pymoveit configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        self._config_path = config_path
        self._data: Optional[dict[str, Any]] = None

    def get_config_path(self) -> Path:
        """Return the path of the JSON config file."""
        if self._config_path is not None:
            return self._config_path
        base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(base) / "pymoveit" / "config.json"

    def _load(self) -> dict[str, Any]:
        if self._data is None:
            path = self.get_config_path()
            if path.exists():
                try:
                    self._data = json.loads(path.read_text(encoding="utf-8"))
                except (OSError, ValueError) as e:
                    raise MoveItConfigError(
                        f"Cannot read config file {path}: {e}"
                    ) from e
                if not isinstance(self._data, dict):
                    raise MoveItConfigError(f"Config file {path} is not an object")
            else:
                self._data = {}
        return self._data

    def reload(self) -> None:
        """Forget cached file contents."""
        self._data = None

    def get(self, key: str, default: Any = None) -> Any:
        env_value = os.environ.get(f"MOVEIT_{key.upper()}")
        if env_value:
            return env_value
        value = self._load().get(key)
        return default if value is None else value

    def _get_number(self, key: str, default: Any, cast: type) -> Any:
        value = self.get(key, default)
        try:
            return cast(value)
        except (TypeError, ValueError) as e:
            raise MoveItConfigError(f"Invalid value for {key}: {value!r}") from e

    @property
    def api_url(self) -> str:
        return str(self.get("api_url", DEFAULT_API_URL)).rstrip("/")

    @property
    def username(self) -> Optional[str]:
        return self.get("username")

    @property
    def password(self) -> Optional[str]:
        # Only ever read from the environment
        return os.environ.get("MOVEIT_PASSWORD") or None

    @property
    def watch_path(self) -> Optional[Path]:
        value = self.get("watch_path")
        return Path(value).expanduser() if value else None

    @property
    def log_file(self) -> Optional[Path]:
        value = self.get("log_file")
        return Path(value).expanduser() if value else None

    def get_sync_settings(self) -> SyncSettings:
        """Build the sync settings from the current configuration."""
        return SyncSettings(
            fetch_files_per_page=self._get_number(
                "fetch_files_per_page", DEFAULT_FETCH_FILES_PER_PAGE, int
            ),
            max_degree_of_parallelism=self._get_number(
                "max_degree_of_parallelism", DEFAULT_MAX_DEGREE_OF_PARALLELISM, int
            ),
            read_buffer_size=self._get_number(
                "read_buffer_size", DEFAULT_READ_BUFFER_SIZE, int
            ),
            upload_retry_count=self._get_number(
                "upload_retry_count", DEFAULT_UPLOAD_RETRY_COUNT, int
            ),
            upload_retry_delay_seconds=self._get_number(
                "upload_retry_delay_seconds", DEFAULT_UPLOAD_RETRY_DELAY_SECONDS, float
            ),
            token_expiry_tolerance_seconds=self._get_number(
                "token_expiry_tolerance_seconds",
                DEFAULT_TOKEN_EXPIRY_TOLERANCE_SECONDS,
                float,
            ),
        )

    def is_configured(self) -> bool:
        """Return True when an API URL and a username are known."""
        return bool(self.get("api_url") and self.username)

    def save(self, **values: Any) -> None:
        """Merge values into the config file.

        Args:
            **values: Config keys to store; ``None`` removes a key

        Raises:
            MoveItConfigError: On an unknown key or when the file cannot be
                written
        """
        unknown = set(values) - set(_SAVED_KEYS)
        if unknown:
            raise MoveItConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        data = dict(self._load())
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = str(value) if isinstance(value, Path) else value

        path = self.get_config_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise MoveItConfigError(f"Cannot write config file {path}: {e}") from e
        self._data = data


config = Config()
