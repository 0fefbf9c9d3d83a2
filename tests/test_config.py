"""Tests for configuration management."""

import json

import pytest

from pymoveit.config import (
    DEFAULT_API_URL,
    DEFAULT_FETCH_FILES_PER_PAGE,
    Config,
    SyncSettings,
)
from pymoveit.exceptions import MoveItConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove MOVEIT_* variables from the environment."""
    for key in (
        "MOVEIT_API_URL",
        "MOVEIT_USERNAME",
        "MOVEIT_PASSWORD",
        "MOVEIT_WATCH_PATH",
        "MOVEIT_LOG_FILE",
        "MOVEIT_FETCH_FILES_PER_PAGE",
        "MOVEIT_UPLOAD_RETRY_COUNT",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "pymoveit" / "config.json"


@pytest.fixture
def cfg(config_path):
    return Config(config_path=config_path)


class TestSyncSettings:
    def test_defaults(self):
        settings = SyncSettings()
        assert settings.fetch_files_per_page == 100
        assert settings.max_degree_of_parallelism == 5
        assert settings.read_buffer_size == 80 * 1024
        assert settings.upload_retry_count == 3
        assert settings.upload_retry_delay_seconds == 2.0
        assert settings.token_expiry_tolerance_seconds == 30.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"fetch_files_per_page": 0},
            {"max_degree_of_parallelism": 0},
            {"read_buffer_size": 0},
            {"upload_retry_count": -1},
            {"upload_retry_delay_seconds": -0.5},
            {"token_expiry_tolerance_seconds": -1},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(MoveItConfigError):
            SyncSettings(**kwargs)

    def test_zero_retries_allowed(self):
        assert SyncSettings(upload_retry_count=0).upload_retry_count == 0


class TestConfig:
    """Tests for the layered config lookup."""

    def test_defaults_without_file(self, cfg):
        assert cfg.api_url == DEFAULT_API_URL
        assert cfg.username is None
        assert cfg.watch_path is None
        assert not cfg.is_configured()
        assert cfg.get_sync_settings() == SyncSettings()

    def test_reads_file(self, cfg, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text(
            json.dumps(
                {
                    "api_url": "https://moveit.example.com/api/v1/",
                    "username": "alice",
                    "fetch_files_per_page": 25,
                }
            )
        )

        assert cfg.api_url == "https://moveit.example.com/api/v1"
        assert cfg.username == "alice"
        assert cfg.is_configured()
        assert cfg.get_sync_settings().fetch_files_per_page == 25

    def test_env_overrides_file(self, cfg, config_path, monkeypatch):
        config_path.parent.mkdir(parents=True)
        config_path.write_text(json.dumps({"username": "alice", "upload_retry_count": 5}))
        monkeypatch.setenv("MOVEIT_USERNAME", "bob")
        monkeypatch.setenv("MOVEIT_UPLOAD_RETRY_COUNT", "1")

        assert cfg.username == "bob"
        assert cfg.get_sync_settings().upload_retry_count == 1

    def test_password_only_from_env(self, cfg, config_path, monkeypatch):
        config_path.parent.mkdir(parents=True)
        config_path.write_text(json.dumps({"password": "from-file"}))
        assert cfg.password is None

        monkeypatch.setenv("MOVEIT_PASSWORD", "secret")
        assert cfg.password == "secret"

    def test_invalid_number(self, cfg, monkeypatch):
        monkeypatch.setenv("MOVEIT_FETCH_FILES_PER_PAGE", "many")
        with pytest.raises(MoveItConfigError, match="fetch_files_per_page"):
            cfg.get_sync_settings()

    def test_out_of_range_number(self, cfg, monkeypatch):
        monkeypatch.setenv("MOVEIT_FETCH_FILES_PER_PAGE", "0")
        with pytest.raises(MoveItConfigError):
            cfg.get_sync_settings()

    def test_broken_file(self, cfg, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text("{not json")
        with pytest.raises(MoveItConfigError, match="Cannot read config file"):
            cfg.get("username")

    def test_file_must_hold_object(self, cfg, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text("[1, 2]")
        with pytest.raises(MoveItConfigError, match="not an object"):
            cfg.get("username")

    def test_xdg_config_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert Config().get_config_path() == tmp_path / "pymoveit" / "config.json"


class TestSave:
    def test_save_writes_json(self, cfg, config_path, tmp_path):
        cfg.save(username="alice", watch_path=tmp_path / "inbox")

        data = json.loads(config_path.read_text())
        assert data == {"username": "alice", "watch_path": str(tmp_path / "inbox")}
        assert cfg.username == "alice"
        assert cfg.watch_path == tmp_path / "inbox"

    def test_save_merges_and_removes(self, cfg, config_path):
        cfg.save(username="alice", api_url="https://a.example.com")
        cfg.save(username=None, fetch_files_per_page=DEFAULT_FETCH_FILES_PER_PAGE)

        data = json.loads(config_path.read_text())
        assert data == {
            "api_url": "https://a.example.com",
            "fetch_files_per_page": DEFAULT_FETCH_FILES_PER_PAGE,
        }

    def test_password_is_never_saved(self, cfg):
        with pytest.raises(MoveItConfigError, match="password"):
            cfg.save(password="secret")

    def test_reload_rereads_file(self, cfg, config_path):
        cfg.save(username="alice")
        config_path.write_text(json.dumps({"username": "carol"}))
        assert cfg.username == "alice"

        cfg.reload()
        assert cfg.username == "carol"
