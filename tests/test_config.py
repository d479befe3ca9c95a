"""Unit tests for bizdash.engine.config — DashboardConfig and loading."""

import pytest

from bizdash.engine.config import (
    ApiConfig,
    DashboardConfig,
    GuardConfig,
    SessionStorageConfig,
    get_config,
    load_config,
)
from bizdash.engine.errors import BizDashConfigError


class TestDashboardConfig:
    """Test DashboardConfig Pydantic model."""

    def test_defaults(self):
        cfg = DashboardConfig()
        assert cfg.name == "BizDash"
        assert cfg.environment == "dev"
        assert cfg.api.base_url == "http://localhost:2000"
        assert cfg.api.auth_check_path == "/auth/test"
        assert cfg.guard.login_path == "/login"
        assert cfg.guard.public_paths == ["/login"]
        assert cfg.session.backend == "memory"
        assert cfg.logging.level == "INFO"

    def test_invalid_environment(self):
        with pytest.raises(ValueError, match="dev/staging/prod"):
            DashboardConfig(environment="test")

    def test_base_url_trailing_slash_stripped(self):
        assert ApiConfig(base_url="https://api.example.com/").base_url == "https://api.example.com"

    def test_invalid_backend(self):
        with pytest.raises(ValueError, match="memory/file/redis"):
            SessionStorageConfig(backend="sqlite")

    def test_login_path_added_to_public_paths(self):
        guard = GuardConfig(login_path="/signin", public_paths=["/help"])
        assert guard.public_paths == ["/signin", "/help"]

    def test_login_path_not_duplicated(self):
        guard = GuardConfig(public_paths=["/help", "/login"])
        assert guard.public_paths == ["/help", "/login"]


class TestLoadConfig:

    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(str(tmp_path / "bizdash.yaml"))
        assert cfg == DashboardConfig()

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "bizdash.yaml"
        path.write_text(
            "dashboard:\n"
            "  name: Shop\n"
            "  environment: staging\n"
            "api:\n"
            "  base_url: http://api.shop.test/\n"
            "guard:\n"
            "  public_paths: [/login, /status]\n"
            "session:\n"
            "  backend: file\n"
            "  file_path: /tmp/s.json\n"
        )
        cfg = load_config(str(path))
        assert cfg.name == "Shop"
        assert cfg.environment == "staging"
        assert cfg.api.base_url == "http://api.shop.test"
        assert cfg.guard.public_paths == ["/login", "/status"]
        assert cfg.session.backend == "file"
        assert cfg.session.file_path == "/tmp/s.json"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "bizdash.yaml"
        path.write_text("")
        assert load_config(str(path)).environment == "dev"

    @pytest.mark.parametrize("content", [
        "dashboard:\n",
        "dashboard:\napi:\nguard:\n",
    ])
    def test_empty_blocks_give_defaults(self, tmp_path, content):
        path = tmp_path / "bizdash.yaml"
        path.write_text(content)
        cfg = load_config(str(path))
        assert cfg.name == "BizDash"
        assert cfg.api.base_url == "http://localhost:2000"

    @pytest.mark.parametrize("content", [
        "- api\n- guard\n",
        "just a string\n",
        "dashboard: [dev]\n",
    ])
    def test_non_mapping_rejected(self, tmp_path, content):
        path = tmp_path / "bizdash.yaml"
        path.write_text(content)
        with pytest.raises(BizDashConfigError, match="must be a mapping"):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bizdash.yaml"
        path.write_text("api: [unclosed\n")
        with pytest.raises(BizDashConfigError, match="Invalid YAML"):
            load_config(str(path))

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "bizdash.yaml"
        path.write_text("dashboard:\n  environment: qa\n")
        with pytest.raises(BizDashConfigError, match="Invalid config"):
            load_config(str(path))

    def test_get_config_returns_loaded(self, tmp_path):
        path = tmp_path / "bizdash.yaml"
        path.write_text("dashboard:\n  environment: prod\n")
        loaded = load_config(str(path))
        assert get_config() is loaded

    def test_get_config_auto_discovers(self, tmp_path, monkeypatch):
        (tmp_path / "bizdash.yaml").write_text("dashboard:\n  name: Found\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        assert get_config().name == "Found"
