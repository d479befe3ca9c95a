"""
BizDash Configuration — Load and validate bizdash.yaml at startup.

Usage:
    from bizdash.engine.config import load_config, get_config
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from bizdash.engine.errors import BizDashConfigError

CONFIG_FILENAME = "bizdash.yaml"


# ---------------------------------------------------------------------------
# Pydantic models for bizdash.yaml
# ---------------------------------------------------------------------------

class ApiConfig(BaseModel):
    base_url: str = "http://localhost:2000"
    timeout: float = 10.0
    auth_check_path: str = "/auth/test"
    login_path: str = "/auth/local/login"
    register_path: str = "/auth/local/register"
    refresh_path: str = "/auth/refresh"
    logout_path: str = "/auth/logout"
    profile_path: str = "/auth/profile"

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class GuardConfig(BaseModel):
    login_path: str = "/login"
    home_path: str = "/"
    public_paths: List[str] = Field(default_factory=lambda: ["/login"])

    @model_validator(mode="after")
    def login_path_is_public(self) -> "GuardConfig":
        # The login boundary can never be guarded, or redirects would loop
        if self.login_path not in self.public_paths:
            self.public_paths = [self.login_path, *self.public_paths]
        return self


class SessionStorageConfig(BaseModel):
    backend: str = "memory"
    file_path: str = ".bizdash/session.json"
    redis_url: str = "redis://localhost:6379/0"
    redis_db: int = 4
    key_prefix: str = "bizdash:session:"

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("memory", "file", "redis"):
            raise ValueError(f"session backend must be memory/file/redis, got '{v}'")
        return v


class LogAsyncQueueConfig(BaseModel):
    flush_interval_ms: int = 100
    max_queue_size: int = 10000


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".bizdash/logs"
    structured: bool = True
    async_queue: LogAsyncQueueConfig = LogAsyncQueueConfig()


class DashboardConfig(BaseModel):
    """Root model for bizdash.yaml."""
    name: str = "BizDash"
    environment: str = "dev"

    api: ApiConfig = ApiConfig()
    guard: GuardConfig = GuardConfig()
    session: SessionStorageConfig = SessionStorageConfig()
    logging: LoggingConfig = LoggingConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[DashboardConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for bizdash.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def load_config(config_path: Optional[str] = None) -> DashboardConfig:
    """
    Load and validate bizdash.yaml.

    Args:
        config_path: Explicit path to bizdash.yaml. If None, auto-discovers.

    Returns:
        Validated DashboardConfig. Defaults if the file does not exist.

    Raises:
        BizDashConfigError if the file is not valid YAML or fails validation.
    """
    global _config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    path = Path(config_path)
    if not path.exists():
        _config = DashboardConfig()
        return _config

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise BizDashConfigError(f"Invalid YAML in {path}: {e}", config_path=str(path)) from e

    if not isinstance(raw, dict):
        raise BizDashConfigError(
            f"Invalid config in {path}: top level must be a mapping", config_path=str(path)
        )

    # Top-level "dashboard:" block holds name/environment; empty blocks mean defaults
    dashboard = raw.get("dashboard") or {}
    if not isinstance(dashboard, dict):
        raise BizDashConfigError(
            f"Invalid config in {path}: 'dashboard' must be a mapping", config_path=str(path)
        )
    data = {
        "name": dashboard.get("name", raw.get("name", "BizDash")),
        "environment": dashboard.get("environment", raw.get("environment", "dev")),
        "api": raw.get("api") or {},
        "guard": raw.get("guard") or {},
        "session": raw.get("session") or {},
        "logging": raw.get("logging") or {},
    }

    try:
        _config = DashboardConfig(**data)
    except ValidationError as e:
        raise BizDashConfigError(f"Invalid config in {path}: {e}", config_path=str(path)) from e
    return _config


def get_config() -> DashboardConfig:
    """Get the currently loaded config, loading if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_environment() -> str:
    return get_config().environment
