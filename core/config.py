"""Configuration models and loading."""

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from core.exceptions import ConfigurationError

CONFIG_DIR = Path.home() / ".config" / "embed-proxy"
CONFIG_FILE = CONFIG_DIR / "config.json"

PER_REQUEST_NAVIGATION_TIMEOUT_MS = 25_000


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 10000
    environment: str = "development"
    debug: bool = False
    # Externally reachable origin used when rewriting links, e.g. https://proxy.example.com
    public_base_url: str | None = None
    trust_forwarded: bool = True
    keep_alive_timeout: int = 5

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


class ThrottleSettings(BaseModel):
    enabled: bool = True
    min_ms: int = Field(default=100, ge=0)
    max_ms: int = Field(default=500, ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> "ThrottleSettings":
        if self.max_ms < self.min_ms:
            raise ValueError(f"throttle max_ms ({self.max_ms}) is below min_ms ({self.min_ms})")
        return self


class FetchSettings(BaseModel):
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_redirects: int = Field(default=10, ge=10)
    max_connections: int = 100
    max_keepalive_connections: int = 20


class BrowserSettings(BaseModel):
    mode: Literal["persistent", "per_request"] = "persistent"
    headless: bool = True
    launch_on_startup: bool = True
    navigation_timeout_ms: int = Field(default=30_000, gt=0)
    settle_ms: int = Field(default=1000, ge=0)
    max_pages: int = Field(default=10, ge=1)
    viewport_width: int = 1920
    viewport_height: int = 1080
    rewrite_links: bool = True

    @model_validator(mode="after")
    def _per_request_timeout(self) -> "BrowserSettings":
        if self.mode == "per_request" and "navigation_timeout_ms" not in self.model_fields_set:
            self.navigation_timeout_ms = PER_REQUEST_NAVIGATION_TIMEOUT_MS
        return self


class Config(BaseModel):
    strategy: Literal["direct", "browser", "both"] = "both"
    server: ServerSettings = Field(default_factory=ServerSettings)
    throttle: ThrottleSettings = Field(default_factory=ThrottleSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)

    @property
    def direct_enabled(self) -> bool:
        return self.strategy in ("direct", "both")

    @property
    def browser_enabled(self) -> bool:
        return self.strategy in ("browser", "both")


# Environment variable -> (section, field); section None means top-level
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "PORT": ("server", "port"),
    "ENVIRONMENT": ("server", "environment"),
    "PUBLIC_BASE_URL": ("server", "public_base_url"),
    "THROTTLE_ENABLED": ("throttle", "enabled"),
    "THROTTLE_MIN_MS": ("throttle", "min_ms"),
    "THROTTLE_MAX_MS": ("throttle", "max_ms"),
    "FETCH_TIMEOUT_SECONDS": ("fetch", "timeout_seconds"),
    "RENDER_STRATEGY": (None, "strategy"),
    "BROWSER_MODE": ("browser", "mode"),
    "NAVIGATION_TIMEOUT_MS": ("browser", "navigation_timeout_ms"),
}


def config_path(environ: Mapping[str, str] | None = None) -> Path:
    environ = os.environ if environ is None else environ
    override = environ.get("EMBED_PROXY_CONFIG")
    return Path(override).expanduser() if override else CONFIG_FILE


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Load configuration from JSON file, creating default if needed, then apply env overrides."""
    environ = os.environ if environ is None else environ
    path = path or config_path(environ)
    data = _read_config_file(path)
    return apply_env_overrides(data, environ)


def apply_env_overrides(data: dict, environ: Mapping[str, str]) -> Config:
    """Overlay recognized environment variables on raw config data and validate."""
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in data.items()}
    for env_name, (section, field) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        if section is None:
            merged[field] = raw
        else:
            merged.setdefault(section, {})[field] = raw
    try:
        return Config.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _read_config_file(path: Path) -> dict:
    if not path.exists():
        _write_default(path)
        return {}

    try:
        data = json.loads(path.read_text())
        Config.model_validate(data)
        return data
    except (json.JSONDecodeError, ValidationError):
        # Backup corrupted config and recreate default
        backup = path.with_suffix(".json.bak")
        path.rename(backup)
        _write_default(path)
        return {}


def _write_default(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(Config().model_dump_json(indent=2))
    except OSError:
        # Read-only home (serverless); run on defaults
        pass
