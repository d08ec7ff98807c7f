"""Configuration models and loading."""

import json
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

CONFIG_DIR = Path.home() / ".config" / "mixed-content-gateway"
CONFIG_FILE = CONFIG_DIR / "config.json"

BASE_URL_ENV_VARS = ("API_BASE_URL", "API_URL")
TRUTHY = {"1", "true", "yes", "on"}


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080
    dashboard: bool = True


class BackendSettings(BaseModel):
    base_url: str = ""
    timeout: float = 300.0


class GatewaySettings(BaseModel):
    environment: str = "production"
    debug_context: bool = False
    route_prefix: str = "/proxy"


class LimitSettings(BaseModel):
    max_connections: int = 100
    max_keepalive_connections: int = 20
    keep_alive_timeout: int = 5


class Config(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    limits: LimitSettings = Field(default_factory=LimitSettings)

    @property
    def is_production(self) -> bool:
        return self.gateway.environment == "production"


def apply_env_overrides(config: Config, environ: Mapping[str, str] | None = None) -> Config:
    """Return a copy of ``config`` with environment overrides applied."""
    env = os.environ if environ is None else environ
    config = config.model_copy(deep=True)

    for name in BASE_URL_ENV_VARS:
        if env.get(name):
            config.backend.base_url = env[name]
            break
    if env.get("GATEWAY_ENV"):
        config.gateway.environment = env["GATEWAY_ENV"]
    if "GATEWAY_DEBUG_CONTEXT" in env:
        config.gateway.debug_context = env["GATEWAY_DEBUG_CONTEXT"].strip().lower() in TRUTHY
    return config


def load_config(config_file: Path = CONFIG_FILE) -> Config:
    """Load configuration from JSON file, creating default if needed."""
    return apply_env_overrides(_load_file(config_file))


def _load_file(config_file: Path) -> Config:
    if not config_file.exists():
        config_file.parent.mkdir(parents=True, exist_ok=True)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default

    try:
        data = json.loads(config_file.read_text())
        return Config.model_validate(data)
    except (json.JSONDecodeError, ValidationError):
        # Backup corrupted config and recreate default
        backup = config_file.with_suffix(".json.bak")
        config_file.rename(backup)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default
