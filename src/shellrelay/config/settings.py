"""Configuration management for shellrelay.

Loads settings from a YAML configuration file with environment variable
overrides (``RELAY_`` prefix, ``__`` for nested sections). Supports .env
files. The client also honours the un-prefixed ``RELAY_HOST`` and
``RELAY_PORT`` variables.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/relay.yaml")
DEFAULT_ADDRESS = "127.0.0.1"
DEFAULT_PORT = 50135


class ListenConfig(BaseModel):
    address: str = Field(default=DEFAULT_ADDRESS)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)


class ServerConfig(BaseModel):
    spool_dir: str | None = Field(default=None, description="Directory for script spool files")
    max_connections: int | None = Field(
        default=None, gt=0, description="Per-service cap on concurrent connections (unbounded if unset)"
    )


class ClientConfig(BaseModel):
    host: str = Field(default="localhost")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    marker: str = Field(default="___", min_length=1)

    @field_validator("marker")
    @classmethod
    def _single_line(cls, value: str) -> str:
        if "\n" in value:
            raise ValueError("marker must be a single line")
        return value


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None, description='Log file to append to ("-" is stdout)')
    json_output: bool = Field(default=False)


class Settings(BaseSettings):
    """Root configuration for the shellrelay system.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "RELAY_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    listen: ListenConfig = Field(default_factory=ListenConfig)
    exports: dict[str, str] = Field(default_factory=dict)
    server: ServerConfig = Field(default_factory=ServerConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: init values (YAML + client overrides) > env vars > .env file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data: dict = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply the un-prefixed client variables understood by the send helper."""
    host = os.environ.get("RELAY_HOST", "")
    port = os.environ.get("RELAY_PORT", "")

    if not host and not port:
        return

    client = yaml_data.setdefault("client", {}) or {}
    yaml_data["client"] = client
    if host:
        client["host"] = host
    if port:
        client["port"] = port
