"""Presence relay configuration with Pydantic models.

Follows the same pattern as the other services:
- Load from YAML file
- Override with environment variables
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError


class ServerConfig(BaseModel):
    """HTTP server configuration."""
    host: str = Field("0.0.0.0", description="Server bind address")
    port: int = Field(5000, description="Server port")


class CorsConfig(BaseModel):
    """CORS configuration."""
    origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5000"],
        description="Allowed origins for CORS",
    )
    allow_credentials: bool = Field(True, description="Allow credentials")


class PresenceConfig(BaseModel):
    """Presence and client-facing settings."""
    nick_max_chars: int = Field(32, ge=1, description="Longest accepted nickname")
    ws_url: str = Field("ws://localhost:5000/", description="Push channel URL handed to clients")
    root_url: str = Field("http://localhost:5000", description="Public root URL handed to clients")
    debug: bool = Field(False, description="Client debug flag")


class LimitsConfig(BaseModel):
    """Rate limits (slowapi syntax)."""
    enabled: bool = Field(True, description="Apply rate limits")
    signin: str = Field("30/minute", description="Sign-in rate per client address")
    signout: str = Field("30/minute", description="Sign-out rate per client address")


class AppConfig(BaseModel):
    """Application configuration."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    cors: CorsConfig = Field(default_factory=CorsConfig)
    presence: PresenceConfig = Field(default_factory=PresenceConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)


def _default_config_path() -> Path:
    return Path(__file__).resolve().parents[2] / "config.yaml"


def load_config(path: Optional[Path | str] = None) -> AppConfig:
    """Load configuration from YAML file and environment variables.

    Environment variables take precedence over YAML values:
    - PRESENCE_CONFIG: Alternate YAML path (when ``path`` is not given)
    - PRESENCE_HOST / PRESENCE_PORT: Bind address
    - PRESENCE_WS_URL / PRESENCE_ROOT_URL: URLs advertised to clients
    - PRESENCE_DEBUG: "true" enables the client debug flag
    - CORS_ORIGINS: Comma-separated allowed origins
    """
    if path is None:
        path = os.environ.get("PRESENCE_CONFIG") or None
    config_path = Path(path) if path is not None else _default_config_path()

    if not config_path.is_file():
        config = AppConfig()
    else:
        with config_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config at {config_path} must be a mapping.")
        try:
            config = AppConfig.model_validate(raw)
        except PydanticValidationError as exc:
            raise ValueError(f"Invalid configuration in {config_path}: {exc}") from exc

    if host := os.environ.get("PRESENCE_HOST"):
        config.server.host = host
    if port := os.environ.get("PRESENCE_PORT"):
        config.server.port = int(port)
    if ws_url := os.environ.get("PRESENCE_WS_URL"):
        config.presence.ws_url = ws_url
    if root_url := os.environ.get("PRESENCE_ROOT_URL"):
        config.presence.root_url = root_url
    if debug := os.environ.get("PRESENCE_DEBUG"):
        config.presence.debug = debug.lower() == "true"
    if origins := os.environ.get("CORS_ORIGINS"):
        config.cors.origins = [o.strip() for o in origins.split(",") if o.strip()]

    return config
