"""Configuration for the tablens CLI.

Loads config.yaml with connection and cache settings.

Example ~/.tablens/config.yaml:

    port: 9222
    agent_id: research-bot
    log_level: INFO
    nav_timeout_ms: 15000
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from tablens.cache.store import DEFAULT_CACHE_DIR, validate_agent

CONFIG_ENV_VAR = "TABLENS_CONFIG"
_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class TabLensConfig(BaseModel):
    """Configuration for the tablens CLI."""

    # Connection
    host: str = Field(default="127.0.0.1", description="Chrome remote-debugging host")
    port: int = Field(
        default=9222, ge=1, le=65535, description="Chrome remote-debugging port"
    )
    agent_id: str | None = Field(
        default=None, description="Namespace isolating this agent's cached refs and tabs"
    )

    # Storage
    cache_dir: str = Field(
        default=DEFAULT_CACHE_DIR, description="Directory for cached tab maps and refs"
    )
    screenshot_dir: str | None = Field(
        default=None, description="Where screenshots go when no path is given"
    )

    # Behaviour
    log_level: str = Field(default="WARNING", description="Log level for stderr output")
    nav_timeout_ms: int = Field(
        default=10_000, ge=0, description="Max wait for the load event after navigation"
    )
    scroll_amount: int = Field(default=400, ge=1, description="Default scroll distance in px")
    max_tokens: int = Field(
        default=0, ge=0, description="Truncate snapshot text to this many tokens (0 = unlimited)"
    )

    @field_validator("agent_id")
    @classmethod
    def _check_agent(cls, v: str | None) -> str | None:
        return validate_agent(v)

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level

    def get_cache_path(self) -> Path:
        return Path(self.cache_dir).expanduser()

    def get_screenshot_path(self) -> Path:
        if self.screenshot_dir:
            return Path(self.screenshot_dir).expanduser()
        return self.get_cache_path() / "screenshots"


def default_config_path() -> Path:
    return Path(DEFAULT_CACHE_DIR) / "config.yaml"


def load_config(config_path: Path | str | None = None) -> TabLensConfig:
    """Load configuration from a YAML file.

    Resolution order (when config_path is None):
    1. TABLENS_CONFIG env var
    2. ~/.tablens/config.yaml
    3. Built-in defaults

    Raises:
        ValueError: if the file is not valid YAML or fails validation
    """
    if config_path is None:
        env_config = os.getenv(CONFIG_ENV_VAR)
        config_path = Path(env_config) if env_config else default_config_path()
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        return TabLensConfig()

    try:
        with config_path.open(encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Error reading {config_path}: {e}") from e

    if raw_data is None:
        raw_data = {}
    if not isinstance(raw_data, dict):
        raise ValueError(f"Invalid configuration in {config_path}: expected a mapping")

    try:
        return TabLensConfig.model_validate(raw_data)
    except Exception as e:
        raise ValueError(f"Invalid configuration in {config_path}: {e}") from e
