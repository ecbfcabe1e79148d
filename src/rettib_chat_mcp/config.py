"""Configuration models for the Rettib chat MCP server."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .executor.logging import get_logger
from .executor.models import PermissionMode

CONFIG_FILE_NAME = "rettib.yaml"


class Settings(BaseModel):
    """Root configuration model."""

    claude_bin: Optional[str] = Field(
        default=None, description="Explicit path to the claude executable"
    )
    extra_bin_dirs: list[str] = Field(
        default_factory=list,
        description="Additional directories searched for claude and added to the child PATH",
    )
    default_model: Optional[str] = Field(
        default=None, description="Model used when a request does not name one"
    )
    default_permission_mode: Optional[PermissionMode] = Field(
        default=None, description="Permission mode used when a request does not name one"
    )
    default_cwd: Optional[str] = Field(
        default=None, description="Working directory used when a request does not name one"
    )
    terminal_cols: int = Field(default=120, ge=20, description="Initial terminal width")
    terminal_rows: int = Field(default=32, ge=6, description="Initial terminal height")
    terminal_event_buffer: int = Field(
        default=2000, ge=1, description="How many terminal events are kept for polling"
    )
    config_path: Optional[Path] = Field(
        default=None, description="File the settings were loaded from"
    )


def find_config_file() -> Path:
    """Find the settings file.

    Search order:
    1. RETTIB_CONFIG environment variable
    2. ./rettib.yaml in current working directory
    """
    env_path = os.environ.get("RETTIB_CONFIG")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.cwd() / CONFIG_FILE_NAME


def load_config(config_path: Optional[Path] = None) -> Settings:
    """Load settings from a YAML file.

    A missing file yields defaults. So does a broken one, after a warning:
    the server should still come up and report the problem in its logs.
    """
    logger = get_logger()

    if config_path is None:
        config_path = find_config_file()

    if not config_path.is_file():
        return Settings()

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to read settings from {config_path}: {e}")
        return Settings()

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {config_path}: expected a mapping at the top level")
        return Settings()

    try:
        return Settings(**data, config_path=config_path)
    except (ValidationError, TypeError) as e:
        logger.warning(f"Invalid settings in {config_path}: {e}")
        return Settings()


def get_config() -> Settings:
    """Get the configuration (always reloads from disk)."""
    return load_config()
