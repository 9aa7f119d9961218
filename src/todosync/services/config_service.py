"""Configuration service for todosync.

Single source of truth for the user's ``config.json`` in the platform
config directory. A missing or unreadable file yields the defaults.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir
from pydantic import BaseModel, ValidationError

from todosync.errors import ConfigError
from todosync.models import AppConfig
from todosync.utils.logger import get_logger

APP_NAME = "todosync"

logger = get_logger("config")


class ConfigService:
    """Service for loading, saving and editing the application configuration."""

    def __init__(self, config_dir: Path | None = None):
        """Initialize the config service.

        Args:
            config_dir: Directory holding ``config.json`` (platform default if omitted)
        """
        self.config_dir = Path(config_dir or user_config_dir(APP_NAME))
        self.config_path = self.config_dir / "config.json"
        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        """Get or load the current configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def load_config(self) -> AppConfig:
        """Load configuration from file, falling back to defaults."""
        try:
            with open(self.config_path, encoding="utf-8") as f:
                return AppConfig.model_validate_json(f.read())
        except FileNotFoundError:
            return AppConfig()
        except (OSError, ValueError) as e:
            # If config is corrupted, use defaults
            logger.warning("Ignoring unreadable config %s: %s", self.config_path, e)
            return AppConfig()

    def save_config(self) -> None:
        """Write the current configuration (owner-only permissions)."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                f.write(self.config.model_dump_json(indent=4))
            self.config_path.chmod(0o600)
        except OSError as e:
            raise ConfigError(f"Failed to save config: {e}") from e

    def get(self, key: str) -> Any:
        """Get a configuration value by dot-separated key."""
        value: Any = self.config
        for part in key.split("."):
            if not isinstance(value, BaseModel) or part not in type(value).model_fields:
                raise ConfigError(f"Unknown config key: {key}")
            value = getattr(value, part)
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dot-separated key and save."""
        self.get(key)
        parts = key.split(".")
        data = self.config.model_dump()
        current = data
        for part in parts[:-1]:
            current = current[part]
        current[parts[-1]] = value
        try:
            self._config = AppConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid value for {key}: {e.errors()[0]['msg']}") from e
        self.save_config()

    def reset_config(self) -> None:
        """Reset configuration to defaults."""
        self._config = AppConfig()
        if self.config_path.exists():
            self.config_path.unlink()

    def as_dict(self) -> dict[str, Any]:
        return json.loads(self.config.model_dump_json())


@lru_cache(maxsize=1)
def get_config_service() -> ConfigService:
    """Get a cached ConfigService instance."""
    return ConfigService()
