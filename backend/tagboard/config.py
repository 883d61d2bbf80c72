"""
Configuration management for the tag board service.

Loads TagBoardConfig from a JSON file, applies environment overrides and
validates the result. The configuration is read-only at runtime.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import TagBoardConfig

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on", "y"}
_FALSE_VALUES = {"0", "false", "no", "off", "n"}


class ConfigManager:
    """
    Manages tag board configuration.

    Resolution order: defaults, then the JSON config file, then
    ``TAGBOARD_*`` environment variables.
    """

    DEFAULT_CONFIG_PATH = Path.home() / ".tagboard" / "config.json"

    def __init__(self, config_path: Path | None = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config file (defaults to $TAGBOARD_CONFIG_PATH
                or ~/.tagboard/config.json)
        """
        self.config_path = config_path or self._resolve_config_path()
        self._config: TagBoardConfig | None = None

    @classmethod
    def _resolve_config_path(cls) -> Path:
        env_value = os.getenv("TAGBOARD_CONFIG_PATH", "").strip()
        if env_value:
            return Path(os.path.expandvars(env_value)).expanduser()
        return cls.DEFAULT_CONFIG_PATH

    def get_config(self) -> TagBoardConfig:
        """
        Get current configuration, loading it on first access.

        Returns:
            Current TagBoardConfig
        """
        if self._config is None:
            self._config = self._apply_env_overrides(self._load_config())
        return self._config

    def _load_config(self) -> TagBoardConfig:
        """Load configuration from disk or return defaults."""
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return self._default_config()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("config payload must be a JSON object")
            merged = {**self._default_config().model_dump(), **data}
            config = TagBoardConfig(**merged)
            logger.info(f"Loaded config from {self.config_path}")
            return config
        except Exception as e:
            logger.error(f"Failed to load config from {self.config_path}: {e}")
            return self._default_config()

    def _apply_env_overrides(self, config: TagBoardConfig) -> TagBoardConfig:
        updates: dict[str, Any] = {}

        workers = self._env_int("TAGBOARD_MAX_WORKERS")
        if workers is not None:
            updates["max_workers"] = max(1, workers)

        threshold = self._env_int("TAGBOARD_PARALLEL_THRESHOLD")
        if threshold is not None:
            updates["parallel_threshold"] = max(0, threshold)

        parse_cache = self._env_bool("TAGBOARD_PARSE_CACHE")
        if parse_cache is not None:
            updates["parse_cache_enabled"] = parse_cache

        raw_timeout = os.getenv("TAGBOARD_LOCK_TIMEOUT_SEC", "").strip()
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
                if timeout > 0:
                    updates["lock_timeout_sec"] = timeout
                else:
                    logger.warning(f"Ignoring non-positive TAGBOARD_LOCK_TIMEOUT_SEC={raw_timeout!r}")
            except ValueError:
                logger.warning(f"Ignoring invalid TAGBOARD_LOCK_TIMEOUT_SEC={raw_timeout!r}")

        if not updates:
            return config
        return config.model_copy(update=updates)

    @staticmethod
    def _env_int(name: str) -> int | None:
        raw = os.getenv(name, "").strip()
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid {name}={raw!r}")
            return None

    @staticmethod
    def _env_bool(name: str) -> bool | None:
        raw = os.getenv(name, "").strip().lower()
        if not raw:
            return None
        if raw in _TRUE_VALUES:
            return True
        if raw in _FALSE_VALUES:
            return False
        logger.warning(f"Ignoring invalid {name}={raw!r}")
        return None

    def _default_config(self) -> TagBoardConfig:
        """Create default configuration."""
        cpu_count = os.cpu_count() or 4
        return TagBoardConfig(max_workers=max(1, min(8, cpu_count)))


class ConfigValidator:
    """
    Validates configuration values.

    Ensures configuration is within acceptable ranges and formats.
    """

    @staticmethod
    def validate_config(config: TagBoardConfig) -> list[str]:
        """
        Validate tag board configuration.

        Args:
            config: Config to validate

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if config.max_workers < 1:
            errors.append("max_workers must be at least 1")

        if config.parallel_threshold < 0:
            errors.append("parallel_threshold cannot be negative")

        if config.lock_timeout_sec <= 0:
            errors.append("lock_timeout_sec must be positive")

        if config.default_tags_per_page < 1:
            errors.append("default_tags_per_page must be at least 1")

        if config.default_stocks_per_page < 1:
            errors.append("default_stocks_per_page must be at least 1")

        for idx, origin in enumerate(config.cors_origins):
            if not origin.startswith(("http://", "https://")):
                errors.append(f"cors_origins[{idx}]: must start with http:// or https://")

        return errors


def create_config_manager(config_path: str | None = None) -> ConfigManager:
    """
    Factory function to create ConfigManager.

    Args:
        config_path: Optional path to config file

    Returns:
        ConfigManager instance
    """
    path = Path(config_path) if config_path else None
    return ConfigManager(config_path=path)
