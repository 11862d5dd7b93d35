"""Configuration management for pkm-data using YAML files."""

from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".pkm-data"

BACKENDS = ("local", "firestore")

DEFAULTS: dict[str, str] = {
    "backend": "local",
}

KNOWN_KEYS: dict[str, str] = {
    "backend": "Storage backend: 'local' or 'firestore'",
    "local.path": "JSON file the local store persists to (in-memory only when unset)",
    "firestore.project": "Google Cloud project of the Firestore database",
    "firestore.database": "Firestore database name (defaults to '(default)')",
    "firestore.uid": "User ID whose documents live under users/{uid}/...",
}


class Config:
    """Configuration manager using YAML file storage.

    Local config lives in ./.pkm-data/config.yaml, global config in
    ~/.pkm-data/config.yaml. Reads check local, then global, then DEFAULTS.
    """

    def __init__(
        self,
        use_global: bool = False,
        config_dir: Path | None = None,
        global_dir: Path | None = None,
    ) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, use global config only. If False, use local config with global fallback.
            config_dir: Custom directory to store config file (overrides use_global)
            global_dir: Custom directory of the global fallback config
        """
        self.global_dir = Path(global_dir) if global_dir is not None else Path.home() / CONFIG_DIR_NAME

        if config_dir is not None:
            self.config_dir = Path(config_dir)
            self.is_global = use_global
        elif use_global:
            self.config_dir = self.global_dir
            self.is_global = True
        else:
            self.config_dir = Path.cwd() / CONFIG_DIR_NAME
            self.is_global = False

        self.config_file = self.config_dir / "config.yaml"
        self._config: dict[str, Any] = self._read(self.config_file)

        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            global_file = self.global_dir / "config.yaml"
            if global_file.exists() and global_file != self.config_file:
                try:
                    self._global_config = self._read(global_file)
                except ValueError as e:
                    logger.warning("Failed to load global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        if not path.exists():
            logger.debug("Config file does not exist, initializing empty config", config_file=str(path))
            return {}

        try:
            with open(path, "r") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load config", config_file=str(path), error=str(e))
            raise ValueError(f"Failed to load config from {path}: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        logger.debug("Config loaded successfully", keys=list(config.keys()))
        return config

    def _save(self) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
            logger.debug("Config saved successfully")
        except OSError as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e

    def get(self, key: str, default: str | None = None) -> str | None:
        """Get a configuration value, falling back to global config and then DEFAULTS."""
        if key in self._config:
            logger.debug("Getting config value from local", key=key)
            return self._config[key]

        if not self.is_global and key in self._global_config:
            logger.debug("Getting config value from global", key=key)
            return self._global_config[key]

        if default is None and key in DEFAULTS:
            return DEFAULTS[key]

        logger.debug("Config value not found", key=key)
        return default

    def require(self, key: str) -> str:
        """Get a configuration value that must be set.

        Raises:
            ValueError: If the key has no value, with a hint on how to set it
        """
        value = self.get(key)
        if not value:
            raise ValueError(f"{key} not configured. Set it using:\n  pkm config set {key} <value>")
        return value

    def set(self, key: str, value: str) -> None:
        """Set a configuration value and save immediately."""
        if key not in KNOWN_KEYS:
            logger.warning("Setting unknown config key", key=key)
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        """Remove a configuration value."""
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, str]:
        """List all settings; local config is merged over global config."""
        if self.is_global:
            return self._config.copy()
        merged = self._global_config.copy()
        merged.update(self._config)
        logger.debug("Listing merged config values", count=len(merged))
        return merged


def get_config(use_global: bool = False) -> Config:
    """Get a configuration instance."""
    return Config(use_global=use_global)
