"""
Configuration Service Module

Manages application configuration read/write.
"""

from typing import Any, Dict, Optional
from pathlib import Path
import copy
import os
import sys
import yaml
import threading
import logging

logger = logging.getLogger(__name__)


class ConfigService:
    """
    Configuration Service

    Built-in defaults deep-merged with a YAML file. One instance is owned by
    the application container.

    Usage Example:
        config = ConfigService("config.yaml")

        # Get configuration
        volume = config.get("playback.default_volume", 1.0)

        # Set configuration
        config.set("playback.default_volume", 0.9)
        config.save()
    """

    def __init__(self, config_path: Optional[str] = None):
        self._config_path = Path(config_path) if config_path else self._get_user_config_path()
        self._config: Dict[str, Any] = {}
        self._lock = threading.Lock()

        self._load()

    @property
    def path(self) -> Path:
        return self._config_path

    @staticmethod
    def _get_user_config_path() -> Path:
        """Get user configuration file path (platform-specific)"""
        if sys.platform == "win32":
            base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        elif sys.platform == "darwin":
            base = Path.home() / "Library" / "Application Support"
        else:
            base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
        return base / "queue-player" / "config.yaml"

    def _load(self) -> None:
        """Load defaults, then merge the configuration file over them"""
        config = self._get_default_config()

        if self._config_path.exists():
            try:
                with open(self._config_path, 'r', encoding='utf-8') as f:
                    file_config = yaml.safe_load(f) or {}
                if isinstance(file_config, dict):
                    self._deep_merge(config, file_config)
                else:
                    logger.warning("Ignoring configuration file %s: top level is not a mapping", self._config_path)
            except Exception as e:
                logger.warning("Failed to load configuration: %s", e)

        with self._lock:
            self._config = config

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Deep merge dictionaries, override overwrites base"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration"""
        return {
            'audio': {
                'backend': 'pygame',
                'poll_interval_ms': 250,
            },
            'playback': {
                'default_volume': 1.0,
                'restart_threshold_seconds': 3.0,
                'seek_step_seconds': 5.0,
                'shuffle_avoid_current': False,
            },
            'library': {
                'default_artist': 'Local',
                'default_cover': '',
                'supported_formats': ['mp3', 'flac', 'wav', 'ogg', 'm4a', 'aac', 'opus'],
            },
            'logging': {
                'level': 'INFO',
            },
        }

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Supports dot-separated nested keys, e.g., "playback.default_volume".

        Args:
            key: Configuration key
            default: Default value

        Returns:
            Configuration value or the default value.
        """
        with self._lock:
            value = self._config
            try:
                for k in key.split('.'):
                    value = value[k]
                return value
            except (KeyError, TypeError):
                return default

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key (dot-separated)
            value: Configuration value
        """
        with self._lock:
            keys = key.split('.')
            config = self._config

            # Navigate to the parent node
            for k in keys[:-1]:
                if not isinstance(config.get(k), dict):
                    config[k] = {}
                config = config[k]

            config[keys[-1]] = value

    def get_all(self) -> Dict[str, Any]:
        """Get all configurations."""
        with self._lock:
            return copy.deepcopy(self._config)

    def save(self) -> bool:
        """
        Save configuration to the configuration file.

        Returns:
            bool: True if saving was successful.
        """
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)

            with self._lock:
                with open(self._config_path, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(self._config, f, allow_unicode=True, default_flow_style=False)
            logger.debug("Configuration saved to: %s", self._config_path)
            return True
        except Exception as e:
            logger.error("Failed to save configuration: %s", e)
            return False

    def reload(self) -> bool:
        """
        Reload configuration

        Returns:
            bool: Whether loading was successful
        """
        try:
            self._load()
            return True
        except Exception as e:
            logger.error("Failed to reload configuration: %s", e)
            return False

    def reset(self) -> None:
        """Reset to default configuration."""
        with self._lock:
            self._config = self._get_default_config()
