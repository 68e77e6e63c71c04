"""Configuration management for the USB backup engine."""

import copy
import os
import yaml
from typing import Dict, List, Any, Optional
from .config_validator import ConfigValidator


DEFAULT_CONFIG: Dict[str, Any] = {
    'backup': {
        'source': '/mnt/shared',
        'label': 'USB_BACKUP',
        'allowed_mount_roots': ['/media/', '/mnt/', '/run/media/'],
        'rsync_path': 'rsync',
    },
    'history': {
        'limit': 50,
    },
    'logging': {
        'level': 'INFO',
        'file': None,
    },
}


class ConfigManager:
    """Manages configuration loading and validation for the backup engine."""

    DEFAULT_CONFIG_LOCATIONS = [
        "config.yaml",
        "config.yml",
        os.path.expanduser("~/.udisk-backup/config.yaml"),
        "/etc/udisk-backup/config.yaml",
    ]

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional path to config file. If not provided,
                        will search in default locations and fall back to
                        the built-in defaults.
        """
        self.config_path = config_path
        self.config_file: Optional[str] = None
        self.config_data: Dict[str, Any] = {}
        self.validator = ConfigValidator()

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file.

        Returns:
            Dictionary containing configuration data.

        Raises:
            FileNotFoundError: If an explicit config file does not exist.
            ValueError: If the config file is invalid.
        """
        self.config_file = self._find_config_file()

        if self.config_file is None:
            self.config_data = {}
        else:
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    self.config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in config file {self.config_file}: {e}")
            except OSError as e:
                raise ValueError(f"Error reading config file {self.config_file}: {e}")

        # Validate before defaults so type errors point at the user's file
        self.validator.validate(self.config_data)

        self._set_defaults()

        return self.config_data

    def _find_config_file(self) -> Optional[str]:
        """Find configuration file in default locations.

        Returns:
            Path to configuration file, or None when no file exists.

        Raises:
            FileNotFoundError: If the explicit config path does not exist.
        """
        if self.config_path:
            if os.path.exists(self.config_path):
                return self.config_path
            else:
                raise FileNotFoundError(f"Config file not found: {self.config_path}")

        for location in self.DEFAULT_CONFIG_LOCATIONS:
            if os.path.exists(location):
                return location

        return None

    def _set_defaults(self):
        """Set default values for optional configuration parameters."""
        for section, section_defaults in DEFAULT_CONFIG.items():
            if self.config_data.get(section) is None:
                self.config_data[section] = {}
            for key, value in section_defaults.items():
                if key not in self.config_data[section]:
                    self.config_data[section][key] = copy.deepcopy(value)

    def get_backup_config(self) -> Dict[str, Any]:
        """Get backup configuration.

        Returns:
            Backup configuration dictionary.
        """
        return self.config_data.get('backup', {})

    def get_allowed_mount_roots(self) -> List[str]:
        return list(self.get_backup_config().get('allowed_mount_roots', []))

    def get_history_config(self) -> Dict[str, Any]:
        return self.config_data.get('history', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration.

        Returns:
            Logging configuration dictionary.
        """
        return self.config_data.get('logging', {})
