"""Configuration validation for the USB backup engine."""

from typing import Dict, List, Any


class ConfigValidator:
    """Validates backup engine configuration."""

    KNOWN_SECTIONS = ['backup', 'history', 'logging']
    LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

    def validate(self, config: Dict[str, Any]) -> None:
        """Validate configuration data.

        Missing sections and keys are allowed; defaults fill them in.

        Args:
            config: Configuration dictionary to validate.

        Raises:
            ValueError: If configuration is invalid.
        """
        self._validate_structure(config)
        self._validate_backup_config(config.get('backup') or {})
        self._validate_history_config(config.get('history') or {})
        self._validate_logging_config(config.get('logging') or {})

    def _validate_structure(self, config: Dict[str, Any]) -> None:
        """Validate basic configuration structure.

        Args:
            config: Configuration dictionary.

        Raises:
            ValueError: If the document or a section is not a mapping.
        """
        if not isinstance(config, dict):
            raise ValueError("Configuration must be a mapping")

        for section in self.KNOWN_SECTIONS:
            value = config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"Configuration section '{section}' must be a mapping")

    def _validate_backup_config(self, backup: Dict[str, Any]) -> None:
        """Validate backup configuration.

        Args:
            backup: Backup configuration dictionary.

        Raises:
            ValueError: If backup configuration is invalid.
        """
        if 'source' in backup:
            source = backup['source']
            if not isinstance(source, str) or not source.strip():
                raise ValueError("Backup source cannot be empty")
            if not source.startswith('/'):
                raise ValueError(f"Backup source must be an absolute path: {source}")

        if 'label' in backup:
            label = backup['label']
            if not isinstance(label, str) or not label.strip():
                raise ValueError("Backup label cannot be empty")

        if 'allowed_mount_roots' in backup:
            self._validate_mount_roots(backup['allowed_mount_roots'])

        if 'rsync_path' in backup:
            rsync_path = backup['rsync_path']
            if not isinstance(rsync_path, str) or not rsync_path.strip():
                raise ValueError("rsync_path cannot be empty")

    def _validate_mount_roots(self, roots: List[Any]) -> None:
        if not isinstance(roots, list) or not roots:
            raise ValueError("allowed_mount_roots must be a non-empty list")

        for i, root in enumerate(roots):
            if not isinstance(root, str) or not root.startswith('/'):
                raise ValueError(f"allowed_mount_roots entry {i} must be an absolute path: {root}")

    def _validate_history_config(self, history: Dict[str, Any]) -> None:
        if 'limit' in history:
            limit = history['limit']
            if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
                raise ValueError(f"History limit must be a positive integer: {limit}")

    def _validate_logging_config(self, logging_config: Dict[str, Any]) -> None:
        level = logging_config.get('level')
        if level is not None and str(level).upper() not in self.LOG_LEVELS:
            raise ValueError(f"Invalid logging level: {level}")
