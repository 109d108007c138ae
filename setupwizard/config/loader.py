"""
Settings loader for YAML files.

Handles loading the settings file and applying environment overrides.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .models import WizardSettings


ENV_OVERRIDES = {
    "SETUPWIZARD_STATE_DIR": "state_dir",
    "SETUPWIZARD_API_URL": "api_url",
    "SETUPWIZARD_LOG_LEVEL": "log_level",
}

DEFAULT_CONFIG_FILES = ["setupwizard.yaml", "setupwizard.yml"]


class SettingsLoader:
    """
    Loads and validates wizard settings.

    Settings come from an optional YAML file; environment variables
    listed in ENV_OVERRIDES win over file values.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the settings loader.

        Args:
            config_path: Path to a settings file. When omitted, the current
                directory is searched for DEFAULT_CONFIG_FILES.
        """
        self.config_path = Path(config_path) if config_path else None

    def load(self) -> WizardSettings:
        """
        Load settings from file and environment.

        Returns:
            Validated WizardSettings
        """
        data: Dict[str, Any] = {}

        path = self._resolve_path()
        if path is not None:
            data.update(self._read_yaml(path))

        for env_name, field_name in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                data[field_name] = value

        try:
            return WizardSettings(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid wizard settings: {e}")

    def _resolve_path(self) -> Optional[Path]:
        if self.config_path is not None:
            if not self.config_path.is_file():
                raise ConfigError(f"Settings file does not exist: {self.config_path}")
            return self.config_path

        for filename in DEFAULT_CONFIG_FILES:
            candidate = Path.cwd() / filename
            if candidate.is_file():
                return candidate
        return None

    def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse a YAML file."""
        try:
            with open(file_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {file_path}: {e}")
        except IOError as e:
            raise ConfigError(f"Cannot read {file_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Settings file must contain a mapping: {file_path}")
        return data


def load_settings(config_path: Optional[Union[str, Path]] = None) -> WizardSettings:
    """Convenience function to load settings."""
    return SettingsLoader(config_path).load()
