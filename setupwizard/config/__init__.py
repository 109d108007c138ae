"""Settings handling for the setup wizard."""

from .models import WizardSettings
from .loader import SettingsLoader, load_settings

__all__ = [
    "WizardSettings",
    "SettingsLoader",
    "load_settings",
]
