"""Configuration package."""

from infrastructure.config.loader import SettingsLoader, BatchSettings

__all__ = ["SettingsLoader", "BatchSettings"]
