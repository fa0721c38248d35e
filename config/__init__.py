"""
Configuration management for occurrence-store

Handles loading, environment overrides and saving of vault configuration.
"""

from .loader import ConfigurationLoader
from .defaults import DEFAULT_SETTINGS, ENV_VAR_MAPPING

__all__ = ["ConfigurationLoader", "DEFAULT_SETTINGS", "ENV_VAR_MAPPING"]
