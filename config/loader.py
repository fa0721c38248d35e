"""
Configuration loading and management.

Reads a vault's ``.occurrences/config.json``, applies environment variable
overrides and falls back to defaults when the file is missing or invalid.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

from core.models.config import GlobalSettings, VaultConfig
from .defaults import CONFIG_DIR_NAME, CONFIG_FILE_NAME, ENV_VAR_MAPPING, get_default_value, get_default_vault_config

logger = logging.getLogger(__name__)


class ConfigurationLoader:
    """Load and manage vault configurations"""

    def __init__(self, global_settings: Optional[GlobalSettings] = None):
        self.global_settings = global_settings or GlobalSettings()
        self.config_cache: Dict[str, VaultConfig] = {}

    def resolve_vault_path(self, vault_path: Optional[Union[str, Path]] = None) -> Path:
        """Explicit path, else OCCURRENCES_VAULT_PATH, else the working directory"""
        if vault_path is not None:
            return Path(vault_path).resolve()
        if self.global_settings.vault_path is not None:
            return Path(self.global_settings.vault_path).resolve()
        return Path.cwd().resolve()

    def load_vault_config(self, vault_path: Optional[Union[str, Path]] = None) -> VaultConfig:
        """Load the vault's configuration, or defaults if it has none"""
        vault_path = self.resolve_vault_path(vault_path)

        # Check cache first
        cache_key = str(vault_path)
        if cache_key in self.config_cache:
            return self.config_cache[cache_key]

        config_file = vault_path / CONFIG_DIR_NAME / CONFIG_FILE_NAME

        if config_file.exists():
            config = self._load_existing_config(config_file, vault_path)
        else:
            config = self._create_vault_config(vault_path)

        self.config_cache[cache_key] = config
        return config

    def _load_existing_config(self, config_file: Path, vault_path: Path) -> VaultConfig:
        """Load existing configuration file with validation"""
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError("configuration must be a JSON object")

            # Merge over defaults so partial files are valid
            merged = get_default_vault_config()
            merged['store'].update(data.pop('store', None) or {})
            merged.update(data)

            merged = self._apply_env_overrides(merged)

            # The vault's actual location wins over a stored path
            merged['path'] = vault_path
            return VaultConfig(**merged)

        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Failed to load config from {config_file}: {e}")
            return self._create_vault_config(vault_path)

    def _create_vault_config(self, vault_path: Path) -> VaultConfig:
        """Create configuration from defaults and the environment"""
        config_data = self._apply_env_overrides(get_default_vault_config())
        config_data['path'] = vault_path
        return VaultConfig(**config_data)

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration"""
        for env_var, config_path in ENV_VAR_MAPPING.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(config_data, config_path, env_value)

        return config_data

    def _set_nested_value(self, data: Dict[str, Any], path: str, value: str) -> None:
        """Set nested dictionary value using dot notation path"""
        keys = path.split('.')
        current = data

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = self._convert_env_value(value, get_default_value(path))

    def _convert_env_value(self, value: str, default: Any = None) -> Any:
        """Convert environment variable string to the type of its default"""
        # Boolean conversion
        if isinstance(default, bool):
            return value.strip().lower() in ('true', 'yes', '1', 'on')

        # Numeric conversion
        if isinstance(default, int):
            try:
                return int(value)
            except ValueError:
                logger.warning(f"Ignoring non-integer override {value!r}, using {default}")
                return default

        return value

    def save_vault_config(self, config: VaultConfig) -> bool:
        """Save vault configuration to disk"""
        try:
            config_dir = config.get_config_dir()
            config_file = config.get_config_file()

            config_dir.mkdir(parents=True, exist_ok=True)

            config_data = config.to_dict()
            # Stored configs stay portable when the vault moves
            config_data.pop('path', None)

            with open(config_file, 'w', encoding='utf-8') as f:
                json.dump(config_data, f, indent=2, ensure_ascii=False)

            logger.info(f"Saved configuration to {config_file}")

            self.config_cache[str(config.path)] = config
            return True

        except Exception as e:
            logger.error(f"Failed to save config for {config.path}: {e}")
            return False

    def setup_vault(self, vault_path: Union[str, Path], overwrite: bool = False) -> VaultConfig:
        """Write a config file and create the occurrences folder"""
        vault_path = self.resolve_vault_path(vault_path)
        if not vault_path.is_dir():
            raise ValueError(f"Vault path does not exist: {vault_path}")

        config = self.load_vault_config(vault_path)

        if config.get_config_file().exists() and not overwrite:
            logger.info(f"Vault already configured at {vault_path}")
        else:
            self.save_vault_config(config)

        (vault_path / config.store.folder).mkdir(parents=True, exist_ok=True)
        return config

    def clear_cache(self) -> None:
        """Clear configuration cache"""
        self.config_cache.clear()
        logger.info("Configuration cache cleared")
