"""
Default configuration values for occurrence-store.

Centralized defaults that can be overridden by environment variables or the
vault's config file.
"""

from copy import deepcopy
from typing import Any, Dict

from core.models.config import CONFIG_DIR_NAME, CONFIG_FILE_NAME
from core.models.naming import DEFAULT_DATE_FORMAT

# Global default settings
DEFAULT_SETTINGS = {
    # Vault behaviour
    "vault": {
        "trash_folder": ".trash",
        "watch": True
    },

    # Occurrence conventions
    "store": {
        "folder": "Occurrences",
        "extension": ".md",
        "date_format": DEFAULT_DATE_FORMAT,
        "default_title": "Untitled Occurrence",
        "default_limit": 100,
        "cache_poll_attempts": 10,
        "cache_poll_delay_ms": 50
    }
}

# Environment variable mappings (dot paths into a vault config dict)
ENV_VAR_MAPPING = {
    'OCCURRENCES_FOLDER': 'store.folder',
    'OCCURRENCES_EXTENSION': 'store.extension',
    'OCCURRENCES_DATE_FORMAT': 'store.date_format',
    'OCCURRENCES_DEFAULT_TITLE': 'store.default_title',
    'OCCURRENCES_DEFAULT_LIMIT': 'store.default_limit',
    'OCCURRENCES_CACHE_POLL_ATTEMPTS': 'store.cache_poll_attempts',
    'OCCURRENCES_CACHE_POLL_DELAY_MS': 'store.cache_poll_delay_ms',
    'OCCURRENCES_TRASH_FOLDER': 'trash_folder',
    'OCCURRENCES_WATCH': 'watch'
}


def get_default_vault_config() -> Dict[str, Any]:
    """Get default vault configuration (without the vault path)"""
    return {
        'trash_folder': DEFAULT_SETTINGS['vault']['trash_folder'],
        'watch': DEFAULT_SETTINGS['vault']['watch'],
        'store': deepcopy(DEFAULT_SETTINGS['store'])
    }


def get_default_value(path: str) -> Any:
    """Default for a dot path into a vault config dict, or None"""
    current: Any = get_default_vault_config()
    for key in path.split('.'):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current
