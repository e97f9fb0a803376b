"""
Configuration management for wecsubs.
Handles loading settings from environment variables and YAML config files.
"""
import os
from typing import Any, Dict, Optional
import yaml
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_MISSING = object()


class Config:
    """Configuration loaded from environment variables and an optional YAML file."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration.

        Args:
            config_path: Optional path to a YAML config file.
        """
        self._config: Dict[str, Any] = {}
        self._config_path = config_path or os.getenv('WECSUBS_CONFIG', 'config/wecsubs.yaml')
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file and environment variables."""
        self._config = {
            'wecutil': {
                'path': os.getenv('WECSUBS_WECUTIL', 'wecutil.exe'),
                'service_name': os.getenv('WECSUBS_SERVICE_NAME', 'wecsvc'),
                # "saved but could not be activated"
                'benign_error_codes': ['0x3ae8'],
            },
            'remoting': {
                'transport': os.getenv('WECSUBS_TRANSPORT', 'ntlm'),
                'port': int(os.environ['WECSUBS_PORT']) if 'WECSUBS_PORT' in os.environ else None,
                'use_ssl': self._str_to_bool(os.getenv('WECSUBS_USE_SSL', 'False')),
                'server_cert_validation': os.getenv('WECSUBS_SERVER_CERT_VALIDATION', 'validate'),
            },
            'security': {
                'access_right': os.getenv('WECSUBS_ACCESS_RIGHT', 'GR'),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE', ''),
                'format': os.getenv('LOG_FORMAT', DEFAULT_LOG_FORMAT),
            },
        }

        if self._config_path and os.path.exists(self._config_path):
            with open(self._config_path, 'r') as f:
                yaml_config = yaml.safe_load(f) or {}
                self._deep_update(self._config, yaml_config)

    def _deep_update(self, original: Dict, update: Dict) -> None:
        """Recursively update a dictionary."""
        for key, value in update.items():
            if key in original and isinstance(original[key], dict) and isinstance(value, dict):
                self._deep_update(original[key], value)
            else:
                original[key] = value

    @staticmethod
    def _str_to_bool(value: str) -> bool:
        """Convert a string to a boolean."""
        return value.lower() in ('true', '1', 't', 'y', 'yes')

    def _lookup(self, key: str) -> Any:
        value = self._config
        for k in key.split('.'):
            if not isinstance(value, dict) or k not in value:
                return _MISSING
            value = value[k]
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dot notation."""
        value = self._lookup(key)
        return default if value is _MISSING else value

    def __getitem__(self, key: str) -> Any:
        """Get a configuration value using bracket notation."""
        value = self._lookup(key)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __contains__(self, key: str) -> bool:
        """Check if a configuration key exists."""
        return self._lookup(key) is not _MISSING


_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def load_config(config_path: Optional[str] = None) -> Config:
    """Replace the global configuration with one loaded from ``config_path``."""
    global _config
    _config = Config(config_path)
    return _config
