"""
Environment variable settings for WinRM remoting.
"""
import os
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator
from dotenv import load_dotenv
import logging

logger = logging.getLogger(__name__)

# Load environment variables from .env file if it exists
load_dotenv()

WINRM_TRANSPORTS = ('ntlm', 'kerberos', 'basic', 'credssp', 'certificate', 'plaintext', 'ssl')


class EnvConfig(BaseModel):
    """Base class for environment variable configurations."""

    model_config = ConfigDict(extra='forbid', validate_assignment=True)

    @classmethod
    def from_env(cls, prefix: str = '', **overrides) -> 'EnvConfig':
        """Create an instance from environment variables with the given prefix.

        Keyword overrides that are not ``None`` win over the environment.
        """
        prefix = prefix.upper()
        if prefix and not prefix.endswith('_'):
            prefix += '_'

        values = {}
        for name in cls.model_fields:
            env_name = f"{prefix}{name.upper()}"
            if env_name in os.environ:
                values[name] = os.environ[env_name]
        values.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**values)


class RemotingSettings(EnvConfig):
    """WinRM connection settings."""
    username: Optional[str] = None
    password: Optional[str] = None
    transport: str = 'ntlm'
    port: Optional[int] = None
    use_ssl: bool = False
    server_cert_validation: str = 'validate'

    @field_validator('transport')
    @classmethod
    def validate_transport(cls, v: str) -> str:
        """Validate that the transport is one pywinrm understands."""
        v = v.lower()
        if v not in WINRM_TRANSPORTS:
            raise ValueError(f"Unsupported WinRM transport '{v}', expected one of {', '.join(WINRM_TRANSPORTS)}")
        return v

    @field_validator('server_cert_validation')
    @classmethod
    def validate_cert_validation(cls, v: str) -> str:
        v = v.lower()
        if v not in ('validate', 'ignore'):
            raise ValueError("server_cert_validation must be 'validate' or 'ignore'")
        return v

    @property
    def has_credential(self) -> bool:
        return bool(self.username)

    def endpoint(self, computer_name: str) -> str:
        """Get the WS-Management endpoint URL for ``computer_name``."""
        scheme = 'https' if self.use_ssl else 'http'
        port = self.port or (5986 if self.use_ssl else 5985)
        return f"{scheme}://{computer_name}:{port}/wsman"


def settings_from_config(config, **overrides) -> RemotingSettings:
    """Build remoting settings from the ``remoting`` config section, the
    ``WECSUBS_*`` environment variables and explicit overrides, in that order
    of increasing precedence."""
    values = {
        'transport': config.get('remoting.transport', 'ntlm'),
        'port': config.get('remoting.port'),
        'use_ssl': config.get('remoting.use_ssl', False),
        'server_cert_validation': config.get('remoting.server_cert_validation', 'validate'),
    }
    env_settings = RemotingSettings.from_env('WECSUBS')
    for name in env_settings.model_fields_set:
        values[name] = getattr(env_settings, name)
    values.update({k: v for k, v in overrides.items() if v is not None})
    return RemotingSettings(**values)
