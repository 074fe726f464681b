"""Configuration management module.

Settings for the sample (resource group, region, storage account, network
layout, VM size and admin account) come from, in order of precedence:

1. Command-line options
2. Environment variables (AZVM_*)
3. TOML config file (~/.azvm/config.toml or --config)
4. Built-in defaults

Security:
- Config file permissions: 0600 (owner read/write only)
- The admin password is never written to or read from the config file
- Resource names validated before any Azure call
"""

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

import tomli
import tomlkit

from azvm.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_PASSWORD = "Pa$$w0rd1975"  # noqa: S105 - sample default, override via env

# Environment variable -> SampleConfig field
ENV_OVERRIDES = {
    "AZVM_RESOURCE_GROUP": "resource_group",
    "AZVM_LOCATION": "location",
    "AZVM_STORAGE_ACCOUNT": "storage_account",
    "AZVM_VM_SIZE": "vm_size",
    "AZVM_ADMIN_USERNAME": "admin_username",
    "AZVM_ADMIN_PASSWORD": "admin_password",
}

SECRET_FIELDS = frozenset({"admin_password"})


@dataclass
class SampleConfig:
    """Settings shared by every step of the sample."""

    resource_group: str = "your-azure-sample-group"
    location: str = "westus"
    storage_account: str = "pythonrocksonazure"
    storage_sku: str = "Standard_LRS"
    vhd_container: str = "pythoncontainer"
    vnet_name: str = "vNet"
    vnet_address_prefix: str = "10.0.0.0/16"
    subnet_name: str = "subnet"
    subnet_address_prefix: str = "10.0.0.0/24"
    vm_size: str = "Standard_DS1"
    admin_username: str = "notadmin"
    admin_password: str = DEFAULT_ADMIN_PASSWORD

    def vhd_uri(self, blob_name: str) -> str:
        """Build the blob URI backing a VM disk.

        Args:
            blob_name: Blob name without the .vhd suffix

        Returns:
            https URI inside the sample storage account
        """
        return (
            f"https://{self.storage_account}.blob.core.windows.net/"
            f"{self.vhd_container}/{blob_name}.vhd"
        )

    def to_dict(self, include_secrets: bool = False) -> dict[str, Any]:
        """Convert to dictionary, excluding secrets unless asked."""
        data = asdict(self)
        if not include_secrets:
            for name in SECRET_FIELDS:
                data.pop(name, None)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SampleConfig":
        """Create from dictionary, ignoring unknown keys.

        Secrets are never read from a file; admin_password comes only from
        AZVM_ADMIN_PASSWORD or the default.
        """
        secrets = sorted(SECRET_FIELDS & set(data))
        if secrets:
            logger.warning(
                f"Ignoring secret config keys, use the environment: {', '.join(secrets)}"
            )
        known = {f.name for f in fields(cls)} - SECRET_FIELDS
        unknown = sorted(set(data) - known - SECRET_FIELDS)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**{k: str(v) for k, v in data.items() if k in known})


class ConfigManager:
    """Load, resolve and save the sample configuration.

    Configuration is stored at ~/.azvm/config.toml with secure permissions.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".azvm"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    STORAGE_NAME_PATTERN = re.compile(r"^[a-z0-9]{3,24}$")
    RESOURCE_GROUP_PATTERN = re.compile(r"^[\w\-\.()]{1,90}$")

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        """Get configuration file path.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            Path to config file

        Raises:
            ConfigError: If a custom path was given and does not exist
        """
        if custom_path:
            path = Path(custom_path).expanduser().resolve()
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            return path

        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> SampleConfig:
        """Load configuration from file.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            SampleConfig object (defaults if no file exists)

        Raises:
            ConfigError: If loading fails
        """
        config_path = cls.get_config_path(custom_path)

        if not config_path.exists():
            logger.debug("Config file not found, using defaults")
            return SampleConfig()

        try:
            mode = config_path.stat().st_mode & 0o777
            if mode & 0o077:
                logger.warning(
                    f"Config file has insecure permissions: {oct(mode)}. Fixing to 0600..."
                )
                os.chmod(config_path, 0o600)

            with open(config_path, "rb") as f:
                data = tomli.load(f)

            logger.debug(f"Loaded config from: {config_path}")
            return SampleConfig.from_dict(data)

        except (OSError, tomli.TOMLDecodeError, TypeError) as e:
            raise ConfigError(f"Failed to load config: {e}") from e

    @classmethod
    def save_config(cls, config: SampleConfig, custom_path: str | None = None) -> Path:
        """Save configuration to file, preserving comments in an existing file.

        Args:
            config: Configuration to save
            custom_path: Custom config file path (optional)

        Returns:
            Path the configuration was written to

        Raises:
            ConfigError: If saving fails
        """
        config_path = (
            Path(custom_path).expanduser().resolve() if custom_path else cls.DEFAULT_CONFIG_FILE
        )
        temp_path = config_path.with_suffix(".tmp")

        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)

            if config_path.exists():
                with open(config_path) as f:
                    doc = tomlkit.load(f)
            else:
                doc = tomlkit.document()
                doc.add(tomlkit.comment("azvm sample configuration"))

            for key, value in config.to_dict().items():
                doc[key] = value

            with open(temp_path, "w") as f:
                tomlkit.dump(doc, f)

            os.chmod(temp_path, 0o600)
            temp_path.replace(config_path)

            logger.debug(f"Saved config to: {config_path}")
            return config_path

        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config: {e}") from e

    @classmethod
    def apply_environment(
        cls, config: SampleConfig, environ: Mapping[str, str] | None = None
    ) -> SampleConfig:
        """Overlay AZVM_* environment variables on a configuration.

        Args:
            config: Base configuration
            environ: Environment mapping (defaults to os.environ)

        Returns:
            New SampleConfig with overrides applied
        """
        env = os.environ if environ is None else environ
        overrides = {field: env[var] for var, field in ENV_OVERRIDES.items() if env.get(var)}
        if overrides:
            logger.debug(f"Environment overrides: {', '.join(sorted(overrides))}")
        return replace(config, **overrides)

    @classmethod
    def resolve(
        cls,
        custom_path: str | None = None,
        environ: Mapping[str, str] | None = None,
        **cli_values: str | None,
    ) -> SampleConfig:
        """Build the effective configuration.

        Args:
            custom_path: Custom config file path (optional)
            environ: Environment mapping (defaults to os.environ)
            **cli_values: Values given on the command line; None means unset

        Returns:
            Validated SampleConfig

        Raises:
            ConfigError: If loading fails or a resource name is invalid
        """
        config = cls.apply_environment(cls.load_config(custom_path), environ)
        cli_overrides = {k: v for k, v in cli_values.items() if v is not None}
        if cli_overrides:
            config = replace(config, **cli_overrides)
        cls.validate(config)
        return config

    @classmethod
    def validate(cls, config: SampleConfig) -> None:
        """Validate resource names.

        Raises:
            ConfigError: If a name would be rejected by Azure
        """
        if not cls.STORAGE_NAME_PATTERN.match(config.storage_account):
            raise ConfigError(
                f"Invalid storage account name: {config.storage_account}. "
                "Must be 3-24 characters, lowercase letters and numbers only."
            )
        if not cls.RESOURCE_GROUP_PATTERN.match(config.resource_group):
            raise ConfigError(
                f"Invalid resource group name: {config.resource_group}. "
                "Must be 1-90 characters, alphanumeric, hyphens, dots, or parentheses."
            )
        if not config.location:
            raise ConfigError("Location cannot be empty")


__all__ = ["ConfigManager", "SampleConfig"]
