"""Azure authentication module.

Builds an Azure Identity credential from one of two sources, both read from
the environment before any work begins:

1. AZURE_AUTH_LOCATION - path to an SDK auth file (JSON) containing
   clientId, clientSecret, subscriptionId and tenantId
2. AZURE_SUBSCRIPTION_ID, AZURE_TENANT_ID, AZURE_CLIENT_ID and
   AZURE_CLIENT_SECRET

Security:
- The client secret is never logged or included in repr()
- Token acquisition is delegated to azure-identity
"""

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from azure.identity import ClientSecretCredential

from azvm.errors import AuthenticationError, MissingEnvironmentError
from azvm.log_sanitizer import LogSanitizer

logger = logging.getLogger(__name__)

AUTH_FILE_VAR = "AZURE_AUTH_LOCATION"

# Checked in this order so the first missing one is reported
REQUIRED_ENV_VARS = (
    "AZURE_SUBSCRIPTION_ID",
    "AZURE_TENANT_ID",
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
)

# SDK auth file key -> AuthSettings field
AUTH_FILE_KEYS = {
    "subscriptionId": "subscription_id",
    "tenantId": "tenant_id",
    "clientId": "client_id",
    "clientSecret": "client_secret",
}


@dataclass(frozen=True)
class AuthSettings:
    """Service principal settings (CRITICAL: never log client_secret)."""

    subscription_id: str
    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)
    source: str = "environment"
    authority: str | None = None
    resource_manager_endpoint: str | None = None


def get_env_var_or_fail(var_name: str, environ: Mapping[str, str] | None = None) -> str:
    """Return an environment variable's value.

    Args:
        var_name: Variable name
        environ: Environment mapping (defaults to os.environ)

    Raises:
        MissingEnvironmentError: If the variable is unset or empty
    """
    env = os.environ if environ is None else environ
    value = env.get(var_name, "")
    if not value:
        raise MissingEnvironmentError(var_name)
    return value


def load_auth_file(path: str | Path) -> AuthSettings:
    """Read service principal settings from an SDK auth file.

    Args:
        path: Path to the JSON auth file

    Returns:
        AuthSettings

    Raises:
        AuthenticationError: If the file is unreadable or incomplete
    """
    auth_path = Path(path).expanduser()
    try:
        with open(auth_path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise AuthenticationError(f"Failed to read auth file {auth_path}: {e}") from e

    missing = [key for key in AUTH_FILE_KEYS if not data.get(key)]
    if missing:
        raise AuthenticationError(
            f"Auth file {auth_path} is missing required keys: {', '.join(missing)}"
        )

    logger.debug(f"Loaded service principal settings from auth file: {auth_path}")
    return AuthSettings(
        **{attr: data[key] for key, attr in AUTH_FILE_KEYS.items()},
        source=str(auth_path),
        authority=data.get("activeDirectoryEndpointUrl"),
        resource_manager_endpoint=data.get("resourceManagerEndpointUrl"),
    )


def load_auth_settings(environ: Mapping[str, str] | None = None) -> AuthSettings:
    """Resolve service principal settings from the environment.

    The auth file wins when AZURE_AUTH_LOCATION is set.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        AuthSettings

    Raises:
        MissingEnvironmentError: If a required variable is missing
        AuthenticationError: If the auth file is invalid
    """
    env = os.environ if environ is None else environ

    auth_file = env.get(AUTH_FILE_VAR)
    if auth_file:
        return load_auth_file(auth_file)

    values = [get_env_var_or_fail(var, env) for var in REQUIRED_ENV_VARS]
    subscription_id, tenant_id, client_id, client_secret = values
    logger.debug("Using service principal settings from environment variables")
    return AuthSettings(
        subscription_id=subscription_id,
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret=client_secret,
    )


def create_credential(settings: AuthSettings) -> ClientSecretCredential:
    """Create an Azure Identity credential for a service principal.

    Args:
        settings: Service principal settings

    Returns:
        ClientSecretCredential

    Raises:
        AuthenticationError: If azure-identity rejects the settings
    """
    kwargs = {}
    if settings.authority:
        kwargs["authority"] = settings.authority

    try:
        return ClientSecretCredential(
            tenant_id=settings.tenant_id,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            **kwargs,
        )
    except ValueError as e:
        safe_error = LogSanitizer.sanitize(str(e), known_secrets=[settings.client_secret])
        raise AuthenticationError(
            f"Failed to create service principal credential: {safe_error}"
        ) from e


__all__ = [
    "AuthSettings",
    "create_credential",
    "get_env_var_or_fail",
    "load_auth_file",
    "load_auth_settings",
]
