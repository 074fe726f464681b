"""Azure management client context.

AzureClients is built once from a credential and subscription and passed to
every component. Nothing in azvm keeps module-level client handles.
"""

import logging
from dataclasses import dataclass
from typing import Any

from azure.core.credentials import TokenCredential
from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.storage import StorageManagementClient

from azvm.azure_auth import AuthSettings, create_credential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AzureClients:
    """Management clients for one subscription."""

    subscription_id: str
    resources: ResourceManagementClient
    storage: StorageManagementClient
    network: NetworkManagementClient
    compute: ComputeManagementClient

    @classmethod
    def create(
        cls,
        credential: TokenCredential,
        subscription_id: str,
        resource_manager_endpoint: str | None = None,
    ) -> "AzureClients":
        """Create all management clients sharing one credential.

        Args:
            credential: Azure Identity credential
            subscription_id: Azure subscription ID
            resource_manager_endpoint: Non-public-cloud ARM endpoint (optional)

        Returns:
            AzureClients
        """
        kwargs: dict[str, Any] = {}
        if resource_manager_endpoint:
            endpoint = resource_manager_endpoint.rstrip("/")
            kwargs["base_url"] = endpoint
            kwargs["credential_scopes"] = [f"{endpoint}/.default"]

        logger.debug(f"Creating management clients for subscription {subscription_id}")
        return cls(
            subscription_id=subscription_id,
            resources=ResourceManagementClient(credential, subscription_id, **kwargs),
            storage=StorageManagementClient(credential, subscription_id, **kwargs),
            network=NetworkManagementClient(credential, subscription_id, **kwargs),
            compute=ComputeManagementClient(credential, subscription_id, **kwargs),
        )

    @classmethod
    def from_settings(cls, settings: AuthSettings) -> "AzureClients":
        """Create clients from service principal settings.

        Raises:
            AuthenticationError: If the credential cannot be built
        """
        credential = create_credential(settings)
        return cls.create(
            credential,
            settings.subscription_id,
            resource_manager_endpoint=settings.resource_manager_endpoint,
        )


__all__ = ["AzureClients"]
