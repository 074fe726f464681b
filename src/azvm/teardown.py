"""Resource teardown.

VMs are deleted concurrently, then the resource group is deleted; Azure
cascades the group deletion to every resource created inside it.

A best-effort group deletion is also available for exit-time cleanup. It
never raises, so it can run from a finally block regardless of how the
sample ended.
"""

import logging
from collections.abc import Iterable

from azure.core.exceptions import AzureError, ResourceNotFoundError

from azvm.clients import AzureClients
from azvm.concurrency import raise_first_error, run_concurrently
from azvm.config_manager import SampleConfig
from azvm.errors import TeardownError, azure_call
from azvm.log_sanitizer import LogSanitizer
from azvm.progress import ProgressReporter

logger = logging.getLogger(__name__)


class ResourceCleaner:
    """Delete the sample's VMs and resource group."""

    def __init__(self, clients: AzureClients, config: SampleConfig, reporter: ProgressReporter):
        self.clients = clients
        self.config = config
        self.reporter = reporter

    def delete_vm(self, vm_name: str) -> None:
        """Delete a single VM.

        Raises:
            TeardownError: If deletion fails
        """
        self.reporter.report(f"Delete '{vm_name}' virtual machine...")
        with azure_call(f"Delete '{vm_name}' failed", TeardownError):
            self.clients.compute.virtual_machines.begin_delete(
                self.config.resource_group, vm_name
            ).result()
        logger.info(f"VM {vm_name} deleted")

    def delete_vms(self, vm_names: Iterable[str]) -> None:
        """Delete several VMs concurrently and wait for all of them.

        Raises:
            TeardownError: The first failure, after every deletion finished
        """
        outcomes = run_concurrently(self.delete_vm, vm_names, "azvm-delete")
        for outcome in outcomes:
            if not outcome.succeeded:
                logger.error(f"Failed to delete VM {outcome.item}: {outcome.error}")
        raise_first_error(outcomes)

    def delete_resource_group(self) -> None:
        """Delete the resource group and everything in it.

        Raises:
            TeardownError: If deletion fails
        """
        self.reporter.report("Starting to delete the resource group...")
        with azure_call("Delete resource group failed", TeardownError):
            self.clients.resources.resource_groups.begin_delete(
                self.config.resource_group
            ).result()
        self.reporter.report("... resource group deleted")

    def delete_resource_group_best_effort(self) -> bool:
        """Delete the resource group, swallowing and logging any failure.

        A group that no longer exists counts as deleted.

        Returns:
            True if the group is gone, False if deletion failed
        """
        rg = self.config.resource_group
        try:
            self.clients.resources.resource_groups.begin_delete(rg).result()
        except ResourceNotFoundError:
            logger.debug(f"Resource group {rg} already deleted")
            return True
        except AzureError as e:
            self.reporter.warn(
                f"Cleanup of resource group {rg} failed: {LogSanitizer.sanitize_exception(e)}"
            )
            return False

        logger.info(f"Resource group {rg} deleted during cleanup")
        return True


__all__ = ["ResourceCleaner"]
