"""Sample workflow orchestration.

Runs the whole sample in phases separated by operator barriers:

1. Provision shared resources, then create the VMs concurrently
2. -- press enter --
3. Run the operation sequence on every VM concurrently, then list VMs
4. -- press enter --
5. Delete the VMs concurrently, then the resource group

Whatever happens, a best-effort resource group deletion runs on the way out.
Each phase waits for every concurrent unit of the previous phase, so no
operation starts before all VM creations have finished.
"""

import logging
from collections.abc import Callable, Sequence

import click

from azvm.clients import AzureClients
from azvm.config_manager import SampleConfig
from azvm.progress import ProgressReporter
from azvm.provisioning import (
    DEFAULT_MACHINES,
    MachineDefinition,
    NetworkProvisioner,
    ProvisionedVM,
    VMProvisioner,
)
from azvm.reporting import VMReporter
from azvm.teardown import ResourceCleaner
from azvm.vm_operations import VMOperations

logger = logging.getLogger(__name__)

OPERATIONS_PROMPT = "Press enter to perform various operations on the virtual machines..."
TEARDOWN_PROMPT = "Press enter to delete the VMs and other resources created in this sample..."


def wait_for_enter(message: str) -> None:
    """Block until the operator presses enter."""
    click.prompt(message, default="", show_default=False, prompt_suffix="")


def no_pause(message: str) -> None:
    logger.debug(f"Skipping prompt: {message}")


class SampleOrchestrator:
    """Orchestrate the sample workflow.

    All components share one AzureClients context and one ProgressReporter.
    Errors propagate to the caller; only the CLI turns them into an exit code.
    """

    def __init__(
        self,
        clients: AzureClients,
        config: SampleConfig,
        reporter: ProgressReporter | None = None,
        pause: Callable[[str], None] = wait_for_enter,
        machines: Sequence[MachineDefinition] = DEFAULT_MACHINES,
    ):
        """Initialize orchestrator.

        Args:
            clients: Azure management clients
            config: Effective sample configuration
            reporter: Console narration (stdout by default)
            pause: Barrier callable invoked with the prompt text
            machines: VMs to create
        """
        self.config = config
        self.reporter = reporter or ProgressReporter()
        self.pause = pause
        self.machines = tuple(machines)

        self.network = NetworkProvisioner(clients, config, self.reporter)
        self.provisioner = VMProvisioner(clients, config, self.reporter)
        self.operations = VMOperations(clients, config, self.reporter)
        self.listing = VMReporter(clients, self.reporter)
        self.cleaner = ResourceCleaner(clients, config, self.reporter)

    @property
    def vm_names(self) -> list[str]:
        return [machine.name for machine in self.machines]

    def provision(self) -> list[ProvisionedVM]:
        """Create shared resources and every VM.

        Raises:
            ProvisioningError: If any resource cannot be created
        """
        subnet = self.network.create_needed_resources()
        provisioned = self.provisioner.create_vms(self.machines, subnet)
        self.reporter.report(f"Your VMs have been created: {', '.join(self.vm_names)}")
        return provisioned

    def perform_operations(self) -> None:
        """Run the operation sequence on every VM, then list all VMs.

        Raises:
            VMOperationError: If any operation fails
        """
        self.operations.run_operations_concurrently(self.vm_names)
        self.listing.list_vms()

    def teardown(self) -> None:
        """Delete every VM, then the resource group.

        Raises:
            TeardownError: If a deletion fails
        """
        self.cleaner.delete_vms(self.vm_names)
        self.cleaner.delete_resource_group()

    def run(self) -> None:
        """Run the complete sample.

        Raises:
            AzvmError: At the first failure; the best-effort cleanup still runs
        """
        try:
            self.provision()
            self.pause(OPERATIONS_PROMPT)
            self.perform_operations()
            self.pause(TEARDOWN_PROMPT)
            self.teardown()
            self.reporter.report("Done!")
        finally:
            logger.debug("Running exit-time resource group cleanup")
            self.cleaner.delete_resource_group_best_effort()


__all__ = [
    "OPERATIONS_PROMPT",
    "TEARDOWN_PROMPT",
    "SampleOrchestrator",
    "no_pause",
    "wait_for_enter",
]
