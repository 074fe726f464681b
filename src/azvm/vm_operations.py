"""Operations on existing VMs.

Each VM goes through the same fixed sequence, every step a separate round
trip to Azure:

1. Get the VM (with instance view)
2. Tag it (via create-or-update)
3. Attach an empty data disk (via create-or-update)
4. Detach all data disks (via create-or-update)
5. Grow the OS disk (deallocate, then create-or-update)
6. Start, restart and stop (power off)

The sequence for one VM is strictly ordered: the disk resize needs the
preceding deallocate and every step works on the VM object updated by the
step before. Sequences for different VMs run concurrently.
"""

import logging
from collections.abc import Iterable

from azure.mgmt.compute.models import (
    DataDisk,
    DiskCreateOptionTypes,
    InstanceViewTypes,
    VirtualHardDisk,
    VirtualMachine,
)

from azvm.clients import AzureClients
from azvm.concurrency import raise_first_error, run_concurrently
from azvm.config_manager import SampleConfig
from azvm.errors import VMOperationError, azure_call
from azvm.progress import ProgressReporter
from azvm.reporting import format_vm

logger = logging.getLogger(__name__)

SAMPLE_TAGS = {"who rocks": "golang", "where": "on azure"}

MIN_OS_DISK_SIZE_GB = 256
OS_DISK_GROWTH_GB = 10

DATA_DISK_NAME = "dataDisk"
DATA_DISK_SIZE_GB = 1


def next_os_disk_size(size_gb: int | None) -> int:
    """Compute the OS disk size to grow to.

    An unset or non-positive size is treated as the 256 GB baseline; the
    result is always 10 GB more.

    Examples:
        >>> next_os_disk_size(None)
        266
        >>> next_os_disk_size(500)
        510
    """
    current = size_gb or 0
    if current <= 0:
        current = MIN_OS_DISK_SIZE_GB
    return current + OS_DISK_GROWTH_GB


class VMOperations:
    """Run the sample's operation sequence against existing VMs."""

    def __init__(self, clients: AzureClients, config: SampleConfig, reporter: ProgressReporter):
        self.clients = clients
        self.config = config
        self.reporter = reporter

    @property
    def _vms(self):
        return self.clients.compute.virtual_machines

    def _create_or_update(self, vm_name: str, vm: VirtualMachine) -> None:
        with azure_call(f"CreateOrUpdate '{vm_name}' failed", VMOperationError):
            self._vms.begin_create_or_update(self.config.resource_group, vm_name, vm).result()

    def get_vm(self, vm_name: str) -> VirtualMachine:
        """Get a VM by name, including its instance view.

        Raises:
            VMOperationError: If the lookup fails
        """
        self.reporter.report(f"Get VM '{vm_name}' by name")
        with azure_call(f"Get '{vm_name}' failed", VMOperationError):
            vm = self._vms.get(
                self.config.resource_group, vm_name, expand=InstanceViewTypes.INSTANCE_VIEW
            )
        self.reporter.report(format_vm(vm))
        return vm

    def tag_vm(self, vm_name: str, vm: VirtualMachine) -> None:
        """Replace the VM's tags with the sample tags."""
        self.reporter.report("Tag VM (via CreateOrUpdate operation)")
        vm.tags = dict(SAMPLE_TAGS)
        self._create_or_update(vm_name, vm)

    def attach_data_disk(self, vm_name: str, vm: VirtualMachine) -> None:
        """Replace the VM's data disks with one new empty disk at LUN 0."""
        self.reporter.report("Attach data disk (via CreateOrUpdate operation)")
        vm.storage_profile.data_disks = [
            DataDisk(
                lun=0,
                name=DATA_DISK_NAME,
                vhd=VirtualHardDisk(uri=self.config.vhd_uri(f"dataDisks-{vm_name}")),
                create_option=DiskCreateOptionTypes.EMPTY,
                disk_size_gb=DATA_DISK_SIZE_GB,
            )
        ]
        self._create_or_update(vm_name, vm)

    def detach_data_disks(self, vm_name: str, vm: VirtualMachine) -> None:
        """Remove every data disk from the VM."""
        self.reporter.report("Detach data disks (via CreateOrUpdate operation)")
        vm.storage_profile.data_disks = []
        self._create_or_update(vm_name, vm)

    def update_os_disk_size(self, vm_name: str, vm: VirtualMachine) -> int:
        """Deallocate the VM and grow its OS disk.

        Returns:
            The new OS disk size in GB

        Raises:
            VMOperationError: If deallocation or the update fails
        """
        self.reporter.report("Update OS disk size (via Deallocate and CreateOrUpdate operations)")
        os_disk = vm.storage_profile.os_disk

        with azure_call(f"Deallocate '{vm_name}' failed", VMOperationError):
            self._vms.begin_deallocate(self.config.resource_group, vm_name).result()

        os_disk.disk_size_gb = next_os_disk_size(os_disk.disk_size_gb)
        logger.debug(f"Growing OS disk of {vm_name} to {os_disk.disk_size_gb} GB")
        self._create_or_update(vm_name, vm)
        return os_disk.disk_size_gb

    def start_vm(self, vm_name: str) -> None:
        self.reporter.report("Start VM...")
        with azure_call(f"Start '{vm_name}' failed", VMOperationError):
            self._vms.begin_start(self.config.resource_group, vm_name).result()

    def restart_vm(self, vm_name: str) -> None:
        self.reporter.report("Restart VM...")
        with azure_call(f"Restart '{vm_name}' failed", VMOperationError):
            self._vms.begin_restart(self.config.resource_group, vm_name).result()

    def stop_vm(self, vm_name: str) -> None:
        """Power off the VM (it stays allocated)."""
        self.reporter.report("Stop VM...")
        with azure_call(f"Stop '{vm_name}' failed", VMOperationError):
            self._vms.begin_power_off(self.config.resource_group, vm_name).result()

    def run_operations(self, vm_name: str) -> VirtualMachine:
        """Perform the full operation sequence on one VM.

        Returns:
            The VM object as last pushed to Azure

        Raises:
            VMOperationError: At the first failing step; later steps are skipped
        """
        self.reporter.report(f"Performing various operations on '{vm_name}' VM")
        vm = self.get_vm(vm_name)

        self.tag_vm(vm_name, vm)
        self.attach_data_disk(vm_name, vm)
        self.detach_data_disks(vm_name, vm)
        self.update_os_disk_size(vm_name, vm)
        self.start_vm(vm_name)
        self.restart_vm(vm_name)
        self.stop_vm(vm_name)

        logger.info(f"Operations on {vm_name} complete")
        return vm

    def run_operations_concurrently(self, vm_names: Iterable[str]) -> list[VirtualMachine]:
        """Run the operation sequence on several VMs in parallel.

        Raises:
            VMOperationError: The first failure, after every sequence finished
        """
        outcomes = run_concurrently(self.run_operations, vm_names, "azvm-ops")
        raise_first_error(outcomes)
        return [outcome.result for outcome in outcomes]


__all__ = [
    "SAMPLE_TAGS",
    "VMOperations",
    "next_os_disk_size",
]
