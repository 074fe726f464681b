"""VM summaries and subscription-wide listing."""

import logging

from azure.mgmt.compute.models import VirtualMachine

from azvm.clients import AzureClients
from azvm.errors import VMOperationError, azure_call
from azvm.progress import ProgressReporter

logger = logging.getLogger(__name__)

NO_VMS_MESSAGE = "There are no VMs in this subscription"


def format_tags(tags: dict[str, str] | None) -> str:
    if not tags:
        return "\n\t\tNo tags yet\n"
    return "\n" + "".join(f"\t\t{key} = {value}\n" for key, value in tags.items())


def format_vm(vm: VirtualMachine) -> str:
    """Render basic info about a virtual machine.

    Example output:
        Virtual machine 'linuxVM'
            ID: /subscriptions/.../virtualMachines/linuxVM
            Type: Microsoft.Compute/virtualMachines
            Location: westus
            Tags:
                No tags yet
    """
    elements = {
        "ID": vm.id,
        "Type": vm.type,
        "Location": vm.location,
        "Tags": format_tags(vm.tags),
    }
    lines = [f"Virtual machine '{vm.name}'"]
    lines.extend(f"\t{key}: {value}" for key, value in elements.items())
    return "\n".join(lines).rstrip("\n")


class VMReporter:
    """List and summarize VMs visible to the credential."""

    def __init__(self, clients: AzureClients, reporter: ProgressReporter):
        self.clients = clients
        self.reporter = reporter

    def list_vms(self) -> list[VirtualMachine]:
        """List every VM in the subscription and print a summary of each.

        Returns:
            The VMs found (possibly empty)

        Raises:
            VMOperationError: If listing fails
        """
        self.reporter.report("List VMs in subscription...")
        with azure_call("ListAll failed", VMOperationError):
            vms = list(self.clients.compute.virtual_machines.list_all())

        if not vms:
            self.reporter.report(NO_VMS_MESSAGE)
            return vms

        self.reporter.report("VMs in subscription")
        for vm in vms:
            self.reporter.report(format_vm(vm))
        logger.debug(f"Listed {len(vms)} VMs")
        return vms


__all__ = ["NO_VMS_MESSAGE", "VMReporter", "format_tags", "format_vm"]
