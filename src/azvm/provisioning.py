"""VM provisioning module.

This module creates everything the sample VMs need and then the VMs
themselves, using the Azure management SDK:

- Resource group
- Storage account (hosts the VHD blobs for OS and data disks)
- Virtual network and subnet
- Public IP address and network interface per VM
- Virtual machines (one Linux, one Windows by default)

The storage account is created concurrently with the network. VMs are
created concurrently with each other; the steps for a single VM are
strictly sequential because each needs the previous step's resource ID.
"""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from azure.mgmt.compute.models import (
    DiskCreateOptionTypes,
    HardwareProfile,
    ImageReference,
    NetworkInterfaceReference,
    NetworkProfile,
    OSDisk,
    OSProfile,
    StorageProfile,
    VirtualHardDisk,
    VirtualMachine,
)
from azure.mgmt.network.models import (
    AddressSpace,
    IPAllocationMethod,
    NetworkInterface,
    NetworkInterfaceIPConfiguration,
    PublicIPAddress,
    PublicIPAddressDnsSettings,
    Subnet,
    VirtualNetwork,
)
from azure.mgmt.resource.resources.models import ResourceGroup
from azure.mgmt.storage.models import Kind, Sku, StorageAccountCreateParameters

from azvm.clients import AzureClients
from azvm.concurrency import raise_first_error, run_concurrently
from azvm.config_manager import SampleConfig
from azvm.errors import ProvisioningError, azure_call
from azvm.progress import ProgressReporter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageDefinition:
    """Marketplace image reference."""

    publisher: str
    offer: str
    sku: str
    version: str = "latest"


@dataclass(frozen=True)
class MachineDefinition:
    """A VM to create: its name and OS image."""

    name: str
    image: ImageDefinition


LINUX_VM = MachineDefinition(
    name="linuxVM",
    image=ImageDefinition(publisher="Canonical", offer="UbuntuServer", sku="16.04.0-LTS"),
)
WINDOWS_VM = MachineDefinition(
    name="windowsVM",
    image=ImageDefinition(
        publisher="MicrosoftWindowsServer", offer="WindowsServer", sku="2016-Datacenter"
    ),
)
DEFAULT_MACHINES = (LINUX_VM, WINDOWS_VM)


@dataclass
class ProvisionedVM:
    """VM creation result details."""

    name: str
    admin_username: str
    fqdn: str | None = None
    nic_id: str | None = None
    id: str | None = None

    @property
    def ssh_command(self) -> str:
        return f"ssh {self.admin_username}@{self.fqdn}"


def public_ip_name(machine: str) -> str:
    return f"pip-{machine}"


def nic_name(machine: str) -> str:
    return f"nic-{machine}"


def dns_label(machine: str) -> str:
    """DNS label for a machine's public IP: first five characters, lowercased."""
    return f"azuresample-{machine[:5].lower()}"


class NetworkProvisioner:
    """Create the resources shared by every VM in the sample."""

    def __init__(self, clients: AzureClients, config: SampleConfig, reporter: ProgressReporter):
        self.clients = clients
        self.config = config
        self.reporter = reporter

    def create_resource_group(self) -> ResourceGroup:
        """Create or update the sample resource group.

        Raises:
            ProvisioningError: If creation fails
        """
        self.reporter.report("Create resource group...", indent=1)
        with azure_call("CreateOrUpdate resource group failed", ProvisioningError):
            group = self.clients.resources.resource_groups.create_or_update(
                self.config.resource_group, ResourceGroup(location=self.config.location)
            )
        logger.info(f"Resource group {self.config.resource_group} ready")
        return group

    def create_storage_account(self) -> None:
        """Create the storage account that hosts the VM disk blobs.

        Raises:
            ProvisioningError: If creation fails
        """
        self.reporter.report("Starting to create storage account...", indent=1)
        parameters = StorageAccountCreateParameters(
            sku=Sku(name=self.config.storage_sku),
            kind=Kind.STORAGE_V2,
            location=self.config.location,
        )
        with azure_call("Create storage account failed", ProvisioningError):
            self.clients.storage.storage_accounts.begin_create(
                self.config.resource_group, self.config.storage_account, parameters
            ).result()
        self.reporter.report("... storage account created")

    def create_virtual_network(self) -> VirtualNetwork:
        """Create or update the virtual network.

        Raises:
            ProvisioningError: If creation fails
        """
        self.reporter.report("Starting to create virtual network...", indent=1)
        parameters = VirtualNetwork(
            location=self.config.location,
            address_space=AddressSpace(address_prefixes=[self.config.vnet_address_prefix]),
        )
        with azure_call("CreateOrUpdate virtual network failed", ProvisioningError):
            vnet = self.clients.network.virtual_networks.begin_create_or_update(
                self.config.resource_group, self.config.vnet_name, parameters
            ).result()
        self.reporter.report("... virtual network created")
        return vnet

    def create_subnet(self) -> Subnet:
        """Create or update the subnet inside the virtual network.

        Raises:
            ProvisioningError: If creation fails
        """
        self.reporter.report("Starting to create subnet...", indent=1)
        with azure_call("CreateOrUpdate subnet failed", ProvisioningError):
            subnet = self.clients.network.subnets.begin_create_or_update(
                self.config.resource_group,
                self.config.vnet_name,
                self.config.subnet_name,
                Subnet(address_prefix=self.config.subnet_address_prefix),
            ).result()
        self.reporter.report("... subnet created")
        return subnet

    def get_subnet(self) -> Subnet:
        """Fetch the subnet's current representation.

        Raises:
            ProvisioningError: If the lookup fails
        """
        self.reporter.report("Get subnet info...", indent=1)
        with azure_call("Get subnet failed", ProvisioningError):
            return self.clients.network.subnets.get(
                self.config.resource_group, self.config.vnet_name, self.config.subnet_name
            )

    def create_needed_resources(self) -> Subnet:
        """Create all common resources needed before creating VMs.

        The storage account is created on a worker thread while the virtual
        network and subnet are created on the calling thread. Both paths are
        joined before any error is raised; a network failure takes precedence
        over a storage failure.

        Returns:
            The subnet every VM's network interface joins

        Raises:
            ProvisioningError: If any resource cannot be created
        """
        self.reporter.report("Create needed resources")
        self.create_resource_group()

        network_error: ProvisioningError | None = None
        subnet: Subnet | None = None

        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="azvm-storage") as executor:
            storage_future = executor.submit(self.create_storage_account)
            try:
                self.create_virtual_network()
                self.create_subnet()
                subnet = self.get_subnet()
            except ProvisioningError as e:
                network_error = e
            storage_error = storage_future.exception()

        if network_error is not None:
            if storage_error is not None:
                self.reporter.warn(f"storage account creation also failed: {storage_error}")
                network_error.add_note(f"Storage account creation also failed: {storage_error}")
            raise network_error
        if storage_error is not None:
            raise storage_error

        return subnet


class VMProvisioner:
    """Create VMs, each with its own public IP and network interface."""

    def __init__(self, clients: AzureClients, config: SampleConfig, reporter: ProgressReporter):
        self.clients = clients
        self.config = config
        self.reporter = reporter

    def create_public_ip(self, machine: str) -> PublicIPAddress:
        """Create a public IP with a DNS label and read it back.

        The read-back carries the FQDN Azure assigned to the label.

        Raises:
            ProvisioningError: If creation or lookup fails
        """
        ip_name = public_ip_name(machine)
        self.reporter.report(f"Starting to create public IP address '{ip_name}'...", indent=1)
        parameters = PublicIPAddress(
            location=self.config.location,
            public_ip_allocation_method=IPAllocationMethod.DYNAMIC,
            dns_settings=PublicIPAddressDnsSettings(domain_name_label=dns_label(machine)),
        )
        with azure_call(f"CreateOrUpdate '{ip_name}' failed", ProvisioningError):
            self.clients.network.public_ip_addresses.begin_create_or_update(
                self.config.resource_group, ip_name, parameters
            ).result()
        self.reporter.report(f"... public IP address '{ip_name}' created")

        self.reporter.report("Get IP address info...", indent=1)
        with azure_call(f"Get '{ip_name}' failed", ProvisioningError):
            return self.clients.network.public_ip_addresses.get(
                self.config.resource_group, ip_name
            )

    def create_nic(
        self, machine: str, subnet: Subnet, public_ip: PublicIPAddress
    ) -> NetworkInterface:
        """Create a network interface bound to the subnet and public IP.

        Raises:
            ProvisioningError: If creation or lookup fails
        """
        name = nic_name(machine)
        self.reporter.report(f"Starting to create NIC '{name}'...", indent=1)
        parameters = NetworkInterface(
            location=self.config.location,
            ip_configurations=[
                NetworkInterfaceIPConfiguration(
                    name=f"IPconfig-{machine}",
                    public_ip_address=public_ip,
                    private_ip_allocation_method=IPAllocationMethod.DYNAMIC,
                    subnet=subnet,
                )
            ],
        )
        with azure_call(f"CreateOrUpdate '{name}' failed", ProvisioningError):
            self.clients.network.network_interfaces.begin_create_or_update(
                self.config.resource_group, name, parameters
            ).result()
        self.reporter.report(f"... NIC '{name}' created")

        self.reporter.report("Get NIC info...", indent=1)
        with azure_call(f"Get '{name}' failed", ProvisioningError):
            return self.clients.network.network_interfaces.get(self.config.resource_group, name)

    def create_pip_and_nic(
        self, machine: str, subnet: Subnet
    ) -> tuple[PublicIPAddress, NetworkInterface]:
        """Create a public IP and a network interface in an existing subnet.

        Returns:
            (public IP, network interface ready to attach to a VM)
        """
        self.reporter.report(f"Create PIP and NIC for {machine} VM...")
        public_ip = self.create_public_ip(machine)
        nic = self.create_nic(machine, subnet, public_ip)
        return public_ip, nic

    def build_vm_parameters(self, machine: MachineDefinition, nic_id: str) -> VirtualMachine:
        """Build the VirtualMachine model for creating or updating a VM.

        Args:
            machine: VM name and image
            nic_id: Resource ID of the primary network interface

        Returns:
            VirtualMachine ready for begin_create_or_update
        """
        image = machine.image
        return VirtualMachine(
            location=self.config.location,
            hardware_profile=HardwareProfile(vm_size=self.config.vm_size),
            storage_profile=StorageProfile(
                image_reference=ImageReference(
                    publisher=image.publisher,
                    offer=image.offer,
                    sku=image.sku,
                    version=image.version,
                ),
                os_disk=OSDisk(
                    name="osDisk",
                    vhd=VirtualHardDisk(uri=self.config.vhd_uri(machine.name)),
                    create_option=DiskCreateOptionTypes.FROM_IMAGE,
                ),
            ),
            os_profile=OSProfile(
                computer_name=machine.name,
                admin_username=self.config.admin_username,
                admin_password=self.config.admin_password,
            ),
            network_profile=NetworkProfile(
                network_interfaces=[NetworkInterfaceReference(id=nic_id, primary=True)]
            ),
        )

    def create_vm(self, machine: MachineDefinition, subnet: Subnet) -> ProvisionedVM:
        """Create a VM in the provided subnet.

        Args:
            machine: VM name and image
            subnet: Subnet the VM's network interface joins

        Returns:
            ProvisionedVM with connection details

        Raises:
            ProvisioningError: If any step fails; later steps are not attempted
        """
        public_ip, nic = self.create_pip_and_nic(machine.name, subnet)

        self.reporter.report(f"Create '{machine.name}' VM...")
        parameters = self.build_vm_parameters(machine, nic.id)
        with azure_call(f"CreateOrUpdate '{machine.name}' failed", ProvisioningError):
            vm = self.clients.compute.virtual_machines.begin_create_or_update(
                self.config.resource_group, machine.name, parameters
            ).result()

        fqdn = public_ip.dns_settings.fqdn if public_ip.dns_settings else None
        provisioned = ProvisionedVM(
            name=machine.name,
            admin_username=self.config.admin_username,
            fqdn=fqdn,
            nic_id=nic.id,
            id=vm.id,
        )
        self.reporter.report(
            f"Now you can connect to '{machine.name}' VM via '{provisioned.ssh_command}' "
            "with the configured admin password"
        )
        return provisioned

    def create_vms(
        self, machines: Iterable[MachineDefinition], subnet: Subnet
    ) -> list[ProvisionedVM]:
        """Create several VMs concurrently and wait for all of them.

        Raises:
            ProvisioningError: The first failure, after every creation finished
        """
        outcomes = run_concurrently(
            lambda machine: self.create_vm(machine, subnet), machines, "azvm-create"
        )
        raise_first_error(outcomes)
        return [outcome.result for outcome in outcomes]


__all__ = [
    "DEFAULT_MACHINES",
    "LINUX_VM",
    "WINDOWS_VM",
    "ImageDefinition",
    "MachineDefinition",
    "NetworkProvisioner",
    "ProvisionedVM",
    "VMProvisioner",
    "dns_label",
    "nic_name",
    "public_ip_name",
]
