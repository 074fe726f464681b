"""
Unit tests for the provisioning module.

Test Coverage:
- Derived resource names
- VM parameter building
- Shared resource provisioning (resource group, storage, network)
- Failure ordering between the storage and network branches
- Per-VM provisioning chain and fail-fast behaviour
- Concurrent VM creation
"""

import threading
from unittest.mock import Mock

import pytest
from azure.core.exceptions import HttpResponseError

from azvm.errors import ProvisioningError
from azvm.provisioning import (
    DEFAULT_MACHINES,
    LINUX_VM,
    WINDOWS_VM,
    NetworkProvisioner,
    VMProvisioner,
    dns_label,
    nic_name,
    public_ip_name,
)

# ============================================================================
# NAMING TESTS
# ============================================================================


class TestNaming:
    """Test derived resource names."""

    def test_public_ip_and_nic_names(self):
        assert public_ip_name("linuxVM") == "pip-linuxVM"
        assert nic_name("windowsVM") == "nic-windowsVM"

    def test_dns_label_uses_first_five_characters_lowercased(self):
        assert dns_label("linuxVM") == "azuresample-linux"
        assert dns_label("windowsVM") == "azuresample-windo"

    def test_default_machines(self):
        assert DEFAULT_MACHINES == (LINUX_VM, WINDOWS_VM)
        assert LINUX_VM.image.publisher == "Canonical"
        assert WINDOWS_VM.image.sku == "2016-Datacenter"
        assert LINUX_VM.image.version == "latest"


# ============================================================================
# SHARED RESOURCE TESTS
# ============================================================================


@pytest.fixture
def network(mock_clients, sample_config, reporter):
    return NetworkProvisioner(mock_clients, sample_config, reporter)


class TestCreateNeededResources:
    """Test resource group, storage account and network provisioning."""

    def test_creates_everything_and_returns_fetched_subnet(self, network, mock_clients):
        subnet = Mock(id="/subnets/subnet")
        mock_clients.network.subnets.get.return_value = subnet

        assert network.create_needed_resources() is subnet

        rg_args = mock_clients.resources.resource_groups.create_or_update.call_args[0]
        assert rg_args[0] == "test-rg"
        assert rg_args[1].location == "eastus"

        storage_args = mock_clients.storage.storage_accounts.begin_create.call_args[0]
        assert storage_args[:2] == ("test-rg", "teststorage")
        assert storage_args[2].sku.name == "Standard_LRS"

        vnet_args = mock_clients.network.virtual_networks.begin_create_or_update.call_args[0]
        assert vnet_args[1] == "vNet"
        assert vnet_args[2].address_space.address_prefixes == ["10.0.0.0/16"]

        subnet_args = mock_clients.network.subnets.begin_create_or_update.call_args[0]
        assert subnet_args[:3] == ("test-rg", "vNet", "subnet")
        assert subnet_args[3].address_prefix == "10.0.0.0/24"

        mock_clients.network.subnets.get.assert_called_once_with("test-rg", "vNet", "subnet")

    def test_resource_group_failure_is_fatal(self, network, mock_clients):
        mock_clients.resources.resource_groups.create_or_update.side_effect = HttpResponseError(
            message="AuthorizationFailed"
        )

        with pytest.raises(ProvisioningError) as exc_info:
            network.create_needed_resources()

        assert str(exc_info.value).startswith("CreateOrUpdate resource group failed: ")
        mock_clients.storage.storage_accounts.begin_create.assert_not_called()
        mock_clients.network.virtual_networks.begin_create_or_update.assert_not_called()

    def test_network_failure_stops_subnet_creation(self, network, mock_clients):
        mock_clients.network.virtual_networks.begin_create_or_update.side_effect = (
            HttpResponseError(message="InvalidAddressPrefix")
        )

        with pytest.raises(ProvisioningError, match="CreateOrUpdate virtual network failed"):
            network.create_needed_resources()

        mock_clients.network.subnets.begin_create_or_update.assert_not_called()

    def test_storage_failure_is_raised_after_network_completes(self, network, mock_clients):
        mock_clients.storage.storage_accounts.begin_create.side_effect = HttpResponseError(
            message="StorageAccountAlreadyTaken"
        )

        with pytest.raises(ProvisioningError, match="Create storage account failed"):
            network.create_needed_resources()

        mock_clients.network.subnets.get.assert_called_once()

    def test_network_failure_wins_when_both_fail(self, network, mock_clients, console_buffer):
        mock_clients.storage.storage_accounts.begin_create.side_effect = HttpResponseError(
            message="StorageAccountAlreadyTaken"
        )
        mock_clients.network.subnets.begin_create_or_update.side_effect = HttpResponseError(
            message="SubnetInUse"
        )

        with pytest.raises(ProvisioningError, match="CreateOrUpdate subnet failed") as exc_info:
            network.create_needed_resources()

        assert "StorageAccountAlreadyTaken" in console_buffer.getvalue()
        notes = getattr(exc_info.value, "__notes__", [])
        assert len(notes) == 1
        assert notes[0].startswith("Storage account creation also failed: ")
        assert "StorageAccountAlreadyTaken" in notes[0]

    def test_network_failure_alone_has_no_storage_note(self, network, mock_clients):
        mock_clients.network.subnets.get.side_effect = HttpResponseError(message="NotFound")

        with pytest.raises(ProvisioningError, match="Get subnet failed") as exc_info:
            network.create_needed_resources()

        assert not getattr(exc_info.value, "__notes__", [])

    def test_storage_runs_concurrently_with_network(self, network, mock_clients):
        storage_started = threading.Event()
        network_saw_storage = []

        def slow_storage(*args, **kwargs):
            storage_started.set()
            return Mock()

        def vnet(*args, **kwargs):
            network_saw_storage.append(storage_started.wait(timeout=5))
            return Mock()

        mock_clients.storage.storage_accounts.begin_create.side_effect = slow_storage
        mock_clients.network.virtual_networks.begin_create_or_update.side_effect = vnet

        network.create_needed_resources()

        assert network_saw_storage == [True]


# ============================================================================
# VM PROVISIONING TESTS
# ============================================================================


@pytest.fixture
def provisioner(mock_clients, sample_config, reporter):
    return VMProvisioner(mock_clients, sample_config, reporter)


@pytest.fixture
def network_lookups(mock_clients):
    """Configure public IP and NIC lookups to return realistic values."""
    public_ip = Mock()
    public_ip.dns_settings.fqdn = "azuresample-linux.eastus.cloudapp.azure.com"
    nic = Mock(id="/networkInterfaces/nic-linuxVM")
    mock_clients.network.public_ip_addresses.get.return_value = public_ip
    mock_clients.network.network_interfaces.get.return_value = nic
    return public_ip, nic


class TestBuildVMParameters:
    """Test VM model building."""

    def test_builds_vm_from_definition(self, provisioner):
        vm = provisioner.build_vm_parameters(LINUX_VM, "/nic/id")

        assert vm.location == "eastus"
        assert vm.hardware_profile.vm_size == "Standard_DS1"

        image = vm.storage_profile.image_reference
        assert (image.publisher, image.offer, image.sku, image.version) == (
            "Canonical",
            "UbuntuServer",
            "16.04.0-LTS",
            "latest",
        )

        os_disk = vm.storage_profile.os_disk
        assert os_disk.name == "osDisk"
        assert os_disk.create_option == "FromImage"
        assert os_disk.vhd.uri == (
            "https://teststorage.blob.core.windows.net/pythoncontainer/linuxVM.vhd"
        )

        assert vm.os_profile.computer_name == "linuxVM"
        assert vm.os_profile.admin_username == "notadmin"

        nics = vm.network_profile.network_interfaces
        assert len(nics) == 1
        assert nics[0].id == "/nic/id"
        assert nics[0].primary is True


class TestCreateVM:
    """Test the per-VM provisioning chain."""

    def test_creates_pip_nic_then_vm(self, provisioner, mock_clients, network_lookups):
        public_ip, nic = network_lookups
        subnet = Mock()

        result = provisioner.create_vm(LINUX_VM, subnet)

        pip_args = mock_clients.network.public_ip_addresses.begin_create_or_update.call_args[0]
        assert pip_args[1] == "pip-linuxVM"
        assert pip_args[2].dns_settings.domain_name_label == "azuresample-linux"

        nic_args = mock_clients.network.network_interfaces.begin_create_or_update.call_args[0]
        assert nic_args[1] == "nic-linuxVM"
        ip_config = nic_args[2].ip_configurations[0]
        assert ip_config.name == "IPconfig-linuxVM"
        assert ip_config.subnet is subnet
        assert ip_config.public_ip_address is public_ip
        assert ip_config.private_ip_allocation_method == "Dynamic"

        vm_args = mock_clients.compute.virtual_machines.begin_create_or_update.call_args[0]
        assert vm_args[1] == "linuxVM"
        assert vm_args[2].network_profile.network_interfaces[0].id == nic.id

        assert result.name == "linuxVM"
        assert result.fqdn == "azuresample-linux.eastus.cloudapp.azure.com"
        assert result.ssh_command == "ssh notadmin@azuresample-linux.eastus.cloudapp.azure.com"

    def test_connection_hint_does_not_print_password(
        self, provisioner, network_lookups, console_buffer, sample_config
    ):
        provisioner.create_vm(LINUX_VM, Mock())

        output = console_buffer.getvalue()
        assert "ssh notadmin@azuresample-linux.eastus.cloudapp.azure.com" in output
        assert sample_config.admin_password not in output

    def test_nic_failure_stops_vm_creation(self, provisioner, mock_clients, network_lookups):
        mock_clients.network.network_interfaces.begin_create_or_update.side_effect = (
            HttpResponseError(message="SubnetNotFound")
        )

        with pytest.raises(ProvisioningError, match="CreateOrUpdate 'nic-linuxVM' failed"):
            provisioner.create_vm(LINUX_VM, Mock())

        mock_clients.network.network_interfaces.get.assert_not_called()
        mock_clients.compute.virtual_machines.begin_create_or_update.assert_not_called()

    def test_public_ip_lookup_failure(self, provisioner, mock_clients):
        mock_clients.network.public_ip_addresses.get.side_effect = HttpResponseError(
            message="NotFound"
        )

        with pytest.raises(ProvisioningError, match="Get 'pip-linuxVM' failed"):
            provisioner.create_vm(LINUX_VM, Mock())

        mock_clients.network.network_interfaces.begin_create_or_update.assert_not_called()


class TestCreateVMs:
    """Test concurrent VM creation."""

    def test_creates_all_machines(self, provisioner, mock_clients, network_lookups):
        results = provisioner.create_vms(DEFAULT_MACHINES, Mock())

        assert [vm.name for vm in results] == ["linuxVM", "windowsVM"]
        assert mock_clients.compute.virtual_machines.begin_create_or_update.call_count == 2

    def test_one_failure_does_not_cancel_the_other(
        self, provisioner, mock_clients, network_lookups
    ):
        def create_vm(resource_group, vm_name, parameters):
            if vm_name == "windowsVM":
                raise HttpResponseError(message="QuotaExceeded")
            return Mock()

        mock_clients.compute.virtual_machines.begin_create_or_update.side_effect = create_vm

        with pytest.raises(ProvisioningError, match="CreateOrUpdate 'windowsVM' failed"):
            provisioner.create_vms(DEFAULT_MACHINES, Mock())

        created = [
            c[0][1] for c in mock_clients.compute.virtual_machines.begin_create_or_update.call_args_list
        ]
        assert sorted(created) == ["linuxVM", "windowsVM"]
