"""
Shared test fixtures and configuration for azvm tests.

This module provides common fixtures used across all test modules:
- Isolated config directory and scrubbed environment
- Sample configuration
- Mock Azure management clients
- Captured console narration
- Real SDK VirtualMachine models for mutation tests
"""

import io
from unittest.mock import Mock

import pytest
from azure.mgmt.compute.models import (
    HardwareProfile,
    OSDisk,
    StorageProfile,
    VirtualHardDisk,
    VirtualMachine,
)
from rich.console import Console

from azvm.config_manager import ConfigManager, SampleConfig
from azvm.progress import ProgressReporter

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"

# ============================================================================
# ENVIRONMENT FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real config file and real credentials.

    Points the default config location into tmp_path and removes every
    AZURE_* / AZVM_* variable from the environment.
    """
    config_dir = tmp_path / ".azvm"
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_DIR", config_dir)
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_FILE", config_dir / "config.toml")

    for var in [
        "AZURE_AUTH_LOCATION",
        "AZURE_SUBSCRIPTION_ID",
        "AZURE_TENANT_ID",
        "AZURE_CLIENT_ID",
        "AZURE_CLIENT_SECRET",
        "AZVM_RESOURCE_GROUP",
        "AZVM_LOCATION",
        "AZVM_STORAGE_ACCOUNT",
        "AZVM_VM_SIZE",
        "AZVM_ADMIN_USERNAME",
        "AZVM_ADMIN_PASSWORD",
    ]:
        monkeypatch.delenv(var, raising=False)

    return config_dir


@pytest.fixture
def sp_environment(monkeypatch):
    """Service principal environment variables with fake values."""
    values = {
        "AZURE_SUBSCRIPTION_ID": SUBSCRIPTION_ID,
        "AZURE_TENANT_ID": "11111111-1111-1111-1111-111111111111",
        "AZURE_CLIENT_ID": "22222222-2222-2222-2222-222222222222",
        "AZURE_CLIENT_SECRET": "fake-client-secret",  # noqa: S105 - test fixture
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values


# ============================================================================
# SAMPLE FIXTURES
# ============================================================================


@pytest.fixture
def sample_config():
    """Sample configuration with test resource names."""
    return SampleConfig(
        resource_group="test-rg",
        location="eastus",
        storage_account="teststorage",
    )


@pytest.fixture
def console_buffer():
    """StringIO receiving everything printed through the reporter."""
    return io.StringIO()


@pytest.fixture
def reporter(console_buffer):
    """ProgressReporter writing to console_buffer."""
    return ProgressReporter(Console(file=console_buffer, width=200, color_system=None))


# ============================================================================
# AZURE MOCKING FIXTURES
# ============================================================================


@pytest.fixture
def mock_clients():
    """Mock AzureClients.

    Every begin_* call returns a poller Mock whose result() succeeds, and
    every get/list call returns a Mock, so tests only need to override the
    calls they care about.
    """
    clients = Mock()
    clients.subscription_id = SUBSCRIPTION_ID
    clients.compute.virtual_machines.list_all.return_value = []
    return clients


def make_vm(name="linuxVM", tags=None, os_disk_size_gb=None, location="eastus"):
    """Build a real VirtualMachine model as returned by a get call."""
    vm = VirtualMachine(
        location=location,
        tags=tags,
        hardware_profile=HardwareProfile(vm_size="Standard_DS1"),
        storage_profile=StorageProfile(
            os_disk=OSDisk(
                name="osDisk",
                vhd=VirtualHardDisk(uri=f"https://teststorage.blob.core.windows.net/c/{name}.vhd"),
                create_option="FromImage",
                disk_size_gb=os_disk_size_gb,
            ),
        ),
    )
    vm.name = name
    vm.id = (
        f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/test-rg"
        f"/providers/Microsoft.Compute/virtualMachines/{name}"
    )
    vm.type = "Microsoft.Compute/virtualMachines"
    return vm


@pytest.fixture
def vm_factory():
    """Factory fixture for VirtualMachine models."""
    return make_vm


def api_calls(mock):
    """Names of the direct calls made on a mock, ignoring poller.result() calls.

    Example:
        ["get", "begin_create_or_update", "begin_deallocate"]
    """
    return [name for name, _args, _kwargs in mock.mock_calls if "(" not in name and name]


@pytest.fixture
def call_names():
    """The api_calls helper, as a fixture."""
    return api_calls
