"""Unit tests for VM summaries and listing."""

import pytest
from azure.core.exceptions import HttpResponseError

from azvm.errors import VMOperationError
from azvm.reporting import NO_VMS_MESSAGE, VMReporter, format_tags, format_vm


class TestFormatting:
    """Tests for VM summary text."""

    @pytest.mark.parametrize("tags", [None, {}])
    def test_no_tags(self, tags):
        assert format_tags(tags) == "\n\t\tNo tags yet\n"

    def test_tags_one_per_line(self):
        assert format_tags({"who rocks": "golang", "where": "on azure"}) == (
            "\n\t\twho rocks = golang\n\t\twhere = on azure\n"
        )

    def test_format_vm(self, vm_factory):
        text = format_vm(vm_factory("linuxVM", tags={"where": "on azure"}))
        lines = text.split("\n")

        assert lines[0] == "Virtual machine 'linuxVM'"
        assert lines[1].startswith("\tID: /subscriptions/")
        assert lines[2] == "\tType: Microsoft.Compute/virtualMachines"
        assert lines[3] == "\tLocation: eastus"
        assert lines[4] == "\tTags: "
        assert lines[5] == "\t\twhere = on azure"


class TestListVMs:
    """Tests for subscription-wide listing."""

    def test_empty_subscription(self, mock_clients, reporter, console_buffer):
        assert VMReporter(mock_clients, reporter).list_vms() == []

        assert NO_VMS_MESSAGE in console_buffer.getvalue()

    def test_lists_every_vm(self, mock_clients, reporter, console_buffer, vm_factory):
        vms = [vm_factory("linuxVM"), vm_factory("windowsVM")]
        mock_clients.compute.virtual_machines.list_all.return_value = iter(vms)

        assert VMReporter(mock_clients, reporter).list_vms() == vms

        output = console_buffer.getvalue()
        assert "VMs in subscription" in output
        assert "Virtual machine 'linuxVM'" in output
        assert "Virtual machine 'windowsVM'" in output
        assert NO_VMS_MESSAGE not in output

    def test_list_failure(self, mock_clients, reporter):
        mock_clients.compute.virtual_machines.list_all.side_effect = HttpResponseError(
            message="Forbidden"
        )

        with pytest.raises(VMOperationError, match="ListAll failed: Forbidden"):
            VMReporter(mock_clients, reporter).list_vms()
