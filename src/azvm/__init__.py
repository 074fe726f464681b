"""azvm - Azure virtual machine management sample

Philosophy:
- Delegate to the Azure SDK, don't reinvent
- One explicit client context, no module-level clients
- Fail fast with a single clear message

The sample provisions a resource group, storage account, virtual network and
two virtual machines, performs a series of operations on the machines and
then tears everything down again.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
