"""Exception hierarchy for azvm.

Every error raised by the sample derives from AzvmError. Only the CLI decides
what to do with it (print and exit 1); library code raises and propagates.

Azure SDK failures are translated by the azure_call() context manager into
AzureOperationError subclasses carrying a caller-supplied context string, so
that the final message reads "<context>: <cause>".
"""

from collections.abc import Iterator
from contextlib import contextmanager

from azure.core.exceptions import AzureError

from azvm.log_sanitizer import LogSanitizer


class AzvmError(Exception):
    """Base exception for azvm errors."""

    exit_code = 1


class MissingEnvironmentError(AzvmError):
    """Raised when a required environment variable is not set."""

    def __init__(self, var_name: str):
        self.var_name = var_name
        super().__init__(f"Missing environment variable {var_name}")


class AuthenticationError(AzvmError):
    """Raised when Azure credentials cannot be built."""

    pass


class ConfigError(AzvmError):
    """Raised when configuration operations fail."""

    pass


class AzureOperationError(AzvmError):
    """Raised when an Azure management API call fails.

    Attributes:
        context: What the program was trying to do
        cause: The underlying error (usually an azure.core AzureError)
    """

    def __init__(self, context: str, cause: BaseException | str):
        self.context = context
        self.cause = cause
        super().__init__(f"{context}: {LogSanitizer.sanitize(str(cause))}")


class ProvisioningError(AzureOperationError):
    """Raised when creating a resource fails."""

    pass


class VMOperationError(AzureOperationError):
    """Raised when an operation on an existing VM fails."""

    pass


class TeardownError(AzureOperationError):
    """Raised when deleting a resource fails."""

    pass


@contextmanager
def azure_call(
    context: str, error_cls: type[AzureOperationError] = AzureOperationError
) -> Iterator[None]:
    """Translate Azure SDK failures raised inside the block.

    Args:
        context: Message prefix describing the call, e.g. "Get subnet failed"
        error_cls: AzureOperationError subclass to raise

    Raises:
        error_cls: If the block raises an AzureError

    Example:
        >>> with azure_call("Get subnet failed", ProvisioningError):
        ...     subnet = clients.network.subnets.get(rg, vnet, name)
    """
    try:
        yield
    except AzureError as e:
        raise error_cls(context, e) from e


__all__ = [
    "AuthenticationError",
    "AzureOperationError",
    "AzvmError",
    "ConfigError",
    "MissingEnvironmentError",
    "ProvisioningError",
    "TeardownError",
    "VMOperationError",
    "azure_call",
]
