"""CLI entry point for azvm.

Commands:
    azvm run                 # Full sample: provision, operate, tear down
    azvm list                # List VMs in the subscription
    azvm cleanup             # Delete the sample resource group
    azvm config init         # Write a config file with the defaults
    azvm config show         # Show the effective configuration

Credentials come from AZURE_AUTH_LOCATION or from AZURE_SUBSCRIPTION_ID,
AZURE_TENANT_ID, AZURE_CLIENT_ID and AZURE_CLIENT_SECRET.
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from azvm import __version__
from azvm.azure_auth import load_auth_settings
from azvm.clients import AzureClients
from azvm.config_manager import ConfigManager, SampleConfig
from azvm.errors import AzvmError
from azvm.orchestrator import SampleOrchestrator, no_pause, wait_for_enter
from azvm.progress import ProgressReporter
from azvm.reporting import VMReporter
from azvm.teardown import ResourceCleaner

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")
    # The SDK logs every HTTP request at INFO
    logging.getLogger("azure").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _fail(ctx: click.Context, error: AzvmError) -> None:
    """Print a fatal error and exit with its code."""
    click.echo(str(error))
    ctx.exit(error.exit_code)


def _build_clients() -> AzureClients:
    """Read credentials from the environment and build the client context.

    Raises:
        MissingEnvironmentError: If a required variable is missing
        AuthenticationError: If the credential cannot be built
    """
    settings = load_auth_settings()
    logger.debug(f"Using credentials from {settings.source}")
    return AzureClients.from_settings(settings)


def _resolve_config(
    config_path: str | None, resource_group: str | None = None, location: str | None = None
) -> SampleConfig:
    return ConfigManager.resolve(
        config_path, resource_group=resource_group, location=location
    )


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Config file path (default: ~/.azvm/config.toml)",
)
resource_group_option = click.option(
    "--resource-group", "--rg", "resource_group", help="Resource group for the sample"
)


@click.group(context_settings={"help_option_names": ["--help", "-h"]})
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """azvm - Azure virtual machine management sample.

    Provisions a resource group, storage account, virtual network and two
    VMs (Linux and Windows), runs a series of operations on the VMs and
    deletes everything again.

    \b
    EXAMPLES:
        $ azvm run
        $ azvm run --location westeurope --yes
        $ azvm list
        $ azvm cleanup --resource-group my-sample-group
    """
    _setup_logging(verbose)


@main.command(name="run")
@config_option
@resource_group_option
@click.option("--location", "-l", help="Azure region for every resource")
@click.option("--yes", "-y", is_flag=True, help="Don't wait for enter between phases")
@click.pass_context
def run_command(
    ctx: click.Context,
    config_path: str | None,
    resource_group: str | None,
    location: str | None,
    yes: bool,
) -> None:
    """Run the full sample.

    Stops at the first failure. The resource group is always deleted on the
    way out, on a best-effort basis.
    """
    try:
        config = _resolve_config(config_path, resource_group, location)
        clients = _build_clients()
        orchestrator = SampleOrchestrator(
            clients,
            config,
            reporter=ProgressReporter(),
            pause=no_pause if yes else wait_for_enter,
        )
        orchestrator.run()
    except AzvmError as e:
        _fail(ctx, e)


@main.command(name="list")
@click.pass_context
def list_command(ctx: click.Context) -> None:
    """List all VMs in the subscription."""
    try:
        VMReporter(_build_clients(), ProgressReporter()).list_vms()
    except AzvmError as e:
        _fail(ctx, e)


@main.command(name="cleanup")
@config_option
@resource_group_option
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
@click.pass_context
def cleanup_command(
    ctx: click.Context, config_path: str | None, resource_group: str | None, force: bool
) -> None:
    """Delete the sample resource group and everything in it."""
    try:
        config = _resolve_config(config_path, resource_group)
        if not force:
            click.confirm(
                f"Delete resource group '{config.resource_group}' and all its resources?",
                abort=True,
            )
        ResourceCleaner(_build_clients(), config, ProgressReporter()).delete_resource_group()
    except AzvmError as e:
        _fail(ctx, e)


@main.group(name="config")
def config_group() -> None:
    """Manage the azvm config file."""


@config_group.command(name="init")
@click.option("--path", "path", type=click.Path(dir_okay=False), help="Where to write the file")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def config_init(ctx: click.Context, path: str | None, force: bool) -> None:
    """Write a config file containing the default settings."""
    config_path = Path(path).expanduser().resolve() if path else ConfigManager.DEFAULT_CONFIG_FILE
    if config_path.exists() and not force:
        click.echo(f"Config file already exists: {config_path} (use --force to overwrite)")
        ctx.exit(1)

    try:
        written = ConfigManager.save_config(SampleConfig(), str(config_path))
    except AzvmError as e:
        _fail(ctx, e)
    click.echo(f"Wrote {written}")


@config_group.command(name="show")
@config_option
@click.pass_context
def config_show(ctx: click.Context, config_path: str | None) -> None:
    """Show the effective configuration (file, environment and defaults)."""
    try:
        config = _resolve_config(config_path)
    except AzvmError as e:
        _fail(ctx, e)

    table = Table(title="azvm configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.to_dict().items():
        table.add_row(key, str(value))
    table.add_row("admin_password", "****")
    Console().print(table)


if __name__ == "__main__":
    sys.exit(main())
