"""Cutplane CLI - cutplane command."""

import click

from cutplane.cli.catalog import catalog_command
from cutplane.cli.snapshot import snapshot_command
from cutplane.cli.upgrade import upgrade_command
from cutplane.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="cutplane")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Cutplane - diff, validate and apply diamond upgrades."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(upgrade_command, name="upgrade")
cli.add_command(snapshot_command, name="snapshot")
cli.add_command(catalog_command, name="catalog")


if __name__ == "__main__":
    cli()
