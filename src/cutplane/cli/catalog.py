"""cutplane catalog command - list compiled facets."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from cutplane.catalog.builder import BuildInfoCache, build_catalog
from cutplane.cli.utils import cli_errors, load_workspace


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option(
    "--repo",
    "repo_path",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Contracts repository (default: current directory)",
)
@click.pass_context
def catalog_command(ctx: click.Context, as_json: bool, repo_path: Path) -> None:
    """List deployable facets found in the compiled artifacts."""
    ws = load_workspace(repo_path, verbose=bool(ctx.obj and ctx.obj.get("verbose")))
    with cli_errors():
        catalog = build_catalog(ws.artifacts_dir, BuildInfoCache(), repo_root=ws.repo_root)

    entries = [catalog.by_name[name] for name in sorted(catalog.by_name)]
    if as_json:
        click.echo(json.dumps([e.to_dict() for e in entries], indent=2))
        return

    table = Table(title=f"{len(entries)} facets in {ws.artifacts_dir}")
    table.add_column("Facet")
    table.add_column("Source")
    table.add_column("Selectors", justify="right")
    table.add_column("Internal", justify="right")
    table.add_column("Events", justify="right")
    for entry in entries:
        table.add_row(
            entry.contract_name,
            entry.source_name,
            str(len(entry.selectors)),
            str(len(entry.internal_routines)),
            str(len(entry.events)),
        )
    Console().print(table)
