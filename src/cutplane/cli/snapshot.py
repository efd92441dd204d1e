"""cutplane snapshot command - capture and optionally store live diamond state."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from cutplane.catalog.builder import BuildInfoCache, build_catalog
from cutplane.cli.utils import cli_errors, load_workspace
from cutplane.core.logging import start_run
from cutplane.core.progress import spinner, status
from cutplane.diff.engine import detect_drift
from cutplane.git.ops import GitOps
from cutplane.ledger.web3_ledger import Web3Ledger
from cutplane.snapshot.capture import SnapshotCapturer
from cutplane.snapshot.store import SnapshotStore


@click.command()
@click.option("--diamond", required=True, help="Address of the diamond to capture")
@click.option("--save", is_flag=True, help="Append the capture to the snapshot history")
@click.option("--json", "as_json", is_flag=True, help="Print the snapshot as JSON")
@click.option(
    "--repo",
    "repo_path",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Contracts repository (default: current directory)",
)
@click.pass_context
def snapshot_command(ctx: click.Context, diamond: str, save: bool, as_json: bool, repo_path: Path) -> None:
    """Capture the live facet composition of a diamond."""
    ws = load_workspace(repo_path, verbose=bool(ctx.obj and ctx.obj.get("verbose")))
    start_run(diamond=diamond)

    with cli_errors():
        ledger = Web3Ledger.connect(ws.config.ledger)
        catalog = build_catalog(ws.artifacts_dir, BuildInfoCache(), repo_root=ws.repo_root)
        capturer = SnapshotCapturer(ledger, catalog, max_workers=ws.config.ledger.max_fetch_workers)
        with spinner(f"Reading facets of {diamond}"):
            snapshot = capturer.capture(diamond, GitOps(ws.repo_root).head_sha())

        store = SnapshotStore(ws.state_dir)
        reference = store.read_latest(snapshot.chain_id, diamond)
        saved = store.append(snapshot) if save else None

    if as_json:
        click.echo(json.dumps(snapshot.to_dict(), indent=2))
    else:
        table = Table(title=f"{diamond} on chain {snapshot.chain_id} @ block {snapshot.block_number}")
        table.add_column("Facet")
        table.add_column("Address")
        table.add_column("Selectors", justify="right")
        for facet in snapshot.facets:
            table.add_row(facet.facet_name or "[yellow]unresolved[/yellow]", facet.facet_address or "", str(len(facet.selectors)))
        Console().print(table)

    if reference is None:
        status("No stored snapshot for this diamond yet.", style="warning")
    elif detect_drift(reference, snapshot):
        status("Stored snapshot differs from on-chain state.", style="warning")
    if saved is not None:
        status(f"Snapshot appended: {saved}", style="success")
