"""cutplane upgrade command - diff, validate and cut a diamond."""

from pathlib import Path

import click

from cutplane.catalog.builder import BuildInfoCache, build_catalog
from cutplane.cli.utils import cli_errors, load_workspace
from cutplane.core.logging import bind_run_context, start_run
from cutplane.core.progress import pluralize, spinner, status
from cutplane.cut.confirm import always_confirm, prompt_confirm
from cutplane.cut.orchestrator import CutOrchestrator, CutState, UpgradeRequest
from cutplane.git.ops import GitOps
from cutplane.ledger.web3_ledger import Web3Ledger
from cutplane.plan.parsing import load_plan
from cutplane.snapshot.store import SnapshotStore


@click.command()
@click.option("--owner", required=True, help="Diamond owner address that sends the cut")
@click.option("--diamond", required=True, help="Address of the diamond to upgrade")
@click.option(
    "--plan",
    "plan_source",
    required=True,
    help="Upgrade plan: compact '#Facet$$$adds$$$removes' string, or a JSON/YAML file",
)
@click.option("--init-address", default=None, help="Contract to delegatecall after the cut")
@click.option("--init-calldata", default=None, help="Calldata for the init call (0x-hex)")
@click.option("--report-only", is_flag=True, help="Write the diff report and stop before deploying")
@click.option("--fresh-deployment", is_flag=True, help="Diamond has no facets yet; skip Replace instructions")
@click.option("-y", "--yes", is_flag=True, help="Skip the confirmation prompt on production networks")
@click.option(
    "--repo",
    "repo_path",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Contracts repository (default: current directory)",
)
@click.pass_context
def upgrade_command(
    ctx: click.Context,
    owner: str,
    diamond: str,
    plan_source: str,
    init_address: str | None,
    init_calldata: str | None,
    report_only: bool,
    fresh_deployment: bool,
    yes: bool,
    repo_path: Path,
) -> None:
    """Diff the plan against the stored snapshot and apply it as one cut."""
    ws = load_workspace(repo_path, verbose=bool(ctx.obj and ctx.obj.get("verbose")))
    start_run(diamond=diamond)

    with cli_errors():
        plan = load_plan(plan_source)
        git = GitOps(ws.repo_root)
        ledger = Web3Ledger.connect(ws.config.ledger)
        bind_run_context(chain_id=ledger.chain_id(), network=ledger.network)

        with spinner("Loading compiled facets"):
            catalog = build_catalog(ws.artifacts_dir, BuildInfoCache(), repo_root=ws.repo_root)
        status(f"Catalog: {pluralize(len(catalog), 'facet')} from {ws.artifacts_dir}")

        orchestrator = CutOrchestrator(
            ledger,
            catalog,
            SnapshotStore(ws.state_dir),
            deploy_config=ws.config.deploy,
            confirm=always_confirm if yes else prompt_confirm,
            commit=git.head_sha(),
            branch=git.current_branch(),
            changed_paths=git.changed_paths(),
            max_fetch_workers=ws.config.ledger.max_fetch_workers,
        )
        result = orchestrator.run(
            UpgradeRequest(
                owner=owner,
                diamond=diamond,
                plan=plan,
                init_address=init_address,
                init_calldata=init_calldata,
                report_only=report_only,
                fresh_deployment=fresh_deployment,
            )
        )

    status(f"Diff report saved: {result.report_path}")
    if result.latest_link is not None:
        status(f"Review symlinked diff at {result.latest_link}")
    for warning in result.report.warnings:
        status(warning, style="warning")

    if result.state is CutState.REPORTED:
        status("Report only: exiting before the diamond cut.")
    elif result.state is CutState.ABORTED:
        status("Upgrade aborted by user.", style="warning")
    else:
        for name, deployment in result.deployments.items():
            status(f"Deployed {name} at {deployment.address}", style="success")
        status(f"Completed diamond cut: {result.tx_hash}", style="success")
        status(f"Captured new diamond snapshot: {result.snapshot_path}", style="success")
