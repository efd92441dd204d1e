"""Cut orchestration - from plan to confirmed on-chain cut.

State machine::

    PLANNED -> VALIDATED -> CONFIRMED -> DEPLOYING_MODULES -> CUT_SUBMITTED
            -> CUT_CONFIRMED -> SNAPSHOT_RECAPTURED

    VALIDATED -> REPORTED   (report-only run)
    VALIDATED -> ABORTED    (confirmation denied)

Every fatal check (catalog lookup, reconciliation, deployed-selector
check, branch guard) runs before the first ledger write. The cut is submitted once and awaited;
there is no retry.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path

import structlog

from cutplane.catalog.models import CatalogEntry, FacetCatalog
from cutplane.config.constants import NULL_ADDRESS
from cutplane.config.models import DeployConfig
from cutplane.core.errors import CatalogError, DeploymentError, LedgerError
from cutplane.cut.confirm import Confirmation, prompt_confirm
from cutplane.cut.instructions import FacetDeployment, build_cut_instructions, verify_deployed_selectors
from cutplane.diff.engine import compute_diff_report
from cutplane.diff.models import DiffReport
from cutplane.diff.report import link_latest_diff, persist_diff_report
from cutplane.diff.summary import render_summary
from cutplane.ledger.base import FacetCut, Ledger
from cutplane.plan.builder import build_planned_state
from cutplane.plan.models import PlannedFacet, UpgradePlan
from cutplane.reconcile.validator import attach_unplanned, ensure_reconciled, find_unplanned_changes
from cutplane.snapshot.capture import SnapshotCapturer
from cutplane.snapshot.store import SnapshotStore

log = structlog.get_logger(__name__)


class CutState(Enum):
    PLANNED = "planned"
    VALIDATED = "validated"
    CONFIRMED = "confirmed"
    DEPLOYING_MODULES = "deploying_modules"
    CUT_SUBMITTED = "cut_submitted"
    CUT_CONFIRMED = "cut_confirmed"
    SNAPSHOT_RECAPTURED = "snapshot_recaptured"
    REPORTED = "reported"
    ABORTED = "aborted"


@dataclass(frozen=True)
class UpgradeRequest:
    owner: str
    diamond: str
    plan: UpgradePlan
    init_address: str | None = None
    init_calldata: str | None = None
    report_only: bool = False
    fresh_deployment: bool = False


@dataclass
class UpgradeResult:
    state: CutState
    report: DiffReport
    report_path: Path
    latest_link: Path | None = None
    deployments: dict[str, FacetDeployment] = field(default_factory=dict)
    cuts: list[FacetCut] = field(default_factory=list)
    tx_hash: str | None = None
    snapshot_path: Path | None = None
    transitions: list[CutState] = field(default_factory=list)


def ensure_release_branch(network: str, branch: str | None, config: DeployConfig) -> None:
    """Production networks may only be upgraded from the release branch.

    Raises:
        DeploymentError: If ``network`` is a production network and
            ``branch`` is not the release branch.
    """
    if network in config.production_networks and branch != config.release_branch:
        raise DeploymentError.branch_not_allowed(network, branch, config.release_branch)


class CutOrchestrator:
    """Run one upgrade end to end against a ledger."""

    def __init__(
        self,
        ledger: Ledger,
        catalog: FacetCatalog,
        store: SnapshotStore,
        *,
        deploy_config: DeployConfig | None = None,
        confirm: Confirmation = prompt_confirm,
        commit: str | None = None,
        branch: str | None = None,
        changed_paths: Iterable[str] = (),
        max_fetch_workers: int = 8,
        render: Callable[[list[str]], None] | None = None,
    ) -> None:
        self._ledger = ledger
        self._catalog = catalog
        self._store = store
        self._config = deploy_config or DeployConfig()
        self._confirm = confirm
        self._commit = commit
        self._branch = branch
        self._changed_paths = set(changed_paths)
        self._capturer = SnapshotCapturer(ledger, catalog, max_workers=max_fetch_workers)
        self._render = render or partial(render_summary, max_lines=self._config.summary_max_lines)
        self._state = CutState.PLANNED
        self._transitions: list[CutState] = [CutState.PLANNED]

    @property
    def state(self) -> CutState:
        return self._state

    def _advance(self, state: CutState) -> None:
        log.info("cut.state", previous=self._state.value, state=state.value)
        self._state = state
        self._transitions.append(state)

    def analyze(self, request: UpgradeRequest) -> tuple[DiffReport, Path, Path | None]:
        """Capture, diff, persist and reconcile; no ledger writes.

        Raises:
            CatalogError: If a planned facet is not compiled.
            ReconciliationError: If the plan and the diff disagree.
        """
        network = self._ledger.network
        production = network in self._config.production_networks

        live = self._capturer.capture(request.diamond, self._commit)
        reference = self._store.read_latest(live.chain_id, request.diamond)
        first_run = reference is None
        if first_run:
            self._store.append(live)
            reference = live
            log.info("cut.baseline_captured", diamond=request.diamond, chain_id=live.chain_id)

        planned = build_planned_state(request.plan, self._catalog, live)
        report = compute_diff_report(reference, planned, live, reference_missing=first_run)
        attach_unplanned(
            report,
            find_unplanned_changes(reference, self._catalog, request.plan, self._changed_paths),
        )

        report_path = persist_diff_report(report, self._store.state_dir)
        latest = link_latest_diff(report_path, self._store.state_dir) if production else None
        self._render(report.summary)

        ensure_reconciled(request.plan, report)
        self._advance(CutState.VALIDATED)
        return report, report_path, latest

    def run(self, request: UpgradeRequest) -> UpgradeResult:
        """Execute the upgrade described by ``request``.

        Raises:
            DeploymentError: Branch guard, failed deploy, or missing selector.
            LedgerError: If the cut transaction fails.
            CatalogError, ReconciliationError, SnapshotError: Before any write.
        """
        ensure_release_branch(self._ledger.network, self._branch, self._config)
        production = self._ledger.network in self._config.production_networks

        report, report_path, latest = self.analyze(request)
        result = UpgradeResult(
            state=self._state,
            report=report,
            report_path=report_path,
            latest_link=latest,
            transitions=self._transitions,
        )

        if request.report_only:
            self._advance(CutState.REPORTED)
            result.state = self._state
            return result

        deployable = self._resolve_deployable(request.plan)

        if production and not self._confirm(report):
            log.info("cut.aborted", diamond=request.diamond)
            self._advance(CutState.ABORTED)
            result.state = self._state
            return result
        self._advance(CutState.CONFIRMED)

        self._ledger.prepare_sender(request.owner)
        self._advance(CutState.DEPLOYING_MODULES)
        result.deployments = self._deploy_facets(deployable, request.owner)
        result.cuts = build_cut_instructions(
            request.plan, result.deployments, fresh_deployment=request.fresh_deployment
        )

        tx_hash = self._ledger.submit_cut(
            request.diamond,
            result.cuts,
            request.init_address or NULL_ADDRESS,
            request.init_calldata or "0x",
            request.owner,
        )
        result.tx_hash = tx_hash
        self._advance(CutState.CUT_SUBMITTED)
        log.info("cut.submitted", tx_hash=tx_hash, instructions=len(result.cuts))

        receipt = self._ledger.wait_for_receipt(tx_hash)
        if not receipt.status:
            raise LedgerError.transaction_failed(tx_hash)
        self._advance(CutState.CUT_CONFIRMED)

        after = self._capturer.capture(request.diamond, self._commit)
        result.snapshot_path = self._store.append(after)
        self._advance(CutState.SNAPSHOT_RECAPTURED)
        result.state = self._state
        return result

    def _resolve_deployable(self, plan: UpgradePlan) -> list[tuple[PlannedFacet, CatalogEntry]]:
        """Catalog entry per named facet, each checked to serve its declared adds.

        Raises:
            CatalogError: If a named facet is not compiled.
            DeploymentError: If compiled code lacks a declared add.
        """
        deployable: list[tuple[PlannedFacet, CatalogEntry]] = []
        for planned in plan.facets:
            if not planned.name:
                continue
            entry = self._catalog.get(planned.name)
            if entry is None:
                raise CatalogError.module_not_found(planned.name)
            verify_deployed_selectors(planned, entry.selector_ids)
            deployable.append((planned, entry))
        return deployable

    def _deploy_facets(
        self, deployable: list[tuple[PlannedFacet, CatalogEntry]], owner: str
    ) -> dict[str, FacetDeployment]:
        deployments: dict[str, FacetDeployment] = {}
        for planned, entry in deployable:
            address = self._ledger.deploy(entry, owner)
            deployments[planned.name] = FacetDeployment(
                name=planned.name,
                address=address,
                deployed_selectors=tuple(entry.selector_ids),
            )
            log.info("cut.facet_deployed", facet=planned.name, address=address)
        return deployments
