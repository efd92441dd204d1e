"""Tests for cut/orchestrator.py - the upgrade state machine end to end.

Every test runs against FakeLedger: a loupe table plus code per address,
with submitted cuts applied in memory.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from cutplane.catalog.abi import selector_of
from cutplane.config.constants import NULL_ADDRESS
from cutplane.config.models import DeployConfig
from cutplane.core.errors import CatalogError, DeploymentError, ErrorCode, LedgerError, ReconciliationError
from cutplane.cut.confirm import always_confirm, never_confirm
from cutplane.cut.orchestrator import CutOrchestrator, CutState, UpgradeRequest, ensure_release_branch
from cutplane.diff.models import DiffReport
from cutplane.ledger.base import CutAction
from cutplane.plan.parsing import parse_compact
from cutplane.snapshot.store import SnapshotStore
from tests.factories import DIAMOND, OWNER, FakeLedger, address, make_catalog, make_entry, make_snapshot

ALPHA_V1 = make_entry("AlphaFacet", ["a()", "b()"])
ALPHA_V2 = make_entry("AlphaFacet", ["a()", "b()", "d()"], code_version="2")
BETA = make_entry("BetaFacet", ["c()"])
BETA_V2 = make_entry("BetaFacet", ["c()"], code_version="2")

ADD_D = "#AlphaFacet$$$d()$$$"


@pytest.fixture
def ledger() -> FakeLedger:
    ledger = FakeLedger()
    ledger.install(ALPHA_V1, address(1))
    ledger.install(BETA, address(2))
    return ledger


@pytest.fixture
def store(tmp_path: Path) -> SnapshotStore:
    return SnapshotStore(tmp_path / "state")


@pytest.fixture
def rendered() -> list[list[str]]:
    return []


def _orchestrator(ledger, store, rendered, *, catalog=None, **kwargs) -> CutOrchestrator:
    return CutOrchestrator(
        ledger,
        catalog or make_catalog(ALPHA_V2, BETA),
        store,
        render=rendered.append,
        **kwargs,
    )


def _request(plan_text: str = ADD_D, **kwargs) -> UpgradeRequest:
    return UpgradeRequest(owner=OWNER, diamond=DIAMOND, plan=parse_compact(plan_text), **kwargs)


def _history(store: SnapshotStore):
    return store.read_history("31337", DIAMOND)


class TestReportOnly:
    """Report-only runs stop after validation."""

    def test_first_run_captures_baseline(self, ledger, store, rendered) -> None:
        # When
        result = _orchestrator(ledger, store, rendered).run(_request(report_only=True))

        # Then
        assert result.state is CutState.REPORTED
        assert result.transitions == [CutState.PLANNED, CutState.VALIDATED, CutState.REPORTED]
        assert result.report.reference_missing
        assert len(_history(store)) == 1
        assert result.report_path.exists()
        assert result.latest_link is None
        assert ledger.deployed == []
        assert ledger.cuts == []
        assert ledger.prepared == []

    def test_summary_rendered(self, ledger, store, rendered) -> None:
        result = _orchestrator(ledger, store, rendered).run(_request(report_only=True))

        assert rendered == [result.report.summary]
        assert rendered[0][0] == f"Diamond diff for {DIAMOND} (chain 31337)"

    def test_stored_reference_used(self, ledger, store, rendered) -> None:
        # Given - a stored snapshot that matches the chain
        store.append(make_snapshot([(ALPHA_V1, address(1)), (BETA, address(2))]))

        # When
        result = _orchestrator(ledger, store, rendered).run(_request(report_only=True))

        # Then
        assert not result.report.reference_missing
        assert not result.report.drift_detected
        assert len(_history(store)) == 1
        diff = result.report.facet("AlphaFacet")
        assert diff is not None
        assert diff.added_ids == [selector_of("d()")]

    def test_drift_reported(self, ledger, store, rendered) -> None:
        store.append(make_snapshot([(ALPHA_V1, address(9)), (BETA, address(2))]))

        result = _orchestrator(ledger, store, rendered).run(_request(report_only=True))

        assert result.report.drift_detected

    def test_unplanned_changes_are_warnings(self, ledger, store, rendered) -> None:
        orchestrator = _orchestrator(
            ledger,
            store,
            rendered,
            catalog=make_catalog(ALPHA_V2, BETA_V2),
            changed_paths=[BETA.source_name],
        )

        result = orchestrator.run(_request(report_only=True))

        assert result.state is CutState.REPORTED
        assert [c.facet_name for c in result.report.unplanned_changes] == ["BetaFacet"]
        assert "Unplanned local facet changes:" in result.report.summary


class TestFullRun:
    """Deploy, cut, confirm and recapture."""

    def test_cut_applied_and_recaptured(self, ledger, store, rendered) -> None:
        # When
        result = _orchestrator(ledger, store, rendered).run(_request())

        # Then
        assert result.state is CutState.SNAPSHOT_RECAPTURED
        assert result.transitions == [
            CutState.PLANNED,
            CutState.VALIDATED,
            CutState.CONFIRMED,
            CutState.DEPLOYING_MODULES,
            CutState.CUT_SUBMITTED,
            CutState.CUT_CONFIRMED,
            CutState.SNAPSHOT_RECAPTURED,
        ]
        new_address = result.deployments["AlphaFacet"].address
        assert ledger.deployed == [("AlphaFacet", new_address)]
        assert ledger.prepared == [OWNER]
        assert [(c.action, set(c.selectors)) for c in result.cuts] == [
            (CutAction.ADD, {selector_of("d()")}),
            (CutAction.REPLACE, {selector_of("a()"), selector_of("b()")}),
        ]
        assert ledger.init_calls == [(NULL_ADDRESS, "0x")]

        latest = _history(store).latest
        assert latest is not None
        alpha = latest.facet_by_name("AlphaFacet")
        assert alpha is not None
        assert alpha.facet_address == new_address
        assert len(alpha.selectors) == 3
        assert result.snapshot_path is not None
        assert result.snapshot_path.exists()

    def test_history_grows_by_one_per_cut(self, ledger, store, rendered) -> None:
        _orchestrator(ledger, store, rendered).run(_request())
        second = _orchestrator(ledger, store, rendered).run(_request("#AlphaFacet$$$$$$"))

        # baseline + one entry per cut
        assert len(_history(store)) == 3
        assert not second.report.reference_missing
        assert not second.report.drift_detected
        assert second.report.facet("AlphaFacet") is None

    def test_init_call_forwarded(self, ledger, store, rendered) -> None:
        init = address(0x1417)

        _orchestrator(ledger, store, rendered).run(_request(init_address=init, init_calldata="0xe1c7392a"))

        assert ledger.init_calls == [(init, "0xe1c7392a")]

    def test_removal_cut(self, ledger, store, rendered) -> None:
        result = _orchestrator(ledger, store, rendered, catalog=make_catalog(ALPHA_V1, BETA)).run(
            _request("#$$$$$$c()")
        )

        assert [(c.facet_address, c.action) for c in result.cuts] == [(NULL_ADDRESS, CutAction.REMOVE)]
        assert ledger.deployed == []
        latest = _history(store).latest
        assert latest is not None
        assert latest.facet_by_name("BetaFacet") is None

    def test_redeploy_with_removal(self, store, rendered) -> None:
        """A facet redeployed without one of its functions drops it from the diamond."""
        # Given - Beta serves a, b and c(uint256); the new build drops c(uint256)
        beta_v1 = make_entry("BetaFacet", ["a()", "b()", "c(uint256)"])
        beta_v2 = make_entry("BetaFacet", ["a()", "b()"], code_version="2")
        ledger = FakeLedger()
        ledger.install(beta_v1, address(2))
        store.append(make_snapshot([(beta_v1, address(2))]))

        # When
        result = _orchestrator(ledger, store, rendered, catalog=make_catalog(beta_v2)).run(
            _request("#BetaFacet$$$$$$c(uint256)")
        )

        # Then
        assert result.state is CutState.SNAPSHOT_RECAPTURED
        assert not result.report.drift_detected
        diff = result.report.facet("BetaFacet")
        assert diff is not None
        assert diff.removed_ids == [selector_of("c(uint256)")]
        assert diff.added_ids == []
        new_address = result.deployments["BetaFacet"].address
        assert [(c.facet_address, c.action, set(c.selectors)) for c in result.cuts] == [
            (new_address, CutAction.REPLACE, {selector_of("a()"), selector_of("b()")}),
            (NULL_ADDRESS, CutAction.REMOVE, {selector_of("c(uint256)")}),
        ]
        latest = _history(store).latest
        assert latest is not None
        beta = latest.facet_by_name("BetaFacet")
        assert beta is not None
        assert beta.facet_address == new_address
        assert len(beta.selectors) == 2

    def test_fresh_deployment_adds_only(self, store, rendered) -> None:
        ledger = FakeLedger()
        plan = "#AlphaFacet$$$a()*b()*d()$$$"

        result = _orchestrator(ledger, store, rendered).run(_request(plan, fresh_deployment=True))

        assert [c.action for c in result.cuts] == [CutAction.ADD]
        assert set(result.cuts[0].selectors) == set(ALPHA_V2.selector_ids)
        assert result.report.facet("AlphaFacet").introduced

    def test_failed_transaction(self, ledger, store, rendered) -> None:
        ledger.receipt_status = False
        orchestrator = _orchestrator(ledger, store, rendered)

        with pytest.raises(LedgerError) as exc_info:
            orchestrator.run(_request())

        assert exc_info.value.code == ErrorCode.LEDGER_TRANSACTION_FAILED
        assert orchestrator.state is CutState.CUT_SUBMITTED
        assert len(_history(store)) == 1


class TestFailuresBeforeWrites:
    """Fatal checks run before the first ledger write."""

    def test_reconciliation_failure(self, ledger, store, rendered) -> None:
        orchestrator = _orchestrator(ledger, store, rendered)

        with pytest.raises(ReconciliationError):
            orchestrator.run(_request("#AlphaFacet$$$$$$"))

        assert orchestrator.state is CutState.PLANNED
        assert ledger.prepared == []
        assert ledger.deployed == []
        # The report is still written for review
        assert len(list((store.state_dir / "diamond" / "31337" / "diffs").iterdir())) == 1

    def test_declared_add_already_installed(self, ledger, store, rendered) -> None:
        """Declaring an installed function as added fails before any deploy."""
        store.append(make_snapshot([(ALPHA_V1, address(1)), (BETA, address(2))]))
        orchestrator = _orchestrator(ledger, store, rendered, catalog=make_catalog(ALPHA_V1, BETA))

        with pytest.raises(ReconciliationError) as exc_info:
            orchestrator.run(_request("#AlphaFacet$$$a()$$$"))

        assert exc_info.value.details["mismatches"] == [
            "Facet AlphaFacet expects to add functions a() but no corresponding implementation changes were detected."
        ]
        assert ledger.deployed == []
        assert ledger.cuts == []

    def test_all_facets_checked_before_first_deploy(
        self, ledger, store, rendered, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        # Given - reconciliation bypassed, and the second facet lacks a declared add
        monkeypatch.setattr("cutplane.cut.orchestrator.ensure_reconciled", lambda plan, report: None)
        orchestrator = _orchestrator(ledger, store, rendered, catalog=make_catalog(ALPHA_V2, BETA_V2))

        # When
        with pytest.raises(DeploymentError) as exc_info:
            orchestrator.run(_request("#BetaFacet$$$$$$#AlphaFacet$$$e()$$$"))

        # Then
        assert exc_info.value.code == ErrorCode.DEPLOY_SELECTOR_MISSING
        assert exc_info.value.details["facet"] == "AlphaFacet"
        assert ledger.prepared == []
        assert ledger.deployed == []
        assert ledger.cuts == []

    def test_unknown_facet(self, ledger, store, rendered) -> None:
        with pytest.raises(CatalogError):
            _orchestrator(ledger, store, rendered).run(_request("#GhostFacet$$$$$$"))
        assert ledger.deployed == []


class TestProductionGating:
    """Production networks need the release branch and a human yes."""

    @pytest.fixture
    def prod_ledger(self) -> FakeLedger:
        ledger = FakeLedger(network="base", chain_id="8453")
        ledger.install(ALPHA_V1, address(1))
        ledger.install(BETA, address(2))
        return ledger

    def test_confirmed(self, prod_ledger, store, rendered) -> None:
        seen: list[DiffReport] = []

        def confirm(report: DiffReport) -> bool:
            seen.append(report)
            return True

        result = _orchestrator(prod_ledger, store, rendered, confirm=confirm, branch="master").run(_request())

        assert result.state is CutState.SNAPSHOT_RECAPTURED
        assert seen == [result.report]
        assert result.latest_link is not None
        assert result.latest_link.resolve() == result.report_path.resolve()

    def test_declined(self, prod_ledger, store, rendered) -> None:
        result = _orchestrator(prod_ledger, store, rendered, confirm=never_confirm, branch="master").run(_request())

        assert result.state is CutState.ABORTED
        assert prod_ledger.deployed == []
        assert prod_ledger.cuts == []
        assert result.latest_link is not None

    def test_non_production_skips_confirmation(self, ledger, store, rendered) -> None:
        result = _orchestrator(ledger, store, rendered, confirm=never_confirm).run(_request())
        assert result.state is CutState.SNAPSHOT_RECAPTURED

    def test_wrong_branch_refused_before_capture(self, prod_ledger, store, rendered) -> None:
        orchestrator = _orchestrator(prod_ledger, store, rendered, confirm=always_confirm, branch="feature/x")

        with pytest.raises(DeploymentError) as exc_info:
            orchestrator.run(_request())

        assert exc_info.value.code == ErrorCode.BRANCH_NOT_ALLOWED
        assert prod_ledger.get_code_calls == 0
        assert store.read_latest("8453", DIAMOND) is None

    def test_custom_release_branch(self) -> None:
        config = DeployConfig(production_networks=["mainnet"], release_branch="main")

        ensure_release_branch("mainnet", "main", config)
        ensure_release_branch("base", "feature", config)
        with pytest.raises(DeploymentError):
            ensure_release_branch("mainnet", None, config)
