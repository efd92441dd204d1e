"""Tests for cut/instructions.py."""

from __future__ import annotations

import pytest

from cutplane.catalog.abi import selector_of
from cutplane.config.constants import NULL_ADDRESS
from cutplane.core.errors import DeploymentError, ErrorCode
from cutplane.cut.instructions import FacetDeployment, build_cut_instructions, verify_deployed_selectors
from cutplane.ledger.base import CutAction, FacetCut
from cutplane.plan.parsing import parse_compact
from tests.factories import address

A, B, C, D = (selector_of(s) for s in ("a()", "b()", "c()", "d()"))


def _deployment(name: str, n: int, *selectors: str) -> FacetDeployment:
    return FacetDeployment(name=name, address=address(n), deployed_selectors=tuple(selectors))


class TestBuildCutInstructions:
    """Add, then Replace, then Remove, per plan facet in plan order."""

    def test_add_replace_remove(self) -> None:
        plan = parse_compact("#AlphaFacet$$$c()$$$d()")

        cuts = build_cut_instructions(plan, {"AlphaFacet": _deployment("AlphaFacet", 5, A, B, C)})

        assert cuts == [
            FacetCut(address(5), CutAction.ADD, (C,)),
            FacetCut(address(5), CutAction.REPLACE, (A, B)),
            FacetCut(NULL_ADDRESS, CutAction.REMOVE, (D,)),
        ]

    def test_fresh_deployment_skips_replace(self) -> None:
        plan = parse_compact("#AlphaFacet$$$a()*b()$$$")

        cuts = build_cut_instructions(
            plan, {"AlphaFacet": _deployment("AlphaFacet", 5, A, B, C)}, fresh_deployment=True
        )

        assert cuts == [FacetCut(address(5), CutAction.ADD, (A, B))]

    def test_plan_order_preserved(self) -> None:
        plan = parse_compact("#BetaFacet$$$$$$#AlphaFacet$$$$$$")
        deployments = {
            "AlphaFacet": _deployment("AlphaFacet", 1, A),
            "BetaFacet": _deployment("BetaFacet", 2, B),
        }

        cuts = build_cut_instructions(plan, deployments)

        assert [c.facet_address for c in cuts] == [address(2), address(1)]
        assert all(c.action is CutAction.REPLACE for c in cuts)

    def test_removal_only_entry(self) -> None:
        plan = parse_compact("#$$$$$$0x12345678")

        assert build_cut_instructions(plan, {}) == [FacetCut(NULL_ADDRESS, CutAction.REMOVE, ("0x12345678",))]

    def test_abi_tuple(self) -> None:
        cut = FacetCut(address(5), CutAction.REMOVE, ("0x12345678",))
        assert cut.as_abi_tuple() == (address(5), 2, [bytes.fromhex("12345678")])
        assert cut.to_dict()["action"] == "REMOVE"


class TestVerifyDeployedSelectors:
    def test_all_present(self) -> None:
        planned = parse_compact("#AlphaFacet$$$a()$$$").facets[0]
        verify_deployed_selectors(planned, (A, B))

    def test_missing_selector_raises(self) -> None:
        planned = parse_compact("#AlphaFacet$$$function c() external$$$").facets[0]

        with pytest.raises(DeploymentError) as exc_info:
            verify_deployed_selectors(planned, (A, B))

        assert exc_info.value.code == ErrorCode.DEPLOY_SELECTOR_MISSING
        assert exc_info.value.details == {
            "facet": "AlphaFacet",
            "selector": C,
            "signature": "function c() external",
        }
