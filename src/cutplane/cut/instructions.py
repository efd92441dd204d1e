"""Build the Add/Replace/Remove instruction list for a diamond cut."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from cutplane.config.constants import NULL_ADDRESS
from cutplane.core.errors import DeploymentError
from cutplane.ledger.base import CutAction, FacetCut
from cutplane.plan.models import PlannedFacet, UpgradePlan


@dataclass(frozen=True, slots=True)
class FacetDeployment:
    """A freshly deployed facet and the selectors its code serves."""

    name: str
    address: str
    deployed_selectors: tuple[str, ...]


def verify_deployed_selectors(planned: PlannedFacet, deployed_selectors: Iterable[str]) -> None:
    """Every declared add must be served by the code that will be deployed.

    Raises:
        DeploymentError: On the first declared selector the code lacks.
    """
    served = set(deployed_selectors)
    for selector in planned.add_selector_ids:
        if selector not in served:
            raise DeploymentError.selector_missing(
                planned.name, selector, planned.declared_add(selector) or selector
            )


def build_cut_instructions(
    plan: UpgradePlan,
    deployments: dict[str, FacetDeployment],
    *,
    fresh_deployment: bool = False,
) -> list[FacetCut]:
    """Instructions in plan order, per facet: Add, Replace, then Remove.

    - Add: the facet's declared adds, against the new address.
    - Replace: every other selector the new code serves, against the new
      address; skipped for a freshly deployed diamond.
    - Remove: the facet's declared removals, against the null address.
    """
    cuts: list[FacetCut] = []
    for planned in plan.facets:
        deployment = deployments.get(planned.name) if planned.name else None
        if deployment is not None:
            new = planned.add_selector_ids
            if new:
                cuts.append(FacetCut(deployment.address, CutAction.ADD, tuple(new)))
            if not fresh_deployment:
                existing = tuple(s for s in deployment.deployed_selectors if s not in set(new))
                if existing:
                    cuts.append(FacetCut(deployment.address, CutAction.REPLACE, existing))
        removals = planned.remove_selector_ids
        if removals:
            cuts.append(FacetCut(NULL_ADDRESS, CutAction.REMOVE, tuple(removals)))
    return cuts
