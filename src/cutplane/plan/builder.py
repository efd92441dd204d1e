"""Project an upgrade plan onto the catalog as a planned snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from cutplane.catalog.models import FacetCatalog
from cutplane.core.errors import CatalogError
from cutplane.plan.models import UpgradePlan
from cutplane.snapshot.models import DiamondSnapshot, FacetRecord

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PlannedState:
    """Snapshot-shaped view of the diamond's planned facets, plus removals."""

    snapshot: DiamondSnapshot
    removals: list[str] = field(default_factory=list)


def build_planned_state(plan: UpgradePlan, catalog: FacetCatalog, live: DiamondSnapshot) -> PlannedState:
    """Describe every named facet as it is currently compiled.

    Block coordinates and origin commit come from ``live``.

    Raises:
        CatalogError: If a named facet is not in the compiled artifacts.
        SnapshotError: If two planned facets serve the same selector.
    """
    facets: list[FacetRecord] = []
    removals: list[str] = []
    for planned in plan.facets:
        if planned.name:
            entry = catalog.get(planned.name)
            if entry is None:
                raise CatalogError.module_not_found(planned.name)
            facets.append(FacetRecord.from_catalog(entry))
        for selector in planned.remove_selector_ids:
            if selector not in removals:
                removals.append(selector)

    snapshot = DiamondSnapshot(
        diamond_address=live.diamond_address,
        chain_id=live.chain_id,
        network=live.network,
        block_number=live.block_number,
        block_timestamp=live.block_timestamp,
        facets=tuple(facets),
        commit=live.commit,
    )
    snapshot.check_selector_uniqueness()
    log.debug("plan.projected", facets=len(facets), removals=len(removals))
    return PlannedState(snapshot=snapshot, removals=removals)
