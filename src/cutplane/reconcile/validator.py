"""Check declared plan intent against the computed diff.

Two independent checks:

- ``reconcile_plan``: per planned facet, every compiled add/remove must be
  declared, and every declared add/remove must be visible in the diff.
- ``find_unplanned_changes``: facets outside the plan whose source files
  have uncommitted edits that change their compiled form.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from cutplane.catalog.models import FacetCatalog
from cutplane.core.errors import ReconciliationError
from cutplane.diff.engine import diff_facet_against_reference
from cutplane.diff.models import DiffReport, FacetDiff, UnplannedChange
from cutplane.diff.summary import unplanned_lines
from cutplane.plan.models import UpgradePlan
from cutplane.snapshot.models import DiamondSnapshot

log = structlog.get_logger(__name__)


def reconcile_plan(plan: UpgradePlan, report: DiffReport) -> list[str]:
    """Return one message per direction of mismatch; empty when consistent."""
    problems: list[str] = []
    for planned in plan.facets:
        if not planned.name:
            continue
        diff = report.facet(planned.name)

        declared_adds = set(planned.add_selector_ids)
        undeclared = [c for c in diff.selectors_added if c.selector not in declared_adds] if diff else []
        if undeclared:
            problems.append(
                f"Facet {planned.name} adds functions {', '.join(c.function_name for c in undeclared)} "
                "but they are not listed in add selectors."
            )

        # An unchanged facet has no diff; its declared adds and removes are unseen
        detected_adds = set(diff.added_ids) if diff else set()
        unseen = [planned.declared_add(s) for s in planned.add_selector_ids if s not in detected_adds]
        if unseen:
            problems.append(
                f"Facet {planned.name} expects to add functions {', '.join(t for t in unseen if t)} "
                "but no corresponding implementation changes were detected."
            )

        declared_removes = set(planned.remove_selector_ids)
        unlisted = [c for c in diff.selectors_removed if c.selector not in declared_removes] if diff else []
        if unlisted:
            problems.append(
                f"Facet {planned.name} removes functions {', '.join(c.function_name for c in unlisted)} "
                "but they are not listed in remove selectors."
            )

        detected_removes = set(diff.removed_ids) if diff else set()
        remaining = [planned.declared_remove(s) for s in planned.remove_selector_ids if s not in detected_removes]
        if remaining:
            problems.append(
                f"Facet {planned.name} expects to remove functions {', '.join(t for t in remaining if t)} "
                "but they remain in the compiled facet."
            )
    return problems


def ensure_reconciled(plan: UpgradePlan, report: DiffReport) -> None:
    """Raises ReconciliationError listing every mismatch."""
    problems = reconcile_plan(plan, report)
    if problems:
        log.error("reconcile.failed", mismatches=len(problems))
        raise ReconciliationError.mismatches(problems)
    log.debug("reconcile.ok", facets=len(plan.facets))


def summarize_facet_changes(diff: FacetDiff) -> str:
    """One-line description used in unplanned-change warnings."""
    segments: list[str] = []

    def add(label: str, values: list[str]) -> None:
        if values:
            segments.append(f"{label} ({', '.join(values)})")

    add("added externals", [c.function_name for c in diff.selectors_added])
    add("removed externals", [c.function_name for c in diff.selectors_removed])
    add("modified externals", [c.function_name for c in diff.modified_direct])
    add("externals affected via internals", [c.function_name for c in diff.modified_indirect])
    add("added internals", diff.internal_added)
    add("removed internals", diff.internal_removed)
    add("modified internals", diff.internal_modified)
    add("added events", diff.events_added)
    add("removed events", diff.events_removed)
    if diff.abi_changed:
        segments.append("ABI changed")
    if diff.bytecode_changed:
        segments.append("bytecode changed")
    return "; ".join(segments)


def find_unplanned_changes(
    baseline: DiamondSnapshot,
    catalog: FacetCatalog,
    plan: UpgradePlan,
    changed_paths: Iterable[str],
) -> list[UnplannedChange]:
    """Facets not in ``plan`` whose edited source changes their compiled form."""
    changed = {p.replace("\\", "/") for p in changed_paths}
    planned_names = plan.facet_names
    found: list[UnplannedChange] = []
    for facet in baseline.facets:
        name = facet.facet_name
        if not name or name in planned_names:
            continue
        entry = catalog.get(name)
        if entry is None or not entry.source_name or entry.source_name not in changed:
            continue
        diff = diff_facet_against_reference(facet, entry)
        if diff is None:
            continue
        found.append(UnplannedChange(facet_name=name, source_name=entry.source_name, detail=summarize_facet_changes(diff)))

    if found:
        log.warning("reconcile.unplanned_changes", facets=[c.facet_name for c in found])
    return found


def attach_unplanned(report: DiffReport, changes: list[UnplannedChange]) -> None:
    """Record unplanned changes on the report and extend its summary."""
    report.unplanned_changes = list(changes)
    report.summary.extend(unplanned_lines(changes))
