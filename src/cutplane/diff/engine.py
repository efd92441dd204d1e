"""Diff engine - compare reference, planned and live diamond states.

Facet correspondence between the reference and the plan is resolved in
three tiers: facet name, facet address, then the reference facet owning
the most selectors of the planned facet (plurality). The plurality tier
is a heuristic, so a match through it is reported as a warning.

Shared selectors are classified:
- direct: both source hashes known and different
- implementation hash changed and the facet's internal routines changed:
  indirect if both source hashes are known, direct otherwise

The indirect rule does not trace call edges: any internal change marks
every shared selector whose implementation hash moved. Over-reporting is
accepted; missing a change is not.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from cutplane.catalog.abi import derive_function_name
from cutplane.catalog.models import CatalogEntry, InternalRoutineInfo, SelectorInfo
from cutplane.diff.models import DiffReport, FacetDiff, Removal, SelectorChange, SelectorMove
from cutplane.diff.summary import build_summary
from cutplane.plan.builder import PlannedState
from cutplane.snapshot.models import DiamondSnapshot, FacetRecord

log = structlog.get_logger(__name__)


# =============================================================================
# Set-level diffs
# =============================================================================


@dataclass
class SelectorSplit:
    added: list[SelectorInfo]
    removed: list[SelectorInfo]
    shared: list[tuple[SelectorInfo, SelectorInfo]]  # (previous, planned)


def split_selectors(previous: Sequence[SelectorInfo], planned: Sequence[SelectorInfo]) -> SelectorSplit:
    prev_map = {s.selector: s for s in previous}
    planned_map = {s.selector: s for s in planned}
    return SelectorSplit(
        added=[s for key, s in planned_map.items() if key not in prev_map],
        removed=[s for key, s in prev_map.items() if key not in planned_map],
        shared=[(s, planned_map[key]) for key, s in prev_map.items() if key in planned_map],
    )


def diff_internal_routines(
    previous: Sequence[InternalRoutineInfo] | None,
    planned: Sequence[InternalRoutineInfo] | None,
) -> tuple[list[str], list[str], list[str]]:
    """Return (added, removed, modified) labels like ``"internal _foo"``."""
    prev_map = {r.key: r for r in previous or ()}
    planned_map = {r.key: r for r in planned or ()}

    removed = [r.label for key, r in prev_map.items() if key not in planned_map]
    added: list[str] = []
    modified: list[str] = []
    for key, routine in planned_map.items():
        before = prev_map.get(key)
        if before is None:
            added.append(routine.label)
            continue
        content_changed = _both_differ(before.content_hash, routine.content_hash)
        source_changed = _both_differ(before.source_hash, routine.source_hash)
        same_source = bool(before.source_hash and routine.source_hash) and before.source_hash == routine.source_hash
        if (content_changed or source_changed) and not same_source:
            modified.append(routine.label)
    return added, removed, modified


def diff_events(previous: Sequence[str] | None, planned: Sequence[str] | None) -> tuple[list[str], list[str]]:
    prev_set = set(previous or ())
    planned_set = set(planned or ())
    added = [e for e in planned or () if e not in prev_set]
    removed = [e for e in previous or () if e not in planned_set]
    return added, removed


def _both_differ(a: str | None, b: str | None) -> bool:
    return bool(a and b) and a != b


def to_change(info: SelectorInfo) -> SelectorChange:
    return SelectorChange(
        selector=info.selector,
        signature=info.signature or info.selector,
        function_name=derive_function_name(info.function_name, info.signature, info.selector),
    )


# =============================================================================
# Facet-level diffs
# =============================================================================


def diff_facet_pair(previous: FacetRecord, planned: FacetRecord) -> FacetDiff:
    """Compare two corresponding facet records."""
    split = split_selectors(previous.selectors, planned.selectors)
    internal_added, internal_removed, internal_modified = diff_internal_routines(
        previous.internal_routines, planned.internal_routines
    )
    has_internal_delta = bool(internal_added or internal_removed or internal_modified)
    events_added, events_removed = diff_events(previous.events, planned.events)

    direct: list[SelectorChange] = []
    indirect: list[SelectorChange] = []
    for before, after in split.shared:
        if _both_differ(before.source_hash, after.source_hash):
            direct.append(to_change(after))
        elif _both_differ(before.implementation_hash, after.implementation_hash) and has_internal_delta:
            if before.source_hash and after.source_hash:
                indirect.append(to_change(after))
            else:
                direct.append(to_change(after))

    return FacetDiff(
        facet_name=planned.facet_name or previous.facet_name or planned.facet_address or previous.facet_address,
        previous_selector_count=len(previous.selectors),
        planned_selector_count=len(planned.selectors),
        selectors_added=[to_change(s) for s in split.added],
        selectors_removed=[to_change(s) for s in split.removed],
        modified_direct=direct,
        modified_indirect=indirect,
        internal_added=internal_added,
        internal_removed=internal_removed,
        internal_modified=internal_modified,
        events_added=events_added,
        events_removed=events_removed,
        abi_changed=_both_differ(previous.abi_hash, planned.abi_hash),
        bytecode_changed=_both_differ(previous.bytecode_hash, planned.bytecode_hash),
    )


def diff_facet_against_reference(reference_facet: FacetRecord, entry: CatalogEntry) -> FacetDiff | None:
    """Compare a stored facet with its current compiled form; None if unchanged."""
    diff = diff_facet_pair(reference_facet, FacetRecord.from_catalog(entry))
    if not diff.has_changes:
        return None
    diff.facet_name = reference_facet.facet_name or entry.contract_name
    return diff


class FacetCorrespondence:
    """Find the reference facet a planned facet replaces."""

    def __init__(self, reference: DiamondSnapshot) -> None:
        self._owners = reference.selector_owners()
        self._by_name = {f.facet_name: f for f in reference.facets if f.facet_name}
        self._by_address = {f.facet_address.lower(): f for f in reference.facets if f.facet_address}

    def resolve(self, planned: FacetRecord) -> tuple[FacetRecord | None, str | None, int]:
        """Return (reference facet, tier, shared selector count)."""
        if planned.facet_name and planned.facet_name in self._by_name:
            return self._by_name[planned.facet_name], "name", 0
        if planned.facet_address and planned.facet_address.lower() in self._by_address:
            return self._by_address[planned.facet_address.lower()], "address", 0

        counts: dict[str, tuple[FacetRecord, int]] = {}
        for info in planned.selectors:
            owner = self._owners.get(info.selector)
            if owner is None:
                continue
            key = (owner.facet_address or "").lower() or owner.facet_name or info.selector
            facet, count = counts.get(key, (owner, 0))
            counts[key] = (facet, count + 1)

        best: tuple[FacetRecord, int] | None = None
        for candidate in counts.values():
            if best is None or candidate[1] > best[1]:
                best = candidate
        if best is None:
            return None, None, 0
        return best[0], "plurality", best[1]


def _introduced_facet(planned: FacetRecord, owners: dict[str, FacetRecord]) -> FacetDiff:
    return FacetDiff(
        facet_name=planned.facet_name or planned.facet_address,
        introduced=True,
        previous_selector_count=0,
        planned_selector_count=len(planned.selectors),
        selectors_added=[to_change(s) for s in planned.selectors if s.selector not in owners],
    )


# =============================================================================
# Report
# =============================================================================


def detect_drift(reference: DiamondSnapshot, live: DiamondSnapshot) -> bool:
    """True if any selector is served by a different facet in ``reference`` and ``live``."""
    ref_owners = reference.selector_owners()
    live_owners = live.selector_owners()
    if len(ref_owners) != len(live_owners):
        return True
    for selector, facet in ref_owners.items():
        other = live_owners.get(selector)
        if other is None or not _same_owner(facet, other):
            return True
    return False


def _same_owner(a: FacetRecord, b: FacetRecord) -> bool:
    # Addresses identify on-chain owners; names only when an address is missing
    if a.facet_address and b.facet_address:
        return a.facet_address.lower() == b.facet_address.lower()
    return a.label == b.label


def compute_diff_report(
    reference: DiamondSnapshot | None,
    planned: PlannedState,
    live: DiamondSnapshot | None,
    *,
    reference_missing: bool | None = None,
    generated_at: datetime | None = None,
) -> DiffReport:
    """Build the diff report for a planned cut.

    Args:
        reference: Last trusted snapshot; None when no history exists.
        planned: Planned facets and removals.
        live: Freshly captured on-chain snapshot, for drift detection.
        reference_missing: Force the missing-reference flag, for a
            reference that was just captured as a first baseline.
        generated_at: Report timestamp; defaults to now (UTC).

    Raises:
        SnapshotError: If any input snapshot violates selector uniqueness.
    """
    target = planned.snapshot
    report = DiffReport(
        diamond_address=target.diamond_address,
        chain_id=target.chain_id,
        block_number=target.block_number,
        generated_at=generated_at or datetime.now(UTC),
        reference_timestamp=reference.block_timestamp if reference else None,
        reference_missing=reference is None if reference_missing is None else reference_missing,
        reference_commit=reference.commit if reference else None,
        planned_commit=target.commit,
    )
    planned_owners = target.selector_owners()

    if reference is not None:
        ref_owners = reference.selector_owners()
        correspondence = FacetCorrespondence(reference)

        for facet in target.facets:
            previous, tier, shared = correspondence.resolve(facet)
            if previous is None:
                diff = _introduced_facet(facet, ref_owners)
            else:
                if tier == "plurality":
                    warning = (
                        f"Facet {facet.facet_name} matched reference facet {previous.label} "
                        f"by shared selectors only ({shared} of {len(facet.selectors)}); verify the correspondence."
                    )
                    report.warnings.append(warning)
                    log.warning(
                        "diff.plurality_match",
                        facet=facet.facet_name,
                        reference_facet=previous.label,
                        shared=shared,
                    )
                diff = diff_facet_pair(previous, facet)
            if diff.has_changes:
                report.facets.append(diff)

        for selector, facet in planned_owners.items():
            previous_owner = ref_owners.get(selector)
            if previous_owner is None:
                continue
            if previous_owner.facet_name and facet.facet_name and previous_owner.facet_name != facet.facet_name:
                info = facet.selector(selector)
                report.selector_moves.append(
                    SelectorMove(
                        selector=selector,
                        signature=info.signature if info else None,
                        from_facet=previous_owner.facet_name,
                        to_facet=facet.facet_name,
                    )
                )
    else:
        ref_owners = {}

    for selector in dict.fromkeys(planned.removals):
        owner = ref_owners.get(selector)
        info = owner.selector(selector) if owner else None
        report.removals.append(
            Removal(
                selector=selector,
                signature=info.signature if info else None,
                from_facet=owner.facet_name if owner else None,
            )
        )

    if reference is not None and live is not None:
        report.drift_detected = detect_drift(reference, live)
        if report.drift_detected:
            log.warning("diff.drift_detected", diamond=target.diamond_address, chain_id=target.chain_id)

    report.summary = build_summary(report)
    log.info(
        "diff.computed",
        facets=len(report.facets),
        moves=len(report.selector_moves),
        removals=len(report.removals),
        drift=report.drift_detected,
        reference_missing=report.reference_missing,
    )
    return report
