"""Data models for diamond diffs.

All models are plain dataclasses. A report is generated per run and
persisted only as an audit artifact; it is never read back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class SelectorChange:
    """An external function in a diff, with its best display name."""

    selector: str
    signature: str  # falls back to the selector id when unknown
    function_name: str

    def to_dict(self) -> dict[str, str]:
        return {
            "selector": self.selector,
            "signature": self.signature,
            "function_name": self.function_name,
        }


@dataclass
class FacetDiff:
    """Changes to one facet between the reference and the plan."""

    facet_name: str | None
    introduced: bool = False  # no reference facet corresponds
    previous_selector_count: int | None = None
    planned_selector_count: int | None = None
    selectors_added: list[SelectorChange] = field(default_factory=list)
    selectors_removed: list[SelectorChange] = field(default_factory=list)
    modified_direct: list[SelectorChange] = field(default_factory=list)  # own source changed
    modified_indirect: list[SelectorChange] = field(default_factory=list)  # via internal routines
    internal_added: list[str] = field(default_factory=list)
    internal_removed: list[str] = field(default_factory=list)
    internal_modified: list[str] = field(default_factory=list)
    events_added: list[str] = field(default_factory=list)
    events_removed: list[str] = field(default_factory=list)
    abi_changed: bool = False
    bytecode_changed: bool = False

    @property
    def added_ids(self) -> list[str]:
        return [c.selector for c in self.selectors_added]

    @property
    def removed_ids(self) -> list[str]:
        return [c.selector for c in self.selectors_removed]

    @property
    def has_changes(self) -> bool:
        return bool(
            self.selectors_added
            or self.selectors_removed
            or self.modified_direct
            or self.modified_indirect
            or self.internal_added
            or self.internal_removed
            or self.internal_modified
            or self.events_added
            or self.events_removed
            or self.abi_changed
            or self.bytecode_changed
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "facet_name": self.facet_name,
            "introduced": self.introduced,
            "previous_selector_count": self.previous_selector_count,
            "planned_selector_count": self.planned_selector_count,
            "selectors_added": [c.signature for c in self.selectors_added],
            "selectors_added_detail": [c.to_dict() for c in self.selectors_added],
            "selectors_removed": [c.signature for c in self.selectors_removed],
            "selectors_removed_detail": [c.to_dict() for c in self.selectors_removed],
            "selectors_modified_direct": [c.signature for c in self.modified_direct],
            "selectors_modified_direct_detail": [c.to_dict() for c in self.modified_direct],
            "selectors_modified_indirect": [c.signature for c in self.modified_indirect],
            "selectors_modified_indirect_detail": [c.to_dict() for c in self.modified_indirect],
            "internal_added": list(self.internal_added),
            "internal_removed": list(self.internal_removed),
            "internal_modified": list(self.internal_modified),
            "events_added": list(self.events_added),
            "events_removed": list(self.events_removed),
            "abi_changed": self.abi_changed,
            "bytecode_changed": self.bytecode_changed,
        }


@dataclass(frozen=True, slots=True)
class SelectorMove:
    """A selector whose owning facet changes between reference and plan."""

    selector: str
    signature: str | None
    from_facet: str
    to_facet: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "signature": self.signature,
            "from_facet": self.from_facet,
            "to_facet": self.to_facet,
        }


@dataclass(frozen=True, slots=True)
class Removal:
    """A selector the plan removes, with its prior owner when known."""

    selector: str
    signature: str | None = None
    from_facet: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "signature": self.signature,
            "from_facet": self.from_facet,
        }


@dataclass(frozen=True, slots=True)
class UnplannedChange:
    """A facet with uncommitted source edits that the plan does not cut."""

    facet_name: str
    source_name: str
    detail: str

    def to_dict(self) -> dict[str, str]:
        return {
            "facet_name": self.facet_name,
            "source_name": self.source_name,
            "detail": self.detail,
        }


@dataclass
class DiffReport:
    """Reference vs planned vs live comparison for one diamond."""

    diamond_address: str
    chain_id: str
    block_number: int
    generated_at: datetime
    reference_timestamp: int | None = None
    drift_detected: bool = False
    reference_missing: bool = False
    reference_commit: str | None = None
    planned_commit: str | None = None
    facets: list[FacetDiff] = field(default_factory=list)
    selector_moves: list[SelectorMove] = field(default_factory=list)
    removals: list[Removal] = field(default_factory=list)
    unplanned_changes: list[UnplannedChange] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    summary: list[str] = field(default_factory=list)

    def facet(self, name: str) -> FacetDiff | None:
        for diff in self.facets:
            if diff.facet_name == name:
                return diff
        return None

    @property
    def is_empty(self) -> bool:
        return not (self.facets or self.selector_moves or self.removals)

    def to_dict(self) -> dict[str, Any]:
        return {
            "diamond_address": self.diamond_address,
            "chain_id": self.chain_id,
            "reference_timestamp": self.reference_timestamp,
            "block_number": self.block_number,
            "generated_at": self.generated_at.isoformat(),
            "drift_detected": self.drift_detected,
            "reference_missing": self.reference_missing,
            "reference_commit": self.reference_commit,
            "planned_commit": self.planned_commit,
            "facets": [f.to_dict() for f in self.facets],
            "selector_moves": [m.to_dict() for m in self.selector_moves],
            "removals": [r.to_dict() for r in self.removals],
            "unplanned_changes": [u.to_dict() for u in self.unplanned_changes],
            "warnings": list(self.warnings),
            "summary": list(self.summary),
        }
