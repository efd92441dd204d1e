"""Plan vs compiled-diff reconciliation."""

from cutplane.reconcile.validator import (
    attach_unplanned,
    ensure_reconciled,
    find_unplanned_changes,
    reconcile_plan,
    summarize_facet_changes,
)

__all__ = [
    "attach_unplanned",
    "ensure_reconciled",
    "find_unplanned_changes",
    "reconcile_plan",
    "summarize_facet_changes",
]
