"""Diamond diff engine, summary and report persistence."""

from cutplane.diff.engine import compute_diff_report, detect_drift, diff_facet_against_reference
from cutplane.diff.models import DiffReport, FacetDiff, Removal, SelectorChange, SelectorMove, UnplannedChange
from cutplane.diff.report import link_latest_diff, persist_diff_report
from cutplane.diff.summary import build_summary, render_summary

__all__ = [
    "DiffReport",
    "FacetDiff",
    "Removal",
    "SelectorChange",
    "SelectorMove",
    "UnplannedChange",
    "build_summary",
    "compute_diff_report",
    "detect_drift",
    "diff_facet_against_reference",
    "link_latest_diff",
    "persist_diff_report",
    "render_summary",
]
