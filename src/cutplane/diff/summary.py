"""Human-readable diff summary and its terminal rendering."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from cutplane.core.formatting import format_list, truncate
from cutplane.core.progress import get_console

if TYPE_CHECKING:
    from cutplane.diff.models import DiffReport, FacetDiff, SelectorChange, UnplannedChange

MISSING_REFERENCE_BANNER = (
    "  ! No stored snapshot found. Captured current on-chain state as baseline; "
    "future reports will show diffs."
)
DRIFT_BANNER = (
    "  ! Reference snapshot differs from current on-chain state. "
    "Refresh the stored snapshot to trust this diff."
)
NO_CHANGES_LINE = "  No facet-level differences detected."
UNPLANNED_HEADER = "Unplanned local facet changes:"
TRUNCATION_LINE = "  … see JSON diff for full details"
SUMMARY_WIDTH = 120


def _names(changes: list[SelectorChange]) -> str:
    return format_list([c.function_name for c in changes])


def _facet_lines(facet: FacetDiff) -> list[str]:
    impact: list[str] = []
    source: list[str] = []

    if (
        facet.previous_selector_count is not None
        and facet.planned_selector_count is not None
        and facet.previous_selector_count != facet.planned_selector_count
    ):
        impact.append(f"Selector count: {facet.previous_selector_count} → {facet.planned_selector_count}")
    if facet.selectors_added:
        impact.append(f"Added externals ({len(facet.selectors_added)}): {_names(facet.selectors_added)}")
    if facet.selectors_removed:
        impact.append(f"Removed externals ({len(facet.selectors_removed)}): {_names(facet.selectors_removed)}")
    if facet.modified_direct:
        impact.append(
            f"Logic changed for existing externals (direct) ({len(facet.modified_direct)}): "
            f"{_names(facet.modified_direct)}"
        )
        source.append(f"Modified external functions: {_names(facet.modified_direct)}")
    if facet.modified_indirect:
        impact.append(
            f"Logic changed via internal update ({len(facet.modified_indirect)}): {_names(facet.modified_indirect)}"
        )
        source.append(f"External functions affected via internal change: {_names(facet.modified_indirect)}")
    if facet.bytecode_changed and not facet.modified_direct and not facet.modified_indirect:
        impact.append("Logic bytecode changed")
    if facet.abi_changed:
        impact.append("ABI changed")

    if facet.internal_added:
        source.append(f"Added internal functions: {format_list(facet.internal_added)}")
    if facet.internal_removed:
        source.append(f"Removed internal functions: {format_list(facet.internal_removed)}")
    if facet.internal_modified:
        source.append(f"Modified internal functions: {format_list(facet.internal_modified)}")
    if facet.events_added:
        source.append(f"Added events: {format_list(facet.events_added)}")
    if facet.events_removed:
        source.append(f"Removed events: {format_list(facet.events_removed)}")

    if not impact and not source:
        return []

    label = facet.facet_name or "(unknown facet)"
    lines = [f"Facet {label} (new)" if facet.introduced else f"Facet {label}"]
    if impact:
        lines.append("  Diamond impact:")
        lines.extend(f"    • {item}" for item in impact)
    if source:
        lines.append("  Source changes:")
        lines.extend(f"    • {item}" for item in source)
    return lines


def build_summary(report: DiffReport) -> list[str]:
    """Summary lines grouped per facet into diamond impact and source changes."""
    lines = [f"Diamond diff for {report.diamond_address} (chain {report.chain_id})"]
    if report.reference_missing:
        lines.append(MISSING_REFERENCE_BANNER)
    elif report.drift_detected:
        lines.append(DRIFT_BANNER)
    lines.extend(f"  ! {warning}" for warning in report.warnings)

    if report.is_empty:
        lines.append(NO_CHANGES_LINE)
        return lines

    for facet in report.facets:
        lines.extend(_facet_lines(facet))

    if report.selector_moves:
        lines.append("Selector moves:")
        lines.extend(
            f"  • {move.signature or move.selector}: {move.from_facet} → {move.to_facet}"
            for move in report.selector_moves
        )
    if report.removals:
        lines.append("Removals:")
        lines.extend(
            f"  • {removal.signature or removal.selector}"
            + (f" (from {removal.from_facet})" if removal.from_facet else "")
            for removal in report.removals
        )
    return lines


def unplanned_lines(changes: list[UnplannedChange]) -> list[str]:
    if not changes:
        return []
    lines = [UNPLANNED_HEADER]
    for change in changes:
        detail = f": {change.detail}" if change.detail else ""
        lines.append(f"  • {change.facet_name} ({change.source_name}){detail}")
    return lines


def _style_for(line: str) -> str:
    if line.startswith("Diamond diff"):
        return "bold cyan"
    if line.startswith("Facet "):
        return "bold"
    if line.startswith(("  Diamond impact:", "  Source changes:")):
        return "bold cyan"
    if line.startswith("  !") or line == TRUNCATION_LINE:
        return "yellow"
    if "Added" in line:
        return "green"
    if "Removed" in line:
        return "red"
    if "Logic" in line or "External functions affected" in line or "Modified" in line:
        return "yellow"
    return ""


def render_summary(
    lines: list[str],
    *,
    max_lines: int = 12,
    width: int = SUMMARY_WIDTH,
    console: Console | None = None,
) -> None:
    """Print the summary in a bordered panel, truncated to ``max_lines``."""
    if not lines:
        return
    shown = lines[:max_lines] + [TRUNCATION_LINE] if len(lines) > max_lines else list(lines)
    text = Text()
    for i, line in enumerate(shown):
        if i:
            text.append("\n")
        text.append(truncate(line, width), style=_style_for(line))
    (console or get_console()).print(Panel(text, box=box.HEAVY, expand=False))
