"""Persist diff reports as timestamped audit files."""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from cutplane.config.constants import DIAMOND_STATE_DIR, DIFFS_DIR, LATEST_DIFF_LINK
from cutplane.core.formatting import slugify
from cutplane.diff.models import DiffReport

log = structlog.get_logger(__name__)

MAX_SLUG_FACETS = 3


def report_filename(report: DiffReport) -> str:
    """``<addr first 10>-<facet slugs>-<iso timestamp>.json``."""
    if report.facets:
        slug = "__".join(slugify(f.facet_name or "facet") for f in report.facets[:MAX_SLUG_FACETS])
    else:
        slug = "no-changes"
    timestamp = report.generated_at.isoformat(timespec="milliseconds").replace("+00:00", "Z").replace(":", "-")
    return f"{report.diamond_address.lower()[:10]}-{slug}-{timestamp}.json"


def persist_diff_report(report: DiffReport, state_dir: Path) -> Path:
    """Write ``report`` under ``<state>/diamond/<chain>/diffs`` and return the path."""
    directory = state_dir / DIAMOND_STATE_DIR / str(report.chain_id).lower() / DIFFS_DIR
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / report_filename(report)
    path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")
    log.info("diff.report_saved", path=str(path))
    return path


def link_latest_diff(report_path: Path, state_dir: Path) -> Path | None:
    """Point ``<state>/diamond/latest-diff.json`` at ``report_path``.

    Failure to link is logged, not raised; the report itself is already on disk.
    """
    link = state_dir / DIAMOND_STATE_DIR / LATEST_DIFF_LINK
    try:
        if link.is_symlink() or link.exists():
            link.unlink()
        link.parent.mkdir(parents=True, exist_ok=True)
        link.symlink_to(report_path.resolve())
    except OSError as e:
        log.warning("diff.latest_link_failed", link=str(link), error=str(e))
        return None
    return link
