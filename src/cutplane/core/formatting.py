"""Summary formatting utilities for consistent terminal and report output."""

from __future__ import annotations

import re

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def format_list(values: list[str], limit: int = 3) -> str:
    """Join values, eliding the middle once there are more than ``limit``.

    Examples:
        ["a", "b"] -> "a, b"
        ["a", "b", "c", "d", "e"] -> "a, b, … (+2), e"
    """
    if not values:
        return ""
    if len(values) <= limit:
        return ", ".join(values)

    head_count = max(1, limit - 1)
    head = values[:head_count]
    tail = values[-1]
    omitted = len(values) - head_count - 1
    marker = f"… (+{omitted})" if omitted > 0 else "…"
    return f"{', '.join(head)}, {marker}, {tail}"


def slugify(text: str, max_len: int = 120) -> str:
    """Lower-case, dash-separated, filesystem-safe label."""
    slug = _SLUG_STRIP.sub("-", text.lower()).strip("-")
    slug = re.sub(r"-{2,}", "-", slug)[:max_len]
    return slug or "facet"


def truncate(line: str, width: int) -> str:
    """Cut a line to ``width`` characters, marking the cut with an ellipsis."""
    if len(line) <= width:
        return line
    return line[: width - 1] + "…"
