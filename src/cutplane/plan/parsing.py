"""Upgrade plan parsing: compact task string, JSON and YAML.

The compact form is the one used by existing deployment scripts::

    #FacetA$$$addSigA*addSigB$$$removeSig#FacetB$$$$$$
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cutplane.core.errors import PlanError
from cutplane.plan.models import PlannedFacet, UpgradePlan

FACET_SEPARATOR = "#"
FIELD_SEPARATOR = "$$$"
ITEM_SEPARATOR = "*"


def parse_compact(text: str) -> UpgradePlan:
    facets = []
    for chunk in text.strip().split(FACET_SEPARATOR):
        if not chunk:
            continue
        fields = chunk.split(FIELD_SEPARATOR)
        if len(fields) != 3:
            raise PlanError.parse_error(
                f"facet entry {chunk!r} must have name, add and remove fields separated by {FIELD_SEPARATOR!r}"
            )
        name, adds, removes = fields
        facets.append(
            _validate_facet(
                {
                    "name": name,
                    "add_selectors": adds.split(ITEM_SEPARATOR),
                    "remove_selectors": removes.split(ITEM_SEPARATOR),
                }
            )
        )
    if not facets:
        raise PlanError.parse_error("plan names no facets")
    return UpgradePlan(facets=facets)


def to_compact(plan: UpgradePlan) -> str:
    return "".join(
        f"{FACET_SEPARATOR}{f.name}{FIELD_SEPARATOR}"
        f"{ITEM_SEPARATOR.join(f.add_selectors)}{FIELD_SEPARATOR}"
        f"{ITEM_SEPARATOR.join(f.remove_selectors)}"
        for f in plan.facets
    )


def plan_from_data(data: Any) -> UpgradePlan:
    """Build a plan from decoded JSON/YAML: a list of facets or ``{"facets": [...]}``."""
    if isinstance(data, list):
        data = {"facets": data}
    if not isinstance(data, dict):
        raise PlanError.parse_error("expected a list of facets or a mapping with 'facets'")
    try:
        return UpgradePlan.model_validate(data)
    except ValidationError as e:
        raise PlanError.parse_error(_first_error(e)) from e


def parse_plan(text: str) -> UpgradePlan:
    """Parse any supported plan form, detected from the first character."""
    stripped = text.strip()
    if not stripped:
        raise PlanError.parse_error("plan is empty")
    if stripped.startswith(FACET_SEPARATOR):
        return parse_compact(stripped)
    if stripped[0] in "[{":
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise PlanError.parse_error(f"invalid JSON: {e}") from e
        return plan_from_data(data)
    try:
        data = yaml.safe_load(stripped)
    except yaml.YAMLError as e:
        raise PlanError.parse_error(f"invalid YAML: {e}") from e
    return plan_from_data(data)


def load_plan(source: str | Path) -> UpgradePlan:
    """Parse a plan given inline or as a path to a plan file."""
    text = str(source)
    if isinstance(source, Path) or "\n" not in text and not text.lstrip().startswith(FACET_SEPARATOR):
        path = Path(source)
        try:
            is_file = path.is_file()
        except OSError:
            is_file = False
        if is_file:
            return parse_plan(path.read_text(encoding="utf-8"))
    return parse_plan(text)


def _validate_facet(data: dict[str, Any]) -> PlannedFacet:
    try:
        return PlannedFacet.model_validate(data)
    except ValidationError as e:
        raise PlanError.parse_error(_first_error(e)) from e


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(part) for part in err.get("loc", ()))
    return f"{loc}: {err.get('msg', 'invalid')}" if loc else str(err.get("msg", "invalid"))
