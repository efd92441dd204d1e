"""Upgrade plans."""

from cutplane.plan.builder import PlannedState, build_planned_state
from cutplane.plan.models import PlannedFacet, UpgradePlan
from cutplane.plan.parsing import load_plan, parse_compact, parse_plan, to_compact

__all__ = [
    "PlannedFacet",
    "PlannedState",
    "UpgradePlan",
    "build_planned_state",
    "load_plan",
    "parse_compact",
    "parse_plan",
    "to_compact",
]
