"""Diamond cut construction and orchestration."""

from cutplane.cut.confirm import Confirmation, always_confirm, never_confirm, prompt_confirm
from cutplane.cut.instructions import FacetDeployment, build_cut_instructions, verify_deployed_selectors
from cutplane.cut.orchestrator import (
    CutOrchestrator,
    CutState,
    UpgradeRequest,
    UpgradeResult,
    ensure_release_branch,
)

__all__ = [
    "Confirmation",
    "CutOrchestrator",
    "CutState",
    "FacetDeployment",
    "UpgradeRequest",
    "UpgradeResult",
    "always_confirm",
    "build_cut_instructions",
    "ensure_release_branch",
    "never_confirm",
    "prompt_confirm",
    "verify_deployed_selectors",
]
