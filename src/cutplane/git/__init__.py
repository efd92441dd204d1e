"""Git facts for upgrade runs."""

from cutplane.git.ops import GitOps

__all__ = ["GitOps"]
