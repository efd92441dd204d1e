"""Core module exports."""

from cutplane.core.errors import (
    CatalogError,
    ConfigError,
    CutplaneError,
    DeploymentError,
    ErrorCode,
    LedgerError,
    PlanError,
    ReconciliationError,
    RepositoryError,
    SnapshotError,
)
from cutplane.core.logging import (
    bind_run_context,
    configure_logging,
    get_run_id,
    start_run,
)
from cutplane.core.progress import spinner, status

__all__ = [
    # Errors
    "CatalogError",
    "ConfigError",
    "CutplaneError",
    "DeploymentError",
    "ErrorCode",
    "LedgerError",
    "PlanError",
    "ReconciliationError",
    "RepositoryError",
    "SnapshotError",
    # Logging
    "bind_run_context",
    "configure_logging",
    "get_run_id",
    "start_run",
    # Progress
    "spinner",
    "status",
]
