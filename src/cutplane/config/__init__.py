"""Config module exports."""

from cutplane.config.loader import load_config
from cutplane.config.models import (
    CutplaneConfig,
    DeployConfig,
    LedgerConfig,
    LoggingConfig,
    PathsConfig,
)

__all__ = [
    "load_config",
    "CutplaneConfig",
    "DeployConfig",
    "LedgerConfig",
    "LoggingConfig",
    "PathsConfig",
]
