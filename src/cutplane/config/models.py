"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CUTPLANE__SECTION__KEY)
3. Repo YAML (.cutplane/config.yaml)
4. Global YAML (~/.config/cutplane/config.yaml)
5. Built-in defaults (this file)

Examples:
    CUTPLANE__LOGGING__LEVEL=DEBUG
    CUTPLANE__LEDGER__RPC_URL=http://127.0.0.1:8545
    CUTPLANE__PATHS__ARTIFACTS_DIR=artifacts/contracts
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        CUTPLANE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class PathsConfig(BaseModel):
    """Filesystem locations, relative paths resolved against the repo root.

    Env vars:
        CUTPLANE__PATHS__ARTIFACTS_DIR: Compiled artifact tree to catalog
        CUTPLANE__PATHS__STATE_DIR: Root for snapshots and diff reports
    """

    artifacts_dir: str = Field(
        default="artifacts/contracts",
        description="Hardhat-style artifact tree (<Name>.json + <Name>.dbg.json).",
    )
    state_dir: str = Field(
        default="state",
        description="Snapshots live under <state_dir>/diamond/<chain_id>/.",
    )

    def resolve(self, repo_root: Path) -> tuple[Path, Path]:
        """Return (artifacts_dir, state_dir) as absolute paths."""
        return repo_root / self.artifacts_dir, repo_root / self.state_dir


class LedgerConfig(BaseModel):
    """Remote ledger (JSON-RPC) settings.

    Env vars:
        CUTPLANE__LEDGER__RPC_URL: JSON-RPC endpoint
        CUTPLANE__LEDGER__MAX_FETCH_WORKERS: Parallel bytecode fetches during capture
    """

    rpc_url: str = Field(
        default="http://127.0.0.1:8545",
        description="JSON-RPC endpoint of the chain hosting the diamond.",
    )
    network: str | None = Field(
        default=None,
        description="Network label recorded in snapshots. Defaults to the chain id.",
    )
    request_timeout_sec: float = Field(
        default=30.0,
        description="HTTP timeout for a single RPC request.",
    )
    receipt_timeout_sec: float = Field(
        default=600.0,
        description="Max wait for a deployment or cut receipt.",
    )
    gas_limit: int | None = Field(
        default=None,
        description="Explicit gas limit for the cut transaction. None lets the node estimate.",
    )
    max_fetch_workers: int = Field(
        default=8,
        description="Parallel read-only bytecode fetches during snapshot capture.",
    )
    chain_id_override: int | None = Field(
        default=None,
        description="Chain id recorded for local forks (a fork of chain 8453 reports 31337).",
    )

    @field_validator("max_fetch_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_fetch_workers must be >= 1, got {v}")
        return v


class DeployConfig(BaseModel):
    """Upgrade gating settings.

    Env vars:
        CUTPLANE__DEPLOY__PRODUCTION_NETWORKS: Networks that require confirmation
        CUTPLANE__DEPLOY__RELEASE_BRANCH: Only branch allowed to upgrade production
    """

    production_networks: list[str] = Field(
        default_factory=lambda: ["base"],
        description="Networks where a human must confirm the cut and the latest-diff link is kept.",
    )
    release_branch: str = Field(
        default="master",
        description="Production upgrades are refused from any other branch.",
    )
    summary_max_lines: int = Field(
        default=12,
        description="Summary lines rendered to the terminal; the JSON report keeps all.",
    )


class CutplaneConfig(BaseModel):
    """Root configuration model."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
