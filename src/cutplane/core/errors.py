"""Cutplane error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Catalog
- 4xxx: Snapshot
- 5xxx: Plan
- 6xxx: Reconciliation
- 7xxx: Deployment / ledger
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Catalog (3xxx)
    CATALOG_MODULE_NOT_FOUND = 3001
    CATALOG_DIR_NOT_FOUND = 3002

    # Snapshot (4xxx)
    SNAPSHOT_SELECTOR_COLLISION = 4001
    SNAPSHOT_CORRUPT = 4002

    # Plan (5xxx)
    PLAN_PARSE_ERROR = 5001
    PLAN_INVALID_SIGNATURE = 5002
    PLAN_DUPLICATE_FACET = 5003

    # Reconciliation (6xxx)
    RECONCILIATION_MISMATCH = 6001

    # Deployment / ledger (7xxx)
    DEPLOY_SELECTOR_MISSING = 7001
    DEPLOY_FAILED = 7002
    LEDGER_UNAVAILABLE = 7003
    LEDGER_TRANSACTION_FAILED = 7004
    BRANCH_NOT_ALLOWED = 7005
    LEDGER_CUT_REJECTED = 7006

    # Repository (8xxx)
    REPO_NOT_FOUND = 8001


@dataclass(frozen=True, slots=True)
class CutplaneError(Exception):
    """Base error with structured context for reports and CLI output."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CutplaneError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class CatalogError(CutplaneError):
    """Compiled artifact lookup errors."""

    @classmethod
    def module_not_found(cls, name: str) -> "CatalogError":
        return cls(
            code=ErrorCode.CATALOG_MODULE_NOT_FOUND,
            message=f"Facet {name} is not present in the compiled artifacts",
            details={"facet": name},
        )

    @classmethod
    def artifacts_not_found(cls, path: str) -> "CatalogError":
        return cls(
            code=ErrorCode.CATALOG_DIR_NOT_FOUND,
            message=f"Artifacts directory not found: {path}. Compile the contracts first.",
            details={"path": path},
        )


class SnapshotError(CutplaneError):
    """Snapshot invariant and persistence errors."""

    @classmethod
    def selector_collision(cls, selector: str, owners: list[str]) -> "SnapshotError":
        return cls(
            code=ErrorCode.SNAPSHOT_SELECTOR_COLLISION,
            message=f"Selector {selector} is served by more than one facet: {', '.join(owners)}",
            details={"selector": selector, "owners": owners},
        )

    @classmethod
    def corrupt(cls, path: str, reason: str) -> "SnapshotError":
        return cls(
            code=ErrorCode.SNAPSHOT_CORRUPT,
            message=f"Unreadable snapshot at {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class PlanError(CutplaneError):
    """Upgrade plan parsing errors."""

    @classmethod
    def parse_error(cls, reason: str) -> "PlanError":
        return cls(
            code=ErrorCode.PLAN_PARSE_ERROR,
            message=f"Failed to parse upgrade plan: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def invalid_signature(cls, signature: str) -> "PlanError":
        return cls(
            code=ErrorCode.PLAN_INVALID_SIGNATURE,
            message=f"Not a function signature or selector: {signature!r}",
            details={"signature": signature},
        )

    @classmethod
    def duplicate_facet(cls, name: str) -> "PlanError":
        return cls(
            code=ErrorCode.PLAN_DUPLICATE_FACET,
            message=f"Facet {name} is listed more than once in the upgrade plan",
            details={"facet": name},
        )


class ReconciliationError(CutplaneError):
    """Declared plan and compiled diff disagree."""

    @classmethod
    def mismatches(cls, problems: list[str]) -> "ReconciliationError":
        joined = "\n".join(problems)
        return cls(
            code=ErrorCode.RECONCILIATION_MISMATCH,
            message=(
                "Selector reconciliation failed. Ensure the plan's add/remove "
                f"selectors match the compiled changes.\n{joined}"
            ),
            details={"mismatches": problems},
        )


class DeploymentError(CutplaneError):
    """Facet deployment and cut submission errors."""

    @classmethod
    def selector_missing(cls, facet: str, selector: str, signature: str) -> "DeploymentError":
        return cls(
            code=ErrorCode.DEPLOY_SELECTOR_MISSING,
            message=f"Selector {selector} ({signature}) not found in deployed {facet}",
            details={"facet": facet, "selector": selector, "signature": signature},
        )

    @classmethod
    def deploy_failed(cls, facet: str, reason: str) -> "DeploymentError":
        return cls(
            code=ErrorCode.DEPLOY_FAILED,
            message=f"Deployment of {facet} failed: {reason}",
            details={"facet": facet, "reason": reason},
        )

    @classmethod
    def branch_not_allowed(cls, network: str, branch: str | None, expected: str) -> "DeploymentError":
        return cls(
            code=ErrorCode.BRANCH_NOT_ALLOWED,
            message=f"Upgrades on {network} must run from {expected}, not {branch or 'detached HEAD'}",
            details={"network": network, "branch": branch, "expected": expected},
        )


class LedgerError(CutplaneError):
    """Remote ledger communication errors."""

    @classmethod
    def unavailable(cls, url: str, reason: str) -> "LedgerError":
        return cls(
            code=ErrorCode.LEDGER_UNAVAILABLE,
            message=f"Cannot reach ledger at {url}: {reason}",
            retryable=True,
            details={"url": url, "reason": reason},
        )

    @classmethod
    def transaction_failed(cls, tx_hash: str) -> "LedgerError":
        return cls(
            code=ErrorCode.LEDGER_TRANSACTION_FAILED,
            message=f"Diamond upgrade failed: {tx_hash}",
            details={"tx_hash": tx_hash},
        )

    @classmethod
    def cut_rejected(cls, reason: str) -> "LedgerError":
        return cls(
            code=ErrorCode.LEDGER_CUT_REJECTED,
            message=f"diamondCut rejected by the node: {reason}",
            details={"reason": reason},
        )


class RepositoryError(CutplaneError):
    """Contracts repository could not be read."""

    @classmethod
    def not_found(cls, path: str) -> "RepositoryError":
        return cls(
            code=ErrorCode.REPO_NOT_FOUND,
            message=f"No git repository at or above {path}",
            details={"path": path},
        )
