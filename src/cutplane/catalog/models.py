"""Data models for the compiled-artifact catalog.

All models are plain dataclasses. Catalog entries are rebuilt every run
from immutable build artifacts and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class SelectorInfo:
    """One externally callable function of a facet.

    Identity key across snapshots is ``selector``.
    """

    selector: str  # 0x + 8 lowercase hex
    signature: str | None = None  # canonical "name(type,...)"
    state_mutability: str | None = None
    implementation_hash: str | None = None  # keccak of sanitized AST node
    source_hash: str | None = None  # keccak of exact source span
    function_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "signature": self.signature,
            "state_mutability": self.state_mutability,
            "implementation_hash": self.implementation_hash,
            "source_hash": self.source_hash,
            "function_name": self.function_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SelectorInfo:
        return cls(
            selector=str(data["selector"]).lower(),
            signature=_pick(data, "signature"),
            state_mutability=_pick(data, "state_mutability", "stateMutability"),
            implementation_hash=_pick(data, "implementation_hash", "implementationHash"),
            source_hash=_pick(data, "source_hash", "sourceHash"),
            function_name=_pick(data, "function_name", "functionName"),
        )


@dataclass(frozen=True, slots=True)
class InternalRoutineInfo:
    """An internal or private function, never directly callable.

    Identity key across snapshots is ``(visibility, name)``.
    """

    name: str
    visibility: str  # internal | private
    signature: str | None = None
    content_hash: str | None = None
    source_hash: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.visibility, self.name)

    @property
    def label(self) -> str:
        return f"{self.visibility} {self.name}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "visibility": self.visibility,
            "signature": self.signature,
            "content_hash": self.content_hash,
            "source_hash": self.source_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InternalRoutineInfo:
        return cls(
            name=str(data.get("name") or ""),
            visibility=str(data.get("visibility") or "internal"),
            signature=_pick(data, "signature"),
            content_hash=_pick(data, "content_hash", "contentHash"),
            source_hash=_pick(data, "source_hash", "sourceHash"),
        )


@dataclass
class CatalogEntry:
    """Everything known about one compiled facet implementation."""

    contract_name: str
    source_name: str
    artifact_path: Path
    deployed_bytecode: str
    deployed_bytecode_hash: str
    bytecode: str
    abi: list[dict[str, Any]]
    abi_hash: str
    selectors: list[SelectorInfo]  # sorted by selector id
    internal_routines: list[InternalRoutineInfo] = field(default_factory=list)
    events: list[str] = field(default_factory=list)
    build_info_path: str | None = None

    @property
    def selector_ids(self) -> list[str]:
        return [s.selector for s in self.selectors]

    @property
    def selectors_key(self) -> str:
        return ",".join(sorted(self.selector_ids))

    def selector(self, selector_id: str) -> SelectorInfo | None:
        selector_id = selector_id.lower()
        for info in self.selectors:
            if info.selector == selector_id:
                return info
        return None

    def to_dict(self) -> dict[str, Any]:
        """Summary form for listings; omits bytecode and the raw ABI."""
        return {
            "contract_name": self.contract_name,
            "source_name": self.source_name,
            "artifact_path": str(self.artifact_path),
            "build_info_path": self.build_info_path,
            "deployed_bytecode_hash": self.deployed_bytecode_hash,
            "abi_hash": self.abi_hash,
            "selectors": [s.to_dict() for s in self.selectors],
            "internal_routines": [r.to_dict() for r in self.internal_routines],
            "events": list(self.events),
        }


@dataclass
class FacetCatalog:
    """Compiled facets indexed three ways for identity resolution."""

    by_name: dict[str, CatalogEntry] = field(default_factory=dict)
    by_bytecode_hash: dict[str, CatalogEntry] = field(default_factory=dict)
    by_selectors_key: dict[str, CatalogEntry] = field(default_factory=dict)

    def add(self, entry: CatalogEntry) -> None:
        self.by_name[entry.contract_name] = entry
        self.by_bytecode_hash[entry.deployed_bytecode_hash] = entry
        # First entry for a selector set wins
        self.by_selectors_key.setdefault(entry.selectors_key, entry)

    def __len__(self) -> int:
        return len(self.by_name)

    def __contains__(self, name: object) -> bool:
        return name in self.by_name

    def get(self, name: str) -> CatalogEntry | None:
        return self.by_name.get(name)

    def resolve(self, bytecode_hash: str | None, selectors: list[str]) -> CatalogEntry | None:
        """Identify a live facet by runtime code hash, then by selector set."""
        if bytecode_hash:
            entry = self.by_bytecode_hash.get(bytecode_hash)
            if entry is not None:
                return entry
        return self.by_selectors_key.get(",".join(sorted(s.lower() for s in selectors)))


def _pick(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None
