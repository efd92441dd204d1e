"""Diamond snapshot models.

A snapshot is an immutable view of which facet serves which selector at
one block. Snapshots round-trip through JSON; camelCase keys written by
older tooling are accepted on read, snake_case is always written.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cutplane.catalog.models import CatalogEntry, InternalRoutineInfo, SelectorInfo
from cutplane.core.errors import SnapshotError


@dataclass(frozen=True, slots=True)
class FacetRecord:
    """One facet as seen in a snapshot."""

    facet_name: str | None = None
    facet_address: str | None = None
    bytecode_hash: str | None = None
    abi_hash: str | None = None
    source_name: str | None = None
    build_info_path: str | None = None
    selectors: tuple[SelectorInfo, ...] = ()
    internal_routines: tuple[InternalRoutineInfo, ...] | None = None  # None = unknown
    events: tuple[str, ...] | None = None  # None = unknown

    @property
    def label(self) -> str | None:
        """Display label: name, else address."""
        return self.facet_name or self.facet_address

    @property
    def selector_ids(self) -> list[str]:
        return [s.selector for s in self.selectors]

    def selector(self, selector_id: str) -> SelectorInfo | None:
        for info in self.selectors:
            if info.selector == selector_id:
                return info
        return None

    @classmethod
    def from_catalog(cls, entry: CatalogEntry, address: str | None = None) -> FacetRecord:
        """Planned view of a compiled facet, with its full selector set."""
        return cls(
            facet_name=entry.contract_name,
            facet_address=address,
            bytecode_hash=entry.deployed_bytecode_hash,
            abi_hash=entry.abi_hash,
            source_name=entry.source_name,
            build_info_path=entry.build_info_path,
            selectors=tuple(entry.selectors),
            internal_routines=tuple(sorted(entry.internal_routines, key=lambda r: r.name)),
            events=tuple(sorted(entry.events)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "facet_name": self.facet_name,
            "facet_address": self.facet_address,
            "bytecode_hash": self.bytecode_hash,
            "abi_hash": self.abi_hash,
            "source_name": self.source_name,
            "build_info_path": self.build_info_path,
            "selectors": [s.to_dict() for s in self.selectors],
            "internal_routines": (
                None if self.internal_routines is None else [r.to_dict() for r in self.internal_routines]
            ),
            "events": None if self.events is None else list(self.events),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FacetRecord:
        internals = _first(data, "internal_routines", "internalFunctions")
        events = data.get("events")
        return cls(
            facet_name=_first(data, "facet_name", "facetName"),
            facet_address=_first(data, "facet_address", "facetAddress"),
            bytecode_hash=_first(data, "bytecode_hash", "bytecodeHash"),
            abi_hash=_first(data, "abi_hash", "abiHash"),
            source_name=_first(data, "source_name", "sourceName"),
            build_info_path=_first(data, "build_info_path", "buildInfoPath"),
            selectors=tuple(SelectorInfo.from_dict(s) for s in data.get("selectors") or []),
            internal_routines=(
                None if internals is None else tuple(InternalRoutineInfo.from_dict(r) for r in internals)
            ),
            events=(
                None
                if events is None
                # Older snapshots stored {"signature": ...} objects
                else tuple(e["signature"] if isinstance(e, dict) else str(e) for e in events)
            ),
        )


@dataclass(frozen=True, slots=True)
class DiamondSnapshot:
    """Facet composition of one diamond at one block."""

    diamond_address: str
    chain_id: str
    network: str
    block_number: int
    block_timestamp: int
    facets: tuple[FacetRecord, ...] = ()
    commit: str | None = None

    @property
    def selector_count(self) -> int:
        return sum(len(f.selectors) for f in self.facets)

    def selector_owners(self) -> dict[str, FacetRecord]:
        """Map selector id to the facet serving it.

        Raises:
            SnapshotError: If a selector is served by more than one facet.
        """
        owners: dict[str, FacetRecord] = {}
        for facet in self.facets:
            for info in facet.selectors:
                existing = owners.get(info.selector)
                if existing is not None and existing is not facet:
                    raise SnapshotError.selector_collision(
                        info.selector,
                        [existing.label or "?", facet.label or "?"],
                    )
                owners[info.selector] = facet
        return owners

    def check_selector_uniqueness(self) -> None:
        self.selector_owners()

    def facet_by_name(self, name: str) -> FacetRecord | None:
        for facet in self.facets:
            if facet.facet_name == name:
                return facet
        return None

    def content_dict(self) -> dict[str, Any]:
        """Serialized form without block coordinates, for equality checks."""
        data = self.to_dict()
        data.pop("block_number")
        data.pop("block_timestamp")
        return data

    def to_dict(self) -> dict[str, Any]:
        return {
            "diamond_address": self.diamond_address,
            "chain_id": self.chain_id,
            "network": self.network,
            "block_number": self.block_number,
            "block_timestamp": self.block_timestamp,
            "commit": self.commit,
            "facets": [f.to_dict() for f in self.facets],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiamondSnapshot:
        """Raises KeyError if the diamond address or chain id is missing."""
        address = _first(data, "diamond_address", "diamondAddress")
        chain_id = _first(data, "chain_id", "chainId")
        if address is None or chain_id is None:
            raise KeyError("diamond_address" if address is None else "chain_id")
        return cls(
            diamond_address=str(address),
            chain_id=str(chain_id),
            network=str(data.get("network") or ""),
            block_number=int(_first(data, "block_number", "blockNumber") or 0),
            block_timestamp=int(_first(data, "block_timestamp", "blockTimestamp") or 0),
            commit=data.get("commit"),
            facets=tuple(FacetRecord.from_dict(f) for f in data.get("facets") or []),
        )


@dataclass
class SnapshotHistory:
    """Ordered snapshots of one (chain, diamond), oldest first."""

    chain_id: str
    diamond_address: str
    entries: list[DiamondSnapshot] = field(default_factory=list)

    @property
    def latest(self) -> DiamondSnapshot | None:
        return self.entries[-1] if self.entries else None

    def __len__(self) -> int:
        return len(self.entries)


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None
