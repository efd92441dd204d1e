"""Read-only capture of a live diamond's facet composition."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import structlog

from cutplane.catalog.abi import bytecode_hash
from cutplane.catalog.models import CatalogEntry, FacetCatalog, SelectorInfo
from cutplane.ledger.base import Ledger, LoupeFacet
from cutplane.snapshot.models import DiamondSnapshot, FacetRecord

log = structlog.get_logger(__name__)


@dataclass
class SnapshotCapturer:
    """Resolve each live facet against the catalog and build a snapshot.

    Identity resolution, in order:
    1. keccak of the facet's runtime code in ``catalog.by_bytecode_hash``
    2. the facet's sorted selector set in ``catalog.by_selectors_key``

    Facets matching neither are recorded by address only.
    """

    ledger: Ledger
    catalog: FacetCatalog
    max_workers: int = 8

    def capture(self, diamond: str, commit: str | None = None) -> DiamondSnapshot:
        """Capture the live state of ``diamond``.

        Raises:
            SnapshotError: If the loupe reports one selector on two facets.
            LedgerError: If the node cannot be reached.
        """
        chain_id = self.ledger.chain_id()
        block = self.ledger.latest_block()
        loupe_facets = self.ledger.facets(diamond)
        code_hashes = self._fetch_code_hashes([f.address for f in loupe_facets])

        facets = tuple(self._record(f, code_hashes.get(f.address)) for f in loupe_facets)
        snapshot = DiamondSnapshot(
            diamond_address=diamond,
            chain_id=chain_id,
            network=self.ledger.network,
            block_number=block.number,
            block_timestamp=block.timestamp,
            facets=facets,
            commit=commit,
        )
        snapshot.check_selector_uniqueness()

        log.info(
            "snapshot.captured",
            diamond=diamond,
            chain_id=chain_id,
            block=block.number,
            facets=len(facets),
            selectors=snapshot.selector_count,
            unresolved=sum(1 for f in facets if f.facet_name is None),
        )
        return snapshot

    def _fetch_code_hashes(self, addresses: list[str]) -> dict[str, str | None]:
        """Fetch runtime code for every facet concurrently; reads only."""
        unique = list(dict.fromkeys(addresses))
        if not unique:
            return {}
        workers = max(1, min(self.max_workers, len(unique)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cutplane-capture") as pool:
            codes = list(pool.map(self.ledger.get_code, unique))
        return {address: bytecode_hash(code) for address, code in zip(unique, codes, strict=True)}

    def _record(self, loupe: LoupeFacet, code_hash: str | None) -> FacetRecord:
        selectors = [s.lower() for s in loupe.selectors]
        entry = self.catalog.resolve(code_hash, selectors)
        if entry is None:
            log.warning(
                "snapshot.facet_unresolved",
                address=loupe.address,
                selectors=len(selectors),
            )
            return FacetRecord(
                facet_address=loupe.address,
                bytecode_hash=code_hash,
                selectors=tuple(SelectorInfo(selector=s) for s in selectors),
            )

        return FacetRecord(
            facet_name=entry.contract_name,
            facet_address=loupe.address,
            bytecode_hash=code_hash or entry.deployed_bytecode_hash,
            abi_hash=entry.abi_hash,
            source_name=entry.source_name,
            build_info_path=entry.build_info_path,
            selectors=tuple(_label_selector(entry, s) for s in selectors),
            internal_routines=tuple(sorted(entry.internal_routines, key=lambda r: r.name)),
            events=tuple(sorted(entry.events)),
        )


def _label_selector(entry: CatalogEntry, selector: str) -> SelectorInfo:
    # A live selector missing from the artifact keeps only its id
    return entry.selector(selector) or SelectorInfo(selector=selector)
