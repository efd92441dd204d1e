"""Ledger protocol - the remote chain as the engine sees it."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cutplane.catalog.models import CatalogEntry


class CutAction(IntEnum):
    """EIP-2535 FacetCutAction values."""

    ADD = 0
    REPLACE = 1
    REMOVE = 2


@dataclass(frozen=True, slots=True)
class FacetCut:
    """One instruction of a diamond cut."""

    facet_address: str
    action: CutAction
    selectors: tuple[str, ...]

    def as_abi_tuple(self) -> tuple[str, int, list[bytes]]:
        return (
            self.facet_address,
            int(self.action),
            [bytes.fromhex(s[2:]) for s in self.selectors],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "facet_address": self.facet_address,
            "action": self.action.name,
            "selectors": list(self.selectors),
        }


@dataclass(frozen=True, slots=True)
class LoupeFacet:
    """One row of the loupe's ``facets()`` answer."""

    address: str
    selectors: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class BlockInfo:
    number: int
    timestamp: int


@dataclass(frozen=True, slots=True)
class TxReceipt:
    tx_hash: str
    status: bool
    block_number: int | None = None
    gas_used: int | None = None


@runtime_checkable
class Ledger(Protocol):
    """Read and write access to the chain hosting the diamond.

    Reads are safe to issue concurrently. Writes are issued one at a time
    and each is awaited before the next.
    """

    @property
    def network(self) -> str:
        """Network label (e.g. 'base', 'localhost')."""
        ...

    def chain_id(self) -> str:
        """Chain id as a decimal string, after any fork override."""
        ...

    def latest_block(self) -> BlockInfo: ...

    def facets(self, diamond: str) -> list[LoupeFacet]:
        """Live facet address to selector mapping, in loupe order."""
        ...

    def get_code(self, address: str) -> str:
        """Runtime code as 0x-prefixed hex; ``"0x"`` when empty."""
        ...

    def prepare_sender(self, sender: str) -> None:
        """Make ``sender`` usable for writes (impersonation on local forks)."""
        ...

    def deploy(self, entry: CatalogEntry, sender: str) -> str:
        """Deploy a fresh instance of a compiled facet; returns its address.

        Raises:
            DeploymentError: If the deployment transaction fails.
        """
        ...

    def submit_cut(
        self,
        diamond: str,
        cuts: list[FacetCut],
        init_address: str,
        init_calldata: str,
        sender: str,
    ) -> str:
        """Send ``diamondCut`` as one transaction; returns the tx hash."""
        ...

    def wait_for_receipt(self, tx_hash: str) -> TxReceipt: ...
