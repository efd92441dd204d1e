"""Ledger access."""

from cutplane.ledger.base import BlockInfo, CutAction, FacetCut, Ledger, LoupeFacet, TxReceipt
from cutplane.ledger.web3_ledger import Web3Ledger

__all__ = [
    "BlockInfo",
    "CutAction",
    "FacetCut",
    "Ledger",
    "LoupeFacet",
    "TxReceipt",
    "Web3Ledger",
]
