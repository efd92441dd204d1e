"""Ledger implementation over a JSON-RPC node via web3.py.

Transactions are sent with ``eth_sendTransaction``: the node manages the
sender key, or impersonates the sender on a local development fork.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from eth_utils import decode_hex, encode_hex
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from cutplane.config.constants import LOCAL_CHAIN_ID
from cutplane.core.errors import DeploymentError, LedgerError
from cutplane.ledger.base import BlockInfo, FacetCut, LoupeFacet, TxReceipt

if TYPE_CHECKING:
    from cutplane.catalog.models import CatalogEntry
    from cutplane.config.models import LedgerConfig

log = structlog.get_logger(__name__)

LOUPE_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "facets",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {
                "name": "facets_",
                "type": "tuple[]",
                "components": [
                    {"name": "facetAddress", "type": "address"},
                    {"name": "functionSelectors", "type": "bytes4[]"},
                ],
            }
        ],
    }
]

DIAMOND_CUT_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "diamondCut",
        "stateMutability": "nonpayable",
        "inputs": [
            {
                "name": "_diamondCut",
                "type": "tuple[]",
                "components": [
                    {"name": "facetAddress", "type": "address"},
                    {"name": "action", "type": "uint8"},
                    {"name": "functionSelectors", "type": "bytes4[]"},
                ],
            },
            {"name": "_init", "type": "address"},
            {"name": "_calldata", "type": "bytes"},
        ],
        "outputs": [],
    }
]

# Balance granted to an impersonated sender on local forks
_LOCAL_SENDER_BALANCE = "0x100000000000000000000000"


class Web3Ledger:
    """Ledger backed by an HTTP JSON-RPC endpoint."""

    def __init__(self, config: LedgerConfig, w3: Web3 | None = None) -> None:
        self._config = config
        self._w3 = w3 or Web3(
            Web3.HTTPProvider(
                config.rpc_url,
                request_kwargs={"timeout": config.request_timeout_sec},
            )
        )
        self._chain_id: str | None = None

    @classmethod
    def connect(cls, config: LedgerConfig) -> Web3Ledger:
        """Create a ledger and verify the endpoint answers.

        Raises:
            LedgerError: If the node is unreachable.
        """
        ledger = cls(config)
        try:
            connected = ledger._w3.is_connected()
        except (OSError, Web3Exception) as e:
            raise LedgerError.unavailable(config.rpc_url, str(e)) from e
        if not connected:
            raise LedgerError.unavailable(config.rpc_url, "node did not answer")
        return ledger

    # =========================================================================
    # Reads
    # =========================================================================

    def _raw_chain_id(self) -> int:
        return int(self._call(lambda: self._w3.eth.chain_id))

    @property
    def is_local(self) -> bool:
        return self._raw_chain_id() == LOCAL_CHAIN_ID

    @property
    def network(self) -> str:
        if self._config.network:
            return self._config.network
        return "localhost" if self.is_local else f"chain-{self._raw_chain_id()}"

    def chain_id(self) -> str:
        if self._chain_id is None:
            raw = self._raw_chain_id()
            override = self._config.chain_id_override
            # A local fork reports the dev chain id; record it under the forked chain
            self._chain_id = str(override if raw == LOCAL_CHAIN_ID and override else raw)
        return self._chain_id

    def latest_block(self) -> BlockInfo:
        block = self._call(lambda: self._w3.eth.get_block("latest"))
        return BlockInfo(number=int(block["number"]), timestamp=int(block["timestamp"]))

    def facets(self, diamond: str) -> list[LoupeFacet]:
        loupe = self._w3.eth.contract(address=_checksum(diamond), abi=LOUPE_ABI)
        rows = self._call(lambda: loupe.functions.facets().call())
        return [
            LoupeFacet(
                address=str(address),
                selectors=tuple(encode_hex(bytes(s)) for s in selectors),
            )
            for address, selectors in rows
        ]

    def get_code(self, address: str) -> str:
        code = self._call(lambda: self._w3.eth.get_code(_checksum(address)))
        return encode_hex(bytes(code))

    # =========================================================================
    # Writes
    # =========================================================================

    def prepare_sender(self, sender: str) -> None:
        """On a local fork, impersonate and fund the sender."""
        if not self.is_local:
            return
        provider = self._w3.provider
        provider.make_request("hardhat_impersonateAccount", [sender])
        provider.make_request("hardhat_setBalance", [sender, _LOCAL_SENDER_BALANCE])
        log.info("ledger.sender_impersonated", sender=sender)

    def deploy(self, entry: CatalogEntry, sender: str) -> str:
        if not entry.bytecode or entry.bytecode == "0x":
            raise DeploymentError.deploy_failed(entry.contract_name, "artifact has no creation bytecode")
        factory = self._w3.eth.contract(abi=entry.abi, bytecode=entry.bytecode)
        try:
            tx_hash = factory.constructor().transact(self._tx_params(sender))
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._config.receipt_timeout_sec
            )
        except (TimeExhausted, Web3Exception, ValueError) as e:
            raise DeploymentError.deploy_failed(entry.contract_name, str(e)) from e
        if receipt["status"] != 1 or not receipt.get("contractAddress"):
            raise DeploymentError.deploy_failed(entry.contract_name, f"transaction {encode_hex(tx_hash)} reverted")
        address = str(receipt["contractAddress"])
        log.info("ledger.facet_deployed", facet=entry.contract_name, address=address)
        return address

    def submit_cut(
        self,
        diamond: str,
        cuts: list[FacetCut],
        init_address: str,
        init_calldata: str,
        sender: str,
    ) -> str:
        contract = self._w3.eth.contract(address=_checksum(diamond), abi=DIAMOND_CUT_ABI)
        call = contract.functions.diamondCut(
            [
                (_checksum(address), action, selectors)
                for address, action, selectors in map(FacetCut.as_abi_tuple, cuts)
            ],
            _checksum(init_address),
            decode_hex(init_calldata or "0x"),
        )
        try:
            tx_hash = call.transact(self._tx_params(sender))
        except (Web3Exception, ValueError) as e:
            raise LedgerError.cut_rejected(str(e)) from e
        return encode_hex(bytes(tx_hash))

    def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._config.receipt_timeout_sec
            )
        except TimeExhausted as e:
            raise LedgerError.transaction_failed(tx_hash) from e
        return TxReceipt(
            tx_hash=tx_hash,
            status=receipt["status"] == 1,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _tx_params(self, sender: str) -> dict[str, Any]:
        params: dict[str, Any] = {"from": _checksum(sender)}
        if self._config.gas_limit:
            params["gas"] = self._config.gas_limit
        return params

    def _call(self, fn: Any) -> Any:
        try:
            return fn()
        except (OSError, Web3Exception) as e:
            raise LedgerError.unavailable(self._config.rpc_url, str(e)) from e


def _checksum(address: str) -> str:
    return Web3.to_checksum_address(address)
