"""Tests for catalog/abi.py - signatures, selectors and hashes."""

from __future__ import annotations

import pytest

from cutplane.catalog.abi import (
    abi_hash,
    abi_selectors,
    bytecode_hash,
    canonical_signature,
    derive_function_name,
    event_signatures,
    is_raw_selector,
    normalize_signature,
    selector_of,
    signature_or_selector,
)
from cutplane.core.errors import ErrorCode, PlanError


class TestSelectors:
    """Well-known selectors pin the keccak wiring."""

    @pytest.mark.parametrize(
        ("signature", "selector"),
        [
            ("transfer(address,uint256)", "0xa9059cbb"),
            ("balanceOf(address)", "0x70a08231"),
            ("facets()", "0x7a0ed627"),
            ("supportsInterface(bytes4)", "0x01ffc9a7"),
        ],
    )
    def test_selector_of(self, signature: str, selector: str) -> None:
        assert selector_of(signature) == selector

    def test_canonical_signature_expands_tuples(self) -> None:
        entry = {
            "type": "function",
            "name": "diamondCut",
            "inputs": [
                {
                    "type": "tuple[]",
                    "components": [
                        {"type": "address"},
                        {"type": "uint8"},
                        {"type": "bytes4[]"},
                    ],
                },
                {"type": "address"},
                {"type": "bytes"},
            ],
        }
        assert canonical_signature(entry) == "diamondCut((address,uint8,bytes4[])[],address,bytes)"
        assert selector_of(canonical_signature(entry)) == "0x1f931c1c"


class TestAbiSelectors:
    """Function entries become SelectorInfo keyed by selector."""

    def test_functions_only(self) -> None:
        abi = [
            {"type": "function", "name": "foo", "inputs": [{"type": "uint256"}], "stateMutability": "view"},
            {"type": "event", "name": "Foo", "inputs": []},
            {"type": "constructor", "inputs": []},
        ]

        result = abi_selectors(abi)

        assert list(result) == [selector_of("foo(uint256)")]
        info = result[selector_of("foo(uint256)")]
        assert info.signature == "foo(uint256)"
        assert info.state_mutability == "view"
        assert info.function_name == "foo"
        assert info.implementation_hash is None

    def test_malformed_function_raises(self) -> None:
        with pytest.raises(ValueError):
            abi_selectors([{"type": "function", "inputs": []}])

    def test_event_signatures_sorted(self) -> None:
        abi = [
            {"type": "event", "name": "Zed", "inputs": [{"type": "uint256"}]},
            {"type": "event", "name": "Alpha", "inputs": []},
        ]
        assert event_signatures(abi) == ["Alpha()", "Zed(uint256)"]


class TestHashes:
    def test_abi_hash_ignores_key_order(self) -> None:
        a = [{"type": "function", "name": "f", "inputs": []}]
        b = [{"inputs": [], "name": "f", "type": "function"}]
        assert abi_hash(a) == abi_hash(b)

    @pytest.mark.parametrize("code", [None, "", "0x", b""])
    def test_empty_code_has_no_hash(self, code: str | bytes | None) -> None:
        assert bytecode_hash(code) is None

    def test_hex_and_bytes_agree(self) -> None:
        assert bytecode_hash("0x6080") == bytecode_hash(bytes.fromhex("6080"))

    def test_unlinked_code_still_hashes(self) -> None:
        unlinked = "0x6080__$1234567890abcdef1234567890abcdef12$__6080"
        assert bytecode_hash(unlinked) is not None
        assert bytecode_hash(unlinked) == bytecode_hash(unlinked)


class TestNormalizeSignature:
    """Hand-written plan signatures are canonicalized."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("foo()", "foo()"),
            ("function foo(uint a, address b) external", "foo(uint256,address)"),
            ("setData(bytes memory data, string calldata label)", "setData(bytes,string)"),
            ("batch(uint[] ids, int8 delta)", "batch(uint256[],int8)"),
            ("nested((address,uint)[] items, bool ok)", "nested((address,uint256)[],bool)"),
            ("wrapped(tuple(address, bool) pair)", "wrapped((address,bool))"),
            ("  spaced ( uint256 x , bytes32 y )  ", "spaced(uint256,bytes32)"),
        ],
    )
    def test_canonical_forms(self, text: str, expected: str) -> None:
        assert normalize_signature(text) == expected

    @pytest.mark.parametrize("text", ["", "foo", "(uint256)", "foo(uint256", "1foo()", "foo(,)"])
    def test_invalid_forms(self, text: str) -> None:
        with pytest.raises(PlanError) as exc_info:
            normalize_signature(text)
        assert exc_info.value.code == ErrorCode.PLAN_INVALID_SIGNATURE

    def test_raw_selector_detection(self) -> None:
        assert is_raw_selector("0xA9059CBB")
        assert not is_raw_selector("0xa9059c")
        assert not is_raw_selector("transfer(address,uint256)")

    def test_signature_or_selector(self) -> None:
        assert signature_or_selector("0xA9059CBB") == ("0xa9059cbb", None)
        assert signature_or_selector("transfer(address to, uint amount)") == (
            "0xa9059cbb",
            "transfer(address,uint256)",
        )


class TestDeriveFunctionName:
    @pytest.mark.parametrize(
        ("candidate", "signature", "selector", "expected"),
        [
            ("foo", "bar(uint256)", "0x12345678", "foo"),
            (None, "bar(uint256)", "0x12345678", "bar"),
            ("  ", "function baz()", None, "baz"),
            (None, None, "0x12345678", "0x12345678"),
            (None, None, None, "unknown"),
        ],
    )
    def test_fallback_order(
        self, candidate: str | None, signature: str | None, selector: str | None, expected: str
    ) -> None:
        assert derive_function_name(candidate, signature, selector) == expected
