"""Solidity AST walking and content hashing.

Two hashes describe each function:

- content hash: keccak of the sanitized AST subtree. Node ids, source
  offsets and cross references are dropped so recompiling unchanged code
  yields the same hash.
- source hash: keccak of the exact UTF-8 byte span named by the node's
  ``src`` attribute (``start:length:fileIndex``).
"""

from __future__ import annotations

import json
from typing import Any

from eth_utils import encode_hex, keccak

from cutplane.catalog.abi import hash_text, selector_of
from cutplane.catalog.models import InternalRoutineInfo, SelectorInfo

OMIT_AST_KEYS = frozenset({"id", "src", "referencedDeclaration", "absolutePath", "scope"})

_INTERNAL_VISIBILITY = ("internal", "private")
_EXTERNAL_VISIBILITY = ("public", "external")
_DATA_LOCATIONS = (" memory", " calldata", " storage", " pointer", " ref")


def sanitize_ast_node(node: Any) -> Any:
    """Drop position-dependent keys recursively and sort the rest."""
    if isinstance(node, list):
        return [sanitize_ast_node(v) for v in node]
    if isinstance(node, dict):
        return {k: sanitize_ast_node(node[k]) for k in sorted(node) if k not in OMIT_AST_KEYS}
    return node


def hash_ast_node(node: dict[str, Any] | None) -> str | None:
    if not node:
        return None
    sanitized = sanitize_ast_node(node)
    return hash_text(json.dumps(sanitized, separators=(",", ":"), ensure_ascii=False))


def source_span_hash(source: str, src: str | None) -> str | None:
    """Hash the source text covered by a ``start:length[:file]`` span."""
    if not src or not source:
        return None
    parts = src.split(":")
    if len(parts) < 2:
        return None
    try:
        start, length = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if start < 0 or length < 0:
        return None
    # Offsets count bytes, not characters
    return encode_hex(keccak(source.encode("utf-8")[start : start + length]))


def find_contract_node(
    build_info: dict[str, Any], source_name: str, contract_name: str
) -> dict[str, Any] | None:
    source = (build_info.get("output") or {}).get("sources", {}).get(source_name) or {}
    for node in (source.get("ast") or {}).get("nodes") or []:
        if node.get("nodeType") == "ContractDefinition" and node.get("name") == contract_name:
            return node
    return None


def source_content(build_info: dict[str, Any], source_name: str) -> str:
    sources = (build_info.get("input") or {}).get("sources") or {}
    return (sources.get(source_name) or {}).get("content") or ""


def param_type_string(param: dict[str, Any]) -> str:
    type_name = param.get("typeName") or {}
    return (
        (param.get("typeDescriptions") or {}).get("typeString")
        or (type_name.get("typeDescriptions") or {}).get("typeString")
        or type_name.get("name")
        or "unknown"
    )


def _abi_type(type_string: str) -> str:
    """Approximate the ABI type of a Solidity type string."""
    result = type_string
    for suffix in _DATA_LOCATIONS:
        result = result.replace(suffix, "")
    if result.startswith(("contract ", "address payable")):
        return "address"
    if result.startswith("enum "):
        return "uint8"
    return result.strip()


def format_internal_signature(node: dict[str, Any]) -> str:
    """Human-readable declaration, e.g. ``internal function _f(uint256 x) view returns (bool)``."""
    params = []
    for param in (node.get("parameters") or {}).get("parameters") or []:
        storage = param.get("storageLocation")
        location = f" {storage}" if storage and storage != "default" else ""
        ident = f" {param['name']}" if param.get("name") else ""
        params.append(f"{param_type_string(param)}{location}{ident}".strip())

    returns = []
    for param in (node.get("returnParameters") or {}).get("parameters") or []:
        ident = f" {param['name']}" if param.get("name") else ""
        returns.append(f"{param_type_string(param)}{ident}".strip())

    visibility = f"{node['visibility']} " if node.get("visibility") else ""
    mutability = node.get("stateMutability")
    mutability = f" {mutability}" if mutability and mutability != "nonpayable" else ""

    signature = f"{visibility}function {node.get('name') or ''}({', '.join(params)}){mutability}".strip()
    if returns:
        signature = f"{signature} returns ({', '.join(returns)})"
    return signature


def _function_children(contract: dict[str, Any], visibilities: tuple[str, ...]) -> list[dict[str, Any]]:
    return [
        child
        for child in contract.get("nodes") or []
        if child.get("nodeType") == "FunctionDefinition" and child.get("visibility") in visibilities
    ]


def extract_internal_routines(
    build_info: dict[str, Any], source_name: str, contract_name: str
) -> list[InternalRoutineInfo]:
    contract = find_contract_node(build_info, source_name, contract_name)
    if contract is None:
        return []
    content = source_content(build_info, source_name)
    return [
        InternalRoutineInfo(
            name=child.get("name") or "",
            visibility=child["visibility"],
            signature=format_internal_signature(child),
            content_hash=hash_ast_node(child),
            source_hash=source_span_hash(content, child.get("src")),
        )
        for child in _function_children(contract, _INTERNAL_VISIBILITY)
    ]


def extract_external_details(
    build_info: dict[str, Any],
    source_name: str,
    contract_name: str,
    known_selectors: set[str],
) -> dict[str, SelectorInfo]:
    """Hashes for every public/external function that maps to a known selector.

    The AST ``functionSelector`` field is authoritative; when absent, the
    selector is computed from the parameter type strings.
    """
    details: dict[str, SelectorInfo] = {}
    contract = find_contract_node(build_info, source_name, contract_name)
    if contract is None:
        return details
    content = source_content(build_info, source_name)

    for child in _function_children(contract, _EXTERNAL_VISIBILITY):
        name = child.get("name") or ""
        if not name:
            continue  # fallback/receive have no selector
        params = (child.get("parameters") or {}).get("parameters") or []
        canonical = f"{name}({','.join(_abi_type(param_type_string(p)) for p in params)})"
        if child.get("functionSelector"):
            selector = "0x" + str(child["functionSelector"]).lower()
        else:
            selector = selector_of(canonical)
        if selector not in known_selectors:
            continue
        details[selector] = SelectorInfo(
            selector=selector,
            signature=canonical,
            implementation_hash=hash_ast_node(child),
            source_hash=source_span_hash(content, child.get("src")),
            function_name=name,
        )
    return details
