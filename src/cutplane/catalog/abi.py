"""ABI helpers: canonical signatures, selectors and content hashes.

Every hash produced here is ``0x``-prefixed lowercase keccak-256 hex.
"""

from __future__ import annotations

import json
import re
from typing import Any

from eth_utils import decode_hex, encode_hex, keccak

from cutplane.catalog.models import SelectorInfo
from cutplane.config.constants import SELECTOR_HEX_LEN
from cutplane.core.errors import PlanError

_RAW_SELECTOR = re.compile(rf"^0x[0-9a-fA-F]{{{SELECTOR_HEX_LEN}}}$")
_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_ELEMENTARY = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*((\[[0-9]*\])*)$")
_ARRAY_SUFFIX = re.compile(r"^((\[[0-9]*\])*)")
_SIGNATURE_NOISE = {"memory", "calldata", "storage", "indexed", "payable"}


# =============================================================================
# Hashing
# =============================================================================


def hash_text(text: str) -> str:
    return encode_hex(keccak(text=text))


def abi_hash(abi: list[dict[str, Any]]) -> str:
    """Hash the ABI in a key-order independent form."""
    return hash_text(json.dumps(abi, sort_keys=True, separators=(",", ":")))


def bytecode_hash(code: str | bytes | None) -> str | None:
    """Hash runtime code; None when there is no code at the address.

    Unlinked bytecode (library placeholders) is not valid hex and is hashed
    as text so it still produces a stable identity.
    """
    if code is None:
        return None
    if isinstance(code, bytes):
        return encode_hex(keccak(code)) if code else None
    code = code.strip()
    if code in ("", "0x"):
        return None
    try:
        return encode_hex(keccak(decode_hex(code)))
    except ValueError:
        return hash_text(code)


def selectors_key(selectors: list[str]) -> str:
    return ",".join(sorted(s.lower() for s in selectors))


# =============================================================================
# Canonical signatures from ABI entries
# =============================================================================


def canonical_type(param: dict[str, Any]) -> str:
    """Render one ABI parameter, expanding tuples to ``(t1,t2)``."""
    type_ = str(param.get("type", ""))
    if type_.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components") or [])
        return f"({inner}){type_[len('tuple') :]}"
    return type_


def canonical_signature(entry: dict[str, Any]) -> str:
    inputs = entry.get("inputs") or []
    return f"{entry['name']}({','.join(canonical_type(p) for p in inputs)})"


def selector_of(signature: str) -> str:
    return encode_hex(keccak(text=signature)[:4])


def abi_selectors(abi: list[dict[str, Any]]) -> dict[str, SelectorInfo]:
    """Map selector id to base info for every function entry of the ABI.

    Raises:
        ValueError: If a function entry is malformed.
    """
    result: dict[str, SelectorInfo] = {}
    for entry in abi:
        if not isinstance(entry, dict):
            raise ValueError(f"ABI entry is not an object: {entry!r}")
        if entry.get("type") != "function":
            continue
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("function entry without a name")
        signature = canonical_signature(entry)
        selector = selector_of(signature)
        result[selector] = SelectorInfo(
            selector=selector,
            signature=signature,
            state_mutability=entry.get("stateMutability"),
            function_name=name,
        )
    return result


def event_signatures(abi: list[dict[str, Any]]) -> list[str]:
    return sorted(
        canonical_signature(entry)
        for entry in abi
        if isinstance(entry, dict) and entry.get("type") == "event" and entry.get("name")
    )


def derive_function_name(
    candidate: str | None = None,
    signature: str | None = None,
    selector: str | None = None,
) -> str:
    """Best short label for a function: explicit name, signature head, selector."""
    if candidate and candidate.strip():
        return candidate.strip()
    if signature:
        trimmed = re.sub(r"^function\s+", "", signature.strip(), flags=re.IGNORECASE)
        head = trimmed.split("(")[0].strip()
        if head:
            return head.split()[-1]
    if selector and selector.strip():
        return selector.strip()
    return "unknown"


# =============================================================================
# Human-written signatures (upgrade plans)
# =============================================================================


def is_raw_selector(text: str) -> bool:
    return bool(_RAW_SELECTOR.match(text.strip()))


def normalize_signature(text: str) -> str:
    """Canonicalize a hand-written function signature.

    Accepts forms like ``function foo(uint a, (address,bool)[] memory b) external``
    and returns ``foo(uint256,(address,bool)[])``.

    Raises:
        PlanError: If the text is not a parseable function signature.
    """
    raw = text.strip()
    body = re.sub(r"^function\s+", "", raw, flags=re.IGNORECASE)
    open_at = body.find("(")
    if open_at <= 0:
        raise PlanError.invalid_signature(text)
    name = body[:open_at].strip()
    if not _IDENTIFIER.match(name):
        raise PlanError.invalid_signature(text)
    close_at = _matching_paren(body, open_at)
    if close_at is None:
        raise PlanError.invalid_signature(text)
    try:
        types = _normalize_param_list(body[open_at + 1 : close_at])
    except ValueError as e:
        raise PlanError.invalid_signature(text) from e
    return f"{name}({','.join(types)})"


def signature_or_selector(text: str) -> tuple[str, str | None]:
    """Resolve a plan entry to ``(selector, canonical signature or None)``."""
    if is_raw_selector(text):
        return text.strip().lower(), None
    signature = normalize_signature(text)
    return selector_of(signature), signature


def _matching_paren(text: str, open_at: int) -> int | None:
    depth = 0
    for i in range(open_at, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return None


def _split_top_level(text: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _normalize_param_list(text: str) -> list[str]:
    if not text.strip():
        return []
    return [_normalize_param(p) for p in _split_top_level(text)]


def _normalize_param(text: str) -> str:
    param = text.strip()
    if not param:
        raise ValueError("empty parameter")
    if param.startswith("tuple("):
        param = param[len("tuple") :]
    if param.startswith("("):
        close_at = _matching_paren(param, 0)
        if close_at is None:
            raise ValueError(f"unbalanced tuple: {param}")
        inner = _normalize_param_list(param[1:close_at])
        suffix = _ARRAY_SUFFIX.match(param[close_at + 1 :].replace(" ", ""))
        return f"({','.join(inner)}){suffix.group(1) if suffix else ''}"

    tokens = [t for t in param.split() if t not in _SIGNATURE_NOISE]
    if not tokens:
        raise ValueError(f"no type in parameter: {param}")
    type_ = tokens[0]
    if not _ELEMENTARY.match(type_):
        raise ValueError(f"not an ABI type: {type_}")
    base, _, rest = type_.partition("[")
    if base in ("uint", "int"):
        base = f"{base}256"
    return base + (f"[{rest}" if rest else "")
