"""Build the facet catalog from a Hardhat artifacts directory.

Layout consumed:

    <artifacts>/<source path>/<Name>.json       contractName, sourceName, abi, bytecode, deployedBytecode
    <artifacts>/<source path>/<Name>.dbg.json   {"buildInfo": "<relative path to build-info record>"}
    <artifacts>/../build-info/<hash>.json       input.sources + output.sources[..].ast
"""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Any

import structlog

from cutplane.catalog.abi import abi_hash, abi_selectors, bytecode_hash, event_signatures
from cutplane.catalog.ast import extract_external_details, extract_internal_routines
from cutplane.catalog.models import CatalogEntry, FacetCatalog
from cutplane.config.constants import BUILD_INFO_DIR, DBG_SUFFIX
from cutplane.core.errors import CatalogError

log = structlog.get_logger(__name__)


class BuildInfoCache:
    """Parsed build-info records keyed by resolved path and mtime.

    One build-info record is shared by every contract of a compilation, so
    a catalog build reads each record once. Reusing the cache across runs
    in one process skips unchanged records.
    """

    def __init__(self) -> None:
        self._entries: dict[Path, tuple[int, dict[str, Any]]] = {}
        self.hits = 0
        self.misses = 0

    def load(self, dbg_path: Path) -> tuple[dict[str, Any], Path] | None:
        """Follow a ``.dbg.json`` link; None if the link or record is missing."""
        try:
            dbg = json.loads(dbg_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.warning("catalog.dbg_unreadable", path=str(dbg_path))
            return None
        relative = dbg.get("buildInfo") if isinstance(dbg, dict) else None
        if not relative:
            return None

        path = (dbg_path.parent / relative).resolve()
        try:
            mtime = path.stat().st_mtime_ns
        except OSError:
            log.warning("catalog.build_info_missing", path=str(path), dbg=str(dbg_path))
            return None

        cached = self._entries.get(path)
        if cached is not None and cached[0] == mtime:
            self.hits += 1
            return cached[1], path

        try:
            info = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.warning("catalog.build_info_unreadable", path=str(path))
            return None
        self.misses += 1
        self._entries[path] = (mtime, info)
        return info, path

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def iter_artifact_files(artifacts_dir: Path) -> list[Path]:
    """Artifact JSON files in stable order, skipping debug links and build-info."""
    return sorted(
        path
        for path in artifacts_dir.rglob("*.json")
        if not path.name.endswith(DBG_SUFFIX)
        and BUILD_INFO_DIR not in path.relative_to(artifacts_dir).parts
    )


def build_catalog(
    artifacts_dir: Path,
    cache: BuildInfoCache | None = None,
    *,
    repo_root: Path | None = None,
) -> FacetCatalog:
    """Parse every deployable artifact under ``artifacts_dir``.

    Raises:
        CatalogError: If the artifacts directory does not exist.
    """
    if not artifacts_dir.is_dir():
        raise CatalogError.artifacts_not_found(str(artifacts_dir))

    cache = cache if cache is not None else BuildInfoCache()
    catalog = FacetCatalog()
    skipped = 0
    for path in iter_artifact_files(artifacts_dir):
        entry = load_catalog_entry(path, cache, repo_root=repo_root)
        if entry is None:
            skipped += 1
            continue
        catalog.add(entry)

    log.info(
        "catalog.built",
        facets=len(catalog),
        skipped=skipped,
        build_info_records=len(cache),
    )
    return catalog


def load_catalog_entry(
    artifact_path: Path,
    cache: BuildInfoCache,
    *,
    repo_root: Path | None = None,
) -> CatalogEntry | None:
    """Build one entry; None for interfaces, libraries without code, or bad JSON."""
    try:
        artifact = json.loads(artifact_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning("catalog.artifact_unreadable", path=str(artifact_path), error=str(e))
        return None
    if not isinstance(artifact, dict) or "contractName" not in artifact:
        return None

    deployed = artifact.get("deployedBytecode") or ""
    runtime_hash = bytecode_hash(deployed)
    if runtime_hash is None:
        return None

    abi = artifact.get("abi")
    try:
        if not isinstance(abi, list):
            raise ValueError("abi is not a list")
        base_selectors = abi_selectors(abi)
        events = event_signatures(abi)
    except (KeyError, TypeError, ValueError) as e:
        log.warning("catalog.abi_malformed", path=str(artifact_path), error=str(e))
        return None

    contract_name = artifact["contractName"]
    source_name = artifact.get("sourceName") or ""

    internal_routines = []
    details = {}
    build_info_path = None
    dbg_path = artifact_path.with_name(artifact_path.name[: -len(".json")] + DBG_SUFFIX)
    if dbg_path.exists():
        loaded = cache.load(dbg_path)
        if loaded is not None:
            info, resolved = loaded
            build_info_path = _display_path(resolved, repo_root)
            internal_routines = sorted(
                extract_internal_routines(info, source_name, contract_name),
                key=lambda r: r.name,
            )
            details = extract_external_details(info, source_name, contract_name, set(base_selectors))

    selectors = []
    for selector_id in sorted(base_selectors):
        base = base_selectors[selector_id]
        detail = details.get(selector_id)
        if detail is not None:
            base = replace(
                base,
                implementation_hash=detail.implementation_hash,
                source_hash=detail.source_hash,
                function_name=detail.function_name or base.function_name,
            )
        selectors.append(base)

    return CatalogEntry(
        contract_name=contract_name,
        source_name=source_name,
        artifact_path=artifact_path,
        deployed_bytecode=deployed,
        deployed_bytecode_hash=runtime_hash,
        bytecode=artifact.get("bytecode") or "",
        abi=abi,
        abi_hash=abi_hash(abi),
        selectors=selectors,
        internal_routines=internal_routines,
        events=events,
        build_info_path=build_info_path,
    )


def _display_path(path: Path, repo_root: Path | None) -> str:
    if repo_root is not None:
        try:
            return path.relative_to(repo_root.resolve()).as_posix()
        except ValueError:
            pass
    return path.as_posix()
