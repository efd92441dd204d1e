"""Compiled-artifact catalog."""

from cutplane.catalog.builder import BuildInfoCache, build_catalog
from cutplane.catalog.models import CatalogEntry, FacetCatalog, InternalRoutineInfo, SelectorInfo

__all__ = [
    "BuildInfoCache",
    "build_catalog",
    "CatalogEntry",
    "FacetCatalog",
    "InternalRoutineInfo",
    "SelectorInfo",
]
