"""Upgrade plan models.

A plan names the facets to (re)deploy and, per facet, the functions the
cut adds and removes. Entries are hand-written signatures; removals may
also be raw ``0x`` selector ids.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

from cutplane.catalog.abi import is_raw_selector, normalize_signature, selector_of, signature_or_selector
from cutplane.core.errors import PlanError


class PlannedFacet(BaseModel):
    """One facet of an upgrade plan.

    An empty ``name`` carries removals only; nothing is deployed for it.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(
        default="",
        validation_alias=AliasChoices("name", "facet_name", "facetName"),
        description="Contract name of the facet in the compiled artifacts.",
    )
    add_selectors: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("add_selectors", "addSelectors", "add"),
        description="Signatures of functions the cut adds for this facet.",
    )
    remove_selectors: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("remove_selectors", "removeSelectors", "remove"),
        description="Signatures or raw selector ids the cut removes from the diamond.",
    )

    _adds: list[tuple[str, str]] = PrivateAttr(default_factory=list)
    _removes: list[tuple[str, str]] = PrivateAttr(default_factory=list)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("add_selectors", "remove_selectors")
    @classmethod
    def _drop_blank(cls, v: list[str]) -> list[str]:
        return [s.strip() for s in v if s and s.strip()]

    @model_validator(mode="after")
    def _resolve(self) -> PlannedFacet:
        adds: dict[str, str] = {}
        for text in self.add_selectors:
            if is_raw_selector(text):
                raise PlanError.invalid_signature(text)
            adds.setdefault(selector_of(normalize_signature(text)), text)
        removes: dict[str, str] = {}
        for text in self.remove_selectors:
            selector, _ = signature_or_selector(text)
            removes.setdefault(selector, text)
        self._adds = list(adds.items())
        self._removes = list(removes.items())
        return self

    @property
    def add_selector_ids(self) -> list[str]:
        return [s for s, _ in self._adds]

    @property
    def remove_selector_ids(self) -> list[str]:
        return [s for s, _ in self._removes]

    def declared_add(self, selector: str) -> str | None:
        """The plan text that declared ``selector`` as added."""
        return dict(self._adds).get(selector)

    def declared_remove(self, selector: str) -> str | None:
        return dict(self._removes).get(selector)


class UpgradePlan(BaseModel):
    """Ordered list of planned facets."""

    model_config = ConfigDict(extra="forbid")

    facets: list[PlannedFacet] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> UpgradePlan:
        seen: set[str] = set()
        for planned in self.facets:
            if planned.name in seen:
                raise PlanError.duplicate_facet(planned.name)
            if planned.name:
                seen.add(planned.name)
        return self

    @property
    def facet_names(self) -> set[str]:
        return {f.name for f in self.facets if f.name}

    def facet(self, name: str) -> PlannedFacet | None:
        for planned in self.facets:
            if planned.name == name:
                return planned
        return None
