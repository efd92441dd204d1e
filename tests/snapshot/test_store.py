"""Tests for snapshot/store.py - append-only history."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cutplane.core.errors import ErrorCode, SnapshotError
from cutplane.snapshot.store import SnapshotStore
from tests.factories import DIAMOND, address, make_entry, make_snapshot


@pytest.fixture
def store(tmp_path: Path) -> SnapshotStore:
    return SnapshotStore(tmp_path / "state")


def _snap(block: int, *names: str):
    return make_snapshot(
        [(make_entry(name, [f"{name.lower()}()"]), address(i + 1)) for i, name in enumerate(names)],
        block=block,
    )


class TestPaths:
    def test_layout_lowercases_address(self, store: SnapshotStore) -> None:
        upper = DIAMOND.upper().replace("0X", "0x")

        assert store.history_dir("31337", upper) == (
            store.state_dir / "diamond" / "31337" / "snapshots" / DIAMOND / "history"
        )
        assert store.current_path("31337", DIAMOND).name == "current_diamond_state.json"
        assert store.legacy_path("31337", DIAMOND) == store.state_dir / "diamond" / "31337" / f"{DIAMOND}.json"


class TestAppend:
    """History grows by exactly one immutable file per append."""

    def test_empty_history(self, store: SnapshotStore) -> None:
        history = store.read_history("31337", DIAMOND)
        assert len(history) == 0
        assert store.read_latest("31337", DIAMOND) is None

    def test_append_then_read(self, store: SnapshotStore) -> None:
        snapshot = _snap(100, "AlphaFacet")

        path = store.append(snapshot)

        assert path.name == "000001-100.json"
        assert store.read_latest("31337", DIAMOND) == snapshot
        current = json.loads(store.current_path("31337", DIAMOND).read_text())
        assert current["block_number"] == 100

    def test_appends_preserve_earlier_entries(self, store: SnapshotStore) -> None:
        first = store.append(_snap(100, "AlphaFacet"))
        before = first.read_bytes()

        second = store.append(_snap(101, "AlphaFacet", "BetaFacet"))

        assert first.read_bytes() == before
        assert second.name == "000002-101.json"
        history = store.read_history("31337", DIAMOND)
        assert [s.block_number for s in history.entries] == [100, 101]
        assert history.latest is not None
        assert [f.facet_name for f in history.latest.facets] == ["AlphaFacet", "BetaFacet"]

    def test_chains_are_separate(self, store: SnapshotStore) -> None:
        store.append(_snap(100, "AlphaFacet"))
        assert store.read_latest("8453", DIAMOND) is None


class TestLegacyLayouts:
    """Older layouts are read and migrated forward on append."""

    def test_legacy_history_file_read(self, store: SnapshotStore) -> None:
        legacy = store.legacy_path("31337", DIAMOND)
        legacy.parent.mkdir(parents=True)
        legacy.write_text(json.dumps({"history": [_snap(50, "AlphaFacet").to_dict(), _snap(60, "BetaFacet").to_dict()]}))

        history = store.read_history("31337", DIAMOND)

        assert [s.block_number for s in history.entries] == [50, 60]

    def test_legacy_history_migrated_on_append(self, store: SnapshotStore) -> None:
        # Given
        legacy = store.legacy_path("31337", DIAMOND)
        legacy.parent.mkdir(parents=True)
        legacy.write_text(json.dumps({"history": [_snap(50, "AlphaFacet").to_dict()]}))

        # When
        path = store.append(_snap(70, "AlphaFacet"))

        # Then
        assert path.name == "000002-70.json"
        assert not legacy.exists()
        names = sorted(p.name for p in store.history_dir("31337", DIAMOND).iterdir())
        assert names == ["000001-50.json", "000002-70.json"]

    def test_current_only_layout_read_as_single_entry(self, store: SnapshotStore) -> None:
        current = store.current_path("31337", DIAMOND)
        current.parent.mkdir(parents=True)
        current.write_text(json.dumps(_snap(40, "AlphaFacet").to_dict()))

        history = store.read_history("31337", DIAMOND)
        assert [s.block_number for s in history.entries] == [40]

        store.append(_snap(41, "AlphaFacet"))
        assert [s.block_number for s in store.read_history("31337", DIAMOND).entries] == [40, 41]

    def test_camel_case_legacy_snapshot(self, store: SnapshotStore) -> None:
        current = store.current_path("31337", DIAMOND)
        current.parent.mkdir(parents=True)
        current.write_text(
            json.dumps(
                {
                    "diamondAddress": DIAMOND,
                    "chainId": "31337",
                    "blockNumber": 5,
                    "facets": [{"facetName": "AlphaFacet", "facetAddress": address(1), "selectors": []}],
                }
            )
        )

        latest = store.read_latest("31337", DIAMOND)

        assert latest is not None
        assert latest.facets[0].facet_name == "AlphaFacet"


class TestCorruption:
    def test_unparseable_history_entry(self, store: SnapshotStore) -> None:
        store.append(_snap(100, "AlphaFacet"))
        (store.history_dir("31337", DIAMOND) / "000002-101.json").write_text("{oops")

        with pytest.raises(SnapshotError) as exc_info:
            store.read_history("31337", DIAMOND)
        assert exc_info.value.code == ErrorCode.SNAPSHOT_CORRUPT

    def test_legacy_without_history_list(self, store: SnapshotStore) -> None:
        legacy = store.legacy_path("31337", DIAMOND)
        legacy.parent.mkdir(parents=True)
        legacy.write_text(json.dumps({"facets": []}))

        with pytest.raises(SnapshotError):
            store.read_latest("31337", DIAMOND)

    def test_entry_missing_chain_id(self, store: SnapshotStore) -> None:
        current = store.current_path("31337", DIAMOND)
        current.parent.mkdir(parents=True)
        current.write_text(json.dumps({"diamond_address": DIAMOND}))

        with pytest.raises(SnapshotError):
            store.read_latest("31337", DIAMOND)
