"""Append-only snapshot history per (chain, diamond).

Layout under ``<state_dir>/diamond/<chain_id>/``::

    snapshots/<address>/history/000001-<block>.json   one immutable file per append
    snapshots/<address>/current_diamond_state.json    copy of the latest entry

Legacy layouts are read transparently and migrated forward on the next
append:

    <address>.json                                    {"history": [...]}
    snapshots/<address>/current_diamond_state.json    with no history directory
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from cutplane.config.constants import (
    CURRENT_SNAPSHOT_FILE,
    DIAMOND_STATE_DIR,
    HISTORY_DIR,
    SNAPSHOTS_DIR,
)
from cutplane.core.errors import SnapshotError
from cutplane.snapshot.models import DiamondSnapshot, SnapshotHistory

log = structlog.get_logger(__name__)


class SnapshotStore:
    """Filesystem-backed snapshot history. ``append`` is the only mutator."""

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    # =========================================================================
    # Paths
    # =========================================================================

    def chain_dir(self, chain_id: str) -> Path:
        return self._state_dir / DIAMOND_STATE_DIR / str(chain_id).lower()

    def snapshot_dir(self, chain_id: str, address: str) -> Path:
        return self.chain_dir(chain_id) / SNAPSHOTS_DIR / address.lower()

    def history_dir(self, chain_id: str, address: str) -> Path:
        return self.snapshot_dir(chain_id, address) / HISTORY_DIR

    def current_path(self, chain_id: str, address: str) -> Path:
        return self.snapshot_dir(chain_id, address) / CURRENT_SNAPSHOT_FILE

    def legacy_path(self, chain_id: str, address: str) -> Path:
        return self.chain_dir(chain_id) / f"{address.lower()}.json"

    # =========================================================================
    # Reads
    # =========================================================================

    def read_history(self, chain_id: str, address: str) -> SnapshotHistory:
        """All snapshots for the diamond, oldest first; empty if none."""
        history = SnapshotHistory(chain_id=str(chain_id), diamond_address=address.lower())
        files = self._history_files(chain_id, address)
        if files:
            history.entries = [_parse_snapshot(_read_json(p), p) for p in files]
        else:
            history.entries = self._read_legacy(chain_id, address)
        return history

    def read_latest(self, chain_id: str, address: str) -> DiamondSnapshot | None:
        return self.read_history(chain_id, address).latest

    def _history_files(self, chain_id: str, address: str) -> list[Path]:
        directory = self.history_dir(chain_id, address)
        if not directory.is_dir():
            return []
        return sorted(directory.glob("*.json"))

    def _read_legacy(self, chain_id: str, address: str) -> list[DiamondSnapshot]:
        legacy = self.legacy_path(chain_id, address)
        if legacy.exists():
            data = _read_json(legacy)
            if not isinstance(data, dict) or not isinstance(data.get("history"), list):
                raise SnapshotError.corrupt(str(legacy), "expected an object with a history list")
            return [_parse_snapshot(item, legacy) for item in data["history"]]

        current = self.current_path(chain_id, address)
        if current.exists():
            return [_parse_snapshot(_read_json(current), current)]
        return []

    # =========================================================================
    # Writes
    # =========================================================================

    def append(self, snapshot: DiamondSnapshot) -> Path:
        """Add ``snapshot`` as the newest history entry and return its path.

        Existing entries are never rewritten. Legacy data is first copied
        forward into history files.
        """
        chain_id, address = snapshot.chain_id, snapshot.diamond_address
        history_dir = self.history_dir(chain_id, address)
        existing = self._history_files(chain_id, address)

        if not existing:
            legacy_entries = self._read_legacy(chain_id, address)
            if legacy_entries:
                history_dir.mkdir(parents=True, exist_ok=True)
                for seq, entry in enumerate(legacy_entries, start=1):
                    _write_new(history_dir / _entry_name(seq, entry), entry)
                log.info(
                    "snapshot.legacy_migrated",
                    diamond=address.lower(),
                    chain_id=chain_id,
                    entries=len(legacy_entries),
                )
                existing = self._history_files(chain_id, address)

        history_dir.mkdir(parents=True, exist_ok=True)
        path = history_dir / _entry_name(len(existing) + 1, snapshot)
        _write_new(path, snapshot)
        self.current_path(chain_id, address).write_text(_dumps(snapshot), encoding="utf-8")

        legacy = self.legacy_path(chain_id, address)
        if legacy.exists():
            legacy.unlink()

        log.info(
            "snapshot.appended",
            diamond=address.lower(),
            chain_id=chain_id,
            block=snapshot.block_number,
            entries=len(existing) + 1,
        )
        return path


def _entry_name(seq: int, snapshot: DiamondSnapshot) -> str:
    return f"{seq:06d}-{snapshot.block_number}.json"


def _dumps(snapshot: DiamondSnapshot) -> str:
    return json.dumps(snapshot.to_dict(), indent=2) + "\n"


def _write_new(path: Path, snapshot: DiamondSnapshot) -> None:
    # "x" refuses to overwrite an existing history entry
    with path.open("x", encoding="utf-8") as f:
        f.write(_dumps(snapshot))


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise SnapshotError.corrupt(str(path), str(e)) from e


def _parse_snapshot(data: Any, path: Path) -> DiamondSnapshot:
    if not isinstance(data, dict):
        raise SnapshotError.corrupt(str(path), "snapshot is not an object")
    try:
        return DiamondSnapshot.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise SnapshotError.corrupt(str(path), f"missing or invalid field: {e}") from e
