"""Diamond snapshots: capture and append-only storage."""

from cutplane.snapshot.capture import SnapshotCapturer
from cutplane.snapshot.models import DiamondSnapshot, FacetRecord, SnapshotHistory
from cutplane.snapshot.store import SnapshotStore

__all__ = [
    "DiamondSnapshot",
    "FacetRecord",
    "SnapshotCapturer",
    "SnapshotHistory",
    "SnapshotStore",
]
