"""Configuration constants.

Protocol constraints and on-disk layout names that are not user-configurable.
For configurable values, see models.py.
"""

# =============================================================================
# Diamond protocol
# =============================================================================

NULL_ADDRESS = "0x0000000000000000000000000000000000000000"
"""Target address of Remove instructions and of an absent init call."""

SELECTOR_HEX_LEN = 8
"""A selector is 4 bytes, rendered as 0x + 8 hex chars."""

LOCAL_CHAIN_ID = 31337
"""Chain id reported by local development nodes and forks."""

# =============================================================================
# Artifact layout
# =============================================================================

DBG_SUFFIX = ".dbg.json"
"""Sibling file linking an artifact to its build-info record."""

BUILD_INFO_DIR = "build-info"
"""Directory of build-info records, skipped when scanning artifacts."""

# =============================================================================
# State layout
# =============================================================================

DIAMOND_STATE_DIR = "diamond"
SNAPSHOTS_DIR = "snapshots"
HISTORY_DIR = "history"
DIFFS_DIR = "diffs"
CURRENT_SNAPSHOT_FILE = "current_diamond_state.json"
LATEST_DIFF_LINK = "latest-diff.json"
