"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

import os
import sys
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local cutplane package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of cutplane modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("cutplane"):
        del sys.modules[module_name]


@pytest.fixture(autouse=True)
def _isolate_global_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's ~/.config/cutplane and CUTPLANE__* env out of tests."""
    from cutplane.config import loader

    monkeypatch.setattr(loader, "GLOBAL_CONFIG_PATH", tmp_path_factory.mktemp("home") / "config.yaml")
    for key in list(os.environ):
        if key.upper().startswith("CUTPLANE__"):
            monkeypatch.delenv(key)
