"""Tests for CLI utilities.

Covers:
- find_repo_root() function
- load_workspace() path resolution
- cli_errors() mapping to click errors
"""

from __future__ import annotations

from pathlib import Path

import click
import pygit2
import pytest

from cutplane.cli.utils import cli_errors, find_repo_root, load_workspace
from cutplane.core.errors import PlanError, RepositoryError


class TestFindRepoRoot:
    """Tests for find_repo_root function."""

    def test_finds_root_from_root(self, tmp_path: Path) -> None:
        """Finds repo root when starting from root."""
        pygit2.init_repository(str(tmp_path))

        assert find_repo_root(tmp_path) == tmp_path

    def test_finds_root_from_subdirectory(self, tmp_path: Path) -> None:
        """Finds repo root when starting from subdirectory."""
        pygit2.init_repository(str(tmp_path))
        nested = tmp_path / "a" / "b" / "c"
        nested.mkdir(parents=True)

        assert find_repo_root(nested) == tmp_path

    def test_raises_when_not_in_repo(self, tmp_path: Path) -> None:
        """Raises ClickException naming the searched path."""
        with pytest.raises(click.ClickException) as exc_info:
            find_repo_root(tmp_path)

        assert "Not inside a git repository" in exc_info.value.message
        assert str(tmp_path) in exc_info.value.message

    def test_uses_cwd_when_none(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Uses current working directory when start_path is None."""
        pygit2.init_repository(str(tmp_path))
        subdir = tmp_path / "sub"
        subdir.mkdir()
        monkeypatch.chdir(subdir)

        assert find_repo_root(None) == tmp_path


class TestLoadWorkspace:
    def test_default_paths(self, tmp_path: Path) -> None:
        pygit2.init_repository(str(tmp_path))

        ws = load_workspace(tmp_path / ".")

        assert ws.repo_root == tmp_path
        assert ws.artifacts_dir == tmp_path / "artifacts" / "contracts"
        assert ws.state_dir == tmp_path / "state"

    def test_repo_config_applied(self, tmp_path: Path) -> None:
        pygit2.init_repository(str(tmp_path))
        (tmp_path / ".cutplane").mkdir()
        (tmp_path / ".cutplane" / "config.yaml").write_text("paths:\n  state_dir: deployments/state\n")

        ws = load_workspace(tmp_path)

        assert ws.state_dir == tmp_path / "deployments" / "state"

    def test_invalid_config_is_click_error(self, tmp_path: Path) -> None:
        pygit2.init_repository(str(tmp_path))
        (tmp_path / ".cutplane").mkdir()
        (tmp_path / ".cutplane" / "config.yaml").write_text("ledger:\n  max_fetch_workers: 0\n")

        with pytest.raises(click.ClickException):
            load_workspace(tmp_path)


class TestCliErrors:
    def test_structured_error(self) -> None:
        with pytest.raises(click.ClickException) as exc_info, cli_errors():
            raise PlanError.parse_error("plan is empty")

        assert exc_info.value.message.startswith("[")
        assert "PLAN_PARSE_ERROR: Failed to parse upgrade plan: plan is empty" in exc_info.value.message

    def test_repository_error(self) -> None:
        with pytest.raises(click.ClickException) as exc_info, cli_errors():
            raise RepositoryError.not_found("/nowhere")

        assert "[8001] REPO_NOT_FOUND: No git repository at or above /nowhere" in exc_info.value.message

    def test_other_errors_propagate(self) -> None:
        with pytest.raises(KeyError), cli_errors():
            raise KeyError("x")
