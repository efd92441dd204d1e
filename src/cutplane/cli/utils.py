"""CLI utilities."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import click

from cutplane.config.loader import load_config
from cutplane.config.models import CutplaneConfig
from cutplane.core.errors import CutplaneError
from cutplane.core.logging import configure_logging, get_log_file_path


def find_repo_root(start_path: Path | None = None) -> Path:
    """Find the git repository root from the given path.

    Walks up the directory tree looking for a .git directory.
    If start_path is None, uses the current working directory.

    Raises:
        click.ClickException: If not inside a git repository
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    if (current / ".git").exists():
        return current

    raise click.ClickException(
        f"Not inside a git repository: {start_path}\n"
        "Cutplane commands must be run from within the contracts repository."
    )


@dataclass(frozen=True)
class Workspace:
    """Resolved locations and config for one command invocation."""

    repo_root: Path
    config: CutplaneConfig
    artifacts_dir: Path
    state_dir: Path


def load_workspace(path: Path, *, verbose: bool = False) -> Workspace:
    """Locate the repository, load its config and apply its logging settings."""
    repo_root = find_repo_root(path)
    with cli_errors():
        config = load_config(repo_root)
    logging_config = config.logging
    if verbose:
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    configure_logging(config=logging_config)
    artifacts_dir, state_dir = config.paths.resolve(repo_root)
    return Workspace(repo_root=repo_root, config=config, artifacts_dir=artifacts_dir, state_dir=state_dir)


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn structured errors into click errors with a readable message."""
    try:
        yield
    except CutplaneError as e:
        hint = f"\nSee log: {log_path}" if (log_path := get_log_file_path()) else ""
        raise click.ClickException(f"{e}{hint}") from e
