"""Repository facts recorded with an upgrade run, read through pygit2.

Only three facts matter: the HEAD commit stamped into snapshots, the
branch checked by the production release guard, and the tracked files
with uncommitted edits that flag unplanned facet changes.
"""

from __future__ import annotations

from pathlib import Path

import pygit2

from cutplane.core.errors import RepositoryError

# `git diff --name-only`
_WORKTREE_EDITS = (
    pygit2.GIT_STATUS_WT_MODIFIED
    | pygit2.GIT_STATUS_WT_DELETED
    | pygit2.GIT_STATUS_WT_RENAMED
    | pygit2.GIT_STATUS_WT_TYPECHANGE
)

# `git diff --name-only --cached`
_INDEX_EDITS = (
    pygit2.GIT_STATUS_INDEX_NEW
    | pygit2.GIT_STATUS_INDEX_MODIFIED
    | pygit2.GIT_STATUS_INDEX_DELETED
    | pygit2.GIT_STATUS_INDEX_RENAMED
    | pygit2.GIT_STATUS_INDEX_TYPECHANGE
)

_BRANCH_PREFIX = "refs/heads/"


class GitOps:
    """Read-only view of the contracts repository containing ``repo_path``.

    Raises:
        RepositoryError: If no repository encloses ``repo_path``.
    """

    def __init__(self, repo_path: Path | str) -> None:
        self._start = Path(repo_path)
        try:
            found = pygit2.discover_repository(str(self._start))
            if found is None:
                raise RepositoryError.not_found(str(self._start))
            self._repo = pygit2.Repository(found)
        except pygit2.GitError as e:
            raise RepositoryError.not_found(str(self._start)) from e

    @property
    def path(self) -> Path:
        """Working tree root."""
        workdir = self._repo.workdir
        return Path(workdir) if workdir else self._start

    def head_sha(self) -> str | None:
        """Commit id stamped into snapshots; None before the first commit."""
        if self._repo.head_is_unborn:
            return None
        return str(self._repo.head.peel(pygit2.Commit).id)

    def current_branch(self) -> str | None:
        """Checked-out branch name, or None on a detached HEAD."""
        if self._repo.head_is_unborn:
            # HEAD still points at the branch that will hold the first commit
            try:
                target = self._repo.references["HEAD"].target
            except KeyError:
                return None
            if isinstance(target, str) and target.startswith(_BRANCH_PREFIX):
                return target[len(_BRANCH_PREFIX) :]
            return None
        if self._repo.head_is_detached:
            return None
        return self._repo.head.shorthand

    def changed_paths(self, *, staged: bool = True, unstaged: bool = True) -> set[str]:
        """Tracked paths with uncommitted edits, repo-relative and POSIX-style.

        Untracked files are not included.
        """
        mask = (_WORKTREE_EDITS if unstaged else 0) | (_INDEX_EDITS if staged else 0)
        return {
            path.replace("\\", "/")
            for path, flags in self._repo.status().items()
            if flags & mask
        }
