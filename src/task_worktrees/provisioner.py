# Copyright 2026 Pennyworth Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Git-side steps of workspace provisioning.

These helpers always ask git for the current branch and worktree state
instead of trusting the persisted records, which may be out of date.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path

from task_worktrees.constants import DEFAULT_TAG, INITIAL_COMMIT_MESSAGE, INITIAL_GITIGNORE
from task_worktrees.errors import FilesystemCleanupError, GitError
from task_worktrees.git.repo import (
    WorktreeEntry,
    git_add,
    git_branch_delete,
    git_branch_exists,
    git_commit,
    git_has_commits,
    git_worktree_add,
    git_worktree_list,
    git_worktree_prune,
    git_worktree_remove,
)

logger = logging.getLogger(__name__)


@dataclass
class ProvisionOptions:
    """Caller options for creating a workspace."""

    source_branch: str | None = None
    title: str | None = None
    tag: str = DEFAULT_TAG


def same_path(a: Path | str, b: Path | str) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


def _prune_quietly(cwd: Path) -> None:
    try:
        git_worktree_prune(cwd)
    except GitError as e:
        logger.debug("git worktree prune failed: %s", e)


def find_branch_holder(branch: str, target_path: Path, cwd: Path) -> Path | None:
    """Return the live worktree, other than *target_path*, that has *branch* checked out.

    Worktrees git still lists but whose directory is gone do not count;
    their bookkeeping is pruned so the branch can be checked out again.
    """
    entries = git_worktree_list(cwd)
    holder: Path | None = None
    saw_missing = False
    for entry in entries:
        if not entry.path.exists():
            saw_missing = True
            continue
        if entry.branch == branch and not same_path(entry.path, target_path):
            holder = entry.path
            break

    if saw_missing:
        logger.debug("Pruning worktree entries whose directories are gone")
        _prune_quietly(cwd)
    return holder


def _is_registered_worktree(path: Path, cwd: Path) -> bool:
    try:
        entries = git_worktree_list(cwd)
    except GitError:
        return False
    return any(same_path(entry.path, path) for entry in entries)


def _remove_tree(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    else:
        shutil.rmtree(path)


def remove_stray_directory(path: Path, cwd: Path) -> None:
    """Remove a directory left at a workspace path that no record tracks.

    Raises:
        FilesystemCleanupError: If the directory cannot be removed.
    """
    if not path.exists():
        return

    logger.info("Workspace directory already exists at %s, cleaning up...", path)
    if _is_registered_worktree(path, cwd):
        try:
            git_worktree_remove(path, cwd, force=True)
        except GitError as e:
            logger.debug("git worktree remove failed, removing directory: %s", e)

    if path.exists():
        try:
            _remove_tree(path)
        except OSError as e:
            logger.error("Failed to clean up workspace directory %s: %s", path, e)
            raise FilesystemCleanupError(path, str(e)) from e

    _prune_quietly(cwd)


def ensure_initial_commit(cwd: Path) -> None:
    """Give a repository without history a first commit to branch from.

    A ``.gitignore`` excluding the config directory and sibling workspace
    roots is written if the repository has none, and is the only file
    committed.
    """
    if git_has_commits(cwd):
        return
    logger.info("Repository has no commits, creating an initial commit")

    gitignore = Path(cwd) / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text(INITIAL_GITIGNORE)
    git_add([".gitignore"], cwd)
    git_commit(INITIAL_COMMIT_MESSAGE, cwd, allow_empty=True)


def create_worktree(
    path: Path,
    branch: str,
    cwd: Path,
    *,
    source_branch: str | None = None,
    reuse_branch: bool = False,
) -> None:
    """Create the worktree at *path*.

    With *reuse_branch*, *branch* must already exist and is attached as is.
    Otherwise *branch* is created from *source_branch* in the same step.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    ensure_initial_commit(cwd)
    # git refuses to add at a path still registered to a deleted worktree
    _prune_quietly(cwd)

    if reuse_branch:
        logger.debug("Creating worktree at %s on existing branch %s", path, branch)
        git_worktree_add(path, cwd, branch=branch)
    else:
        logger.debug("Creating worktree at %s with branch %s from %s", path, branch, source_branch)
        git_worktree_add(path, cwd, new_branch=branch, start_point=source_branch)
    logger.info("Created worktree %s at %s", branch, path)


def _other_holders(branch: str, target_path: Path, cwd: Path) -> list[WorktreeEntry]:
    try:
        entries = git_worktree_list(cwd)
    except GitError as e:
        logger.warning("Could not list worktrees: %s", e)
        return []
    return [
        entry for entry in entries
        if entry.branch == branch and not same_path(entry.path, target_path)
    ]


def cleanup_branch_and_worktree(branch: str, target_path: Path, cwd: Path) -> bool:
    """Remove the worktree at *target_path*, every other worktree on *branch*, and *branch*.

    Failures to remove another worktree or to delete the branch are logged;
    the caller checks whether the branch is really gone.

    Returns:
        True if the branch no longer exists.

    Raises:
        FilesystemCleanupError: If the target directory cannot be removed.
    """
    if target_path.exists():
        try:
            git_worktree_remove(target_path, cwd, force=True)
        except GitError as e:
            logger.debug("git worktree remove failed, removing directory: %s", e)
        if target_path.exists():
            try:
                _remove_tree(target_path)
            except OSError as e:
                raise FilesystemCleanupError(target_path, str(e)) from e

    for entry in _other_holders(branch, target_path, cwd):
        logger.info("Branch %s is in use by another worktree at %s, removing it", branch, entry.path)
        try:
            git_worktree_remove(entry.path, cwd, force=True)
        except GitError as e:
            logger.warning("Could not remove worktree %s: %s", entry.path, e)

    _prune_quietly(cwd)

    if git_branch_exists(branch, cwd):
        try:
            git_branch_delete(branch, cwd, force=True)
        except GitError as e:
            logger.warning("Could not delete branch %s: %s", branch, e)

    return not git_branch_exists(branch, cwd)


def discard_branch(branch: str, cwd: Path) -> bool:
    """Delete *branch* if it still exists. Failures are logged, not raised.

    Returns:
        True if the branch no longer exists.
    """
    _prune_quietly(cwd)
    if not git_branch_exists(branch, cwd):
        return True
    try:
        git_branch_delete(branch, cwd, force=True)
    except GitError as e:
        logger.warning("Could not delete previous branch %s: %s", branch, e)
        return False
    logger.info("Deleted previous workspace branch %s", branch)
    return True


def fallback_branch_name(name: str) -> str:
    """Branch name used when *name* could not be freed: ``<name>-<unix ms>``."""
    return f"{name}-{int(time.time() * 1000)}"
