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

"""Thin git subprocess wrapper."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from task_worktrees.errors import GitError

logger = logging.getLogger(__name__)


def _run(args: list[str], cwd: Path) -> str:
    """Run a git command and return stdout."""
    logger.debug("git %s", " ".join(args))
    try:
        result = subprocess.run(
            ["git"] + args,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip() or (e.stdout or "").strip()
        raise GitError(args, stderr, e.returncode) from e


@dataclass
class WorktreeEntry:
    """One block of ``git worktree list --porcelain`` output."""

    path: Path
    head: str | None = None
    branch: str | None = None
    detached: bool = False
    bare: bool = False
    locked: bool = False
    prunable: bool = False


def git_toplevel(cwd: Path | None = None) -> Path:
    """Return the root of the git repository containing cwd."""
    return Path(_run(["rev-parse", "--show-toplevel"], cwd or Path.cwd()))


def git_has_commits(cwd: Path) -> bool:
    try:
        _run(["rev-parse", "--verify", "HEAD"], cwd)
        return True
    except GitError:
        return False


def git_current_branch(cwd: Path) -> str:
    """Return the checked-out branch name.

    Works in a freshly initialised repository with no commits, where
    ``rev-parse --abbrev-ref HEAD`` fails.
    """
    if git_has_commits(cwd):
        branch = _run(["rev-parse", "--abbrev-ref", "HEAD"], cwd)
        if branch and branch != "HEAD":
            return branch
    branch = _run(["branch", "--show-current"], cwd)
    if branch:
        return branch
    ref = _run(["symbolic-ref", "HEAD"], cwd)
    return ref.removeprefix("refs/heads/")


def git_branch_exists(branch: str, cwd: Path) -> bool:
    try:
        _run(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], cwd)
        return True
    except GitError:
        return False


def git_branch_list(cwd: Path, pattern: str | None = None) -> list[str]:
    args = ["branch", "--list", "--format=%(refname:short)"]
    if pattern:
        args.append(pattern)
    out = _run(args, cwd)
    return [b.strip() for b in out.split("\n") if b.strip()]


def git_branch_delete(branch: str, cwd: Path, *, force: bool = True) -> None:
    _run(["branch", "-D" if force else "-d", branch], cwd)


def git_worktree_add(
    path: Path,
    cwd: Path,
    *,
    branch: str | None = None,
    new_branch: str | None = None,
    start_point: str | None = None,
) -> None:
    """Add a worktree at *path*.

    With *new_branch*, creates that branch from *start_point* in the same
    step. Otherwise checks out the existing *branch*.
    """
    args = ["worktree", "add"]
    if new_branch:
        args.extend(["-b", new_branch, str(path)])
        if start_point:
            args.append(start_point)
    else:
        if not branch:
            raise ValueError("git_worktree_add needs either branch or new_branch")
        args.extend([str(path), branch])
    _run(args, cwd)


def git_worktree_remove(path: Path, cwd: Path, *, force: bool = False) -> None:
    args = ["worktree", "remove"]
    if force:
        args.append("--force")
    args.append(str(path))
    _run(args, cwd)


def git_worktree_prune(cwd: Path) -> None:
    _run(["worktree", "prune"], cwd)


def parse_worktree_list(output: str) -> list[WorktreeEntry]:
    """Parse ``git worktree list --porcelain`` output.

    Blocks are separated by blank lines; each starts with
    ``worktree <path>`` followed by attribute lines.
    """
    entries: list[WorktreeEntry] = []
    current: WorktreeEntry | None = None
    for line in output.split("\n"):
        line = line.rstrip()
        if line.startswith("worktree "):
            current = WorktreeEntry(path=Path(line[len("worktree "):]))
            entries.append(current)
        elif current is None or not line:
            continue
        elif line.startswith("HEAD "):
            current.head = line[len("HEAD "):]
        elif line.startswith("branch "):
            current.branch = line[len("branch "):].removeprefix("refs/heads/")
        elif line == "detached":
            current.detached = True
        elif line == "bare":
            current.bare = True
        elif line == "locked" or line.startswith("locked "):
            current.locked = True
        elif line == "prunable" or line.startswith("prunable "):
            current.prunable = True
    return entries


def git_worktree_list(cwd: Path) -> list[WorktreeEntry]:
    return parse_worktree_list(_run(["worktree", "list", "--porcelain"], cwd))


def git_status_short(cwd: Path) -> str:
    return _run(["status", "--porcelain"], cwd)


def git_add_all(cwd: Path) -> None:
    _run(["add", "-A"], cwd)


def git_add(paths: list[str], cwd: Path) -> None:
    _run(["add", "--"] + paths, cwd)


def git_commit(message: str, cwd: Path, *, allow_empty: bool = False) -> str:
    """Commit and return the SHA."""
    args = ["commit", "-m", message]
    if allow_empty:
        args.append("--allow-empty")
    _run(args, cwd)
    return _run(["rev-parse", "HEAD"], cwd)


def git_push(branch: str, cwd: Path, *, remote: str = "origin", set_upstream: bool = False) -> None:
    args = ["push"]
    if set_upstream:
        args.append("--set-upstream")
    args.extend([remote, branch])
    _run(args, cwd)


def is_nothing_to_commit(error: GitError) -> bool:
    """Whether a failed ``git commit`` only means the tree was already clean.

    git reports this on stdout with exit code 1, so the text is the only
    signal available.
    """
    text = f"{error.stderr}\n{error}".lower()
    return "nothing to commit" in text or "nothing added to commit" in text
