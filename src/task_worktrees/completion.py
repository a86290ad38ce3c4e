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

"""Completing a workspace, optionally through a pull request.

The pull request path runs in the workspace directory:

1. commit any pending changes (message = PR title)
2. push the branch, retrying once with ``--set-upstream``
3. ``gh pr create`` against the record's source branch
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from task_worktrees.constants import DEFAULT_REMOTE
from task_worktrees.errors import (
    GitError,
    MissingDependencyError,
    PushError,
    WorkspaceStateError,
)
from task_worktrees.git.github import GH_INSTALL_HINT, gh_available, gh_pr_create
from task_worktrees.git.repo import (
    git_add_all,
    git_commit,
    git_push,
    git_status_short,
    is_nothing_to_commit,
)
from task_worktrees.models import WorkspaceRecord

logger = logging.getLogger(__name__)


@dataclass
class CompletionOptions:
    """Caller options for completing a workspace."""

    create_pr: bool = False
    pr_title: str | None = None
    pr_body: str | None = None
    pr_description: str = ""
    remote: str = DEFAULT_REMOTE


def default_pr_title(record: WorkspaceRecord) -> str:
    return f"{record.full_id}: {record.title or 'Completed'}"


def default_pr_body(record: WorkspaceRecord, description: str = "") -> str:
    kind = "subtask" if record.link.is_subtask else "task"
    body = f"Completes {kind} {record.full_id}"
    if description:
        body = f"{body}\n\n{description}"
    return body


def commit_pending_changes(cwd: Path, message: str) -> str | None:
    """Stage and commit everything in *cwd*.

    A clean tree is not an error. Any other commit failure is logged and
    the caller carries on, so the push publishes whatever was already
    committed.

    Returns:
        The new commit SHA, or None if nothing was committed.
    """
    if not git_status_short(cwd):
        logger.debug("No pending changes in %s", cwd)
        return None

    try:
        git_add_all(cwd)
        sha = git_commit(message, cwd)
    except GitError as e:
        if is_nothing_to_commit(e):
            logger.debug("Nothing to commit in %s", cwd)
        else:
            logger.warning("Could not commit pending changes in %s: %s", cwd, e)
        return None

    logger.info("Committed pending changes in %s (%s)", cwd, sha[:8])
    return sha


def push_branch(branch: str, cwd: Path, remote: str = DEFAULT_REMOTE) -> None:
    """Push *branch*, retrying once with ``--set-upstream``.

    Raises:
        PushError: If the retry also fails.
    """
    try:
        git_push(branch, cwd, remote=remote)
        return
    except GitError as e:
        logger.debug("Push of %s failed, retrying with --set-upstream: %s", branch, e)

    try:
        git_push(branch, cwd, remote=remote, set_upstream=True)
    except GitError as e:
        raise PushError(branch, e) from e


def open_pull_request(record: WorkspaceRecord, options: CompletionOptions) -> str:
    """Commit, push and open a pull request for *record*. Returns the PR URL.

    Raises:
        MissingDependencyError: If ``gh`` is not installed.
        PushError: If the branch cannot be pushed.
        WorkspaceStateError: If the workspace directory no longer exists.
        GhError: If ``gh pr create`` fails.
    """
    if not gh_available():
        raise MissingDependencyError("gh", GH_INSTALL_HINT)

    cwd = Path(record.path)
    if not cwd.is_dir():
        raise WorkspaceStateError(
            f"Workspace directory {cwd} no longer exists; recreate the workspace "
            "or prune stale records"
        )

    title = options.pr_title or default_pr_title(record)
    body = options.pr_body or default_pr_body(record, options.pr_description)

    commit_pending_changes(cwd, title)
    push_branch(record.branch, cwd, options.remote)

    url = gh_pr_create(title, body, base=record.source_branch, head=record.branch, cwd=cwd)
    logger.info("Created pull request for %s: %s", record.branch, url)
    return url
