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

"""Finding records and branches that no longer match the filesystem."""

from __future__ import annotations

from pathlib import Path

from task_worktrees.git.repo import WorktreeEntry
from task_worktrees.models import WorkspaceRecord
from task_worktrees.paths import is_task_branch


def find_stale_records(workspaces: dict[str, WorkspaceRecord]) -> list[str]:
    """Names of records whose directory no longer exists."""
    return [name for name, record in workspaces.items() if not Path(record.path).exists()]


def find_orphaned_branches(
    branches: list[str],
    worktrees: list[WorktreeEntry],
    workspaces: dict[str, WorkspaceRecord],
) -> list[str]:
    """Task branches that no live worktree has checked out and no record references.

    Only names matching ``task-<id>`` or ``task-<id>.<sub>`` are candidates;
    other branches are never touched.
    """
    checked_out = {
        entry.branch for entry in worktrees
        if entry.branch and entry.path.exists()
    }
    referenced = set(workspaces)
    referenced.update(record.branch for record in workspaces.values())

    return [
        branch for branch in branches
        if is_task_branch(branch)
        and branch not in checked_out
        and branch not in referenced
    ]
