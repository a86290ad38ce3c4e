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

"""Workspace naming and path resolution. Pure functions, no I/O."""

from __future__ import annotations

import os
from pathlib import Path

from task_worktrees.constants import TASK_BRANCH_PATTERN, WORKSPACE_PREFIX
from task_worktrees.models import TaskLink


def workspace_name(link: TaskLink) -> str:
    """``task-<taskId>`` or ``task-<taskId>.<subtaskId>``."""
    return f"{WORKSPACE_PREFIX}{link.full_id}"


def resolve_workspace_path(project_root: Path, workspaces_root: str | Path, name: str) -> Path:
    """Absolute path of workspace *name*.

    *workspaces_root* is interpreted relative to *project_root* unless it is
    already absolute. ``..`` segments are collapsed lexically.
    """
    root = Path(project_root) / workspaces_root
    return Path(os.path.normpath(os.path.abspath(root / name)))


def is_task_branch(branch: str) -> bool:
    return TASK_BRANCH_PATTERN.match(branch) is not None


def parse_full_id(full_id: str, title: str = "") -> TaskLink:
    """Parse ``"12"`` or ``"12.3"`` (an optional ``task-`` prefix is accepted).

    Examples:
        '12' -> TaskLink('12')
        '12.3' -> TaskLink('12', '3')
        'task-12.3' -> TaskLink('12', '3')
    """
    value = full_id.strip().removeprefix(WORKSPACE_PREFIX)
    task_id, sep, subtask_id = value.partition(".")
    if not task_id or (sep and not subtask_id) or "." in subtask_id:
        raise ValueError(f"Invalid task id: {full_id!r}")
    return TaskLink(task_id=task_id, subtask_id=subtask_id or None, title=title)
