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

"""Data model for the persisted worktrees document.

Python attributes are snake_case; the JSON document uses camelCase keys.
Fields this version does not know about are kept in ``extra`` so a
load/save cycle never drops them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from task_worktrees.constants import (
    DEFAULT_AUTO_CREATE_ON_LAUNCH,
    DEFAULT_SOURCE_BRANCH,
    DEFAULT_TAG,
)
from task_worktrees.errors import ConfigValidationError, WorkspaceStateError

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class WorkspaceStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class TaskLink:
    """The task or subtask a workspace belongs to."""

    task_id: str
    subtask_id: str | None = None
    title: str = ""

    @property
    def is_subtask(self) -> bool:
        return self.subtask_id is not None

    @property
    def full_id(self) -> str:
        if self.subtask_id is None:
            return self.task_id
        return f"{self.task_id}.{self.subtask_id}"

    def with_title(self, title: str) -> "TaskLink":
        return TaskLink(self.task_id, self.subtask_id, title)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"taskId": self.task_id}
        if self.subtask_id is not None:
            result["subtaskId"] = self.subtask_id
        result["fullId"] = self.full_id
        result["title"] = self.title
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskLink":
        subtask_id = data.get("subtaskId")
        return cls(
            task_id=str(data["taskId"]),
            subtask_id=str(subtask_id) if subtask_id is not None else None,
            title=data.get("title") or "",
        )


@dataclass
class LinkedTask:
    """Entry of the backward-compatible ``linkedTasks`` list."""

    id: str
    type: str
    tag: str = DEFAULT_TAG

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "tag": self.tag}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LinkedTask":
        return cls(
            id=str(data.get("id", "")),
            type=data.get("type", "task"),
            tag=data.get("tag", DEFAULT_TAG),
        )

    @classmethod
    def for_link(cls, link: TaskLink, tag: str = DEFAULT_TAG) -> "LinkedTask":
        return cls(id=link.full_id, type="subtask" if link.is_subtask else "task", tag=tag)


_RECORD_KEYS = {
    "path",
    "branch",
    "sourceBranch",
    "link",
    "linkedTask",
    "linkedSubtask",
    "linkedTasks",
    "status",
    "createdAt",
    "lastAccessed",
    "completedAt",
    "prUrl",
}


def _parse_status(value: Any, completed_at: str | None) -> WorkspaceStatus:
    try:
        return WorkspaceStatus(value)
    except ValueError:
        # Older lifecycle states (pr-created, pr-merged, ...) collapse onto
        # the two states this version tracks.
        logger.debug("Unknown workspace status %r", value)
        return WorkspaceStatus.COMPLETED if completed_at else WorkspaceStatus.ACTIVE


@dataclass
class WorkspaceRecord:
    """Persisted state of one workspace."""

    path: str
    branch: str
    source_branch: str
    link: TaskLink
    linked_tasks: list[LinkedTask] = field(default_factory=list)
    status: WorkspaceStatus = WorkspaceStatus.ACTIVE
    created_at: str = field(default_factory=utc_now)
    last_accessed: str = field(default_factory=utc_now)
    completed_at: str | None = None
    pr_url: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def full_id(self) -> str:
        return self.link.full_id

    @property
    def title(self) -> str:
        return self.link.title

    @property
    def is_active(self) -> bool:
        return self.status == WorkspaceStatus.ACTIVE

    def touch(self) -> None:
        self.last_accessed = utc_now()

    def mark_completed(self, pr_url: str | None = None) -> None:
        if self.status != WorkspaceStatus.ACTIVE:
            raise WorkspaceStateError(
                f"Workspace {self.branch} is already {self.status.value}; "
                "provision a new workspace instead"
            )
        self.status = WorkspaceStatus.COMPLETED
        self.completed_at = utc_now()
        if pr_url is not None:
            self.pr_url = pr_url

    def to_dict(self) -> dict[str, Any]:
        result = dict(self.extra)
        result.update({
            "path": self.path,
            "branch": self.branch,
            "sourceBranch": self.source_branch,
            "link": self.link.to_dict(),
            "linkedTasks": [t.to_dict() for t in self.linked_tasks],
            "status": self.status.value,
            "createdAt": self.created_at,
            "lastAccessed": self.last_accessed,
            "completedAt": self.completed_at,
            "prUrl": self.pr_url,
        })
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkspaceRecord":
        """Create from a document entry, accepting the legacy link keys."""
        link_data = data.get("link") or data.get("linkedSubtask") or data.get("linkedTask")
        if not isinstance(link_data, dict) or "taskId" not in link_data:
            raise ConfigValidationError(
                f"Workspace record at {data.get('path')!r} has no task link"
            )
        link = TaskLink.from_dict(link_data)

        linked_tasks = [LinkedTask.from_dict(t) for t in data.get("linkedTasks") or []]
        if not linked_tasks:
            linked_tasks = [LinkedTask.for_link(link)]

        completed_at = data.get("completedAt")
        return cls(
            path=str(data["path"]),
            branch=data.get("branch") or "",
            source_branch=data.get("sourceBranch") or DEFAULT_SOURCE_BRANCH,
            link=link,
            linked_tasks=linked_tasks,
            status=_parse_status(data.get("status", "active"), completed_at),
            created_at=data.get("createdAt") or utc_now(),
            last_accessed=data.get("lastAccessed") or data.get("createdAt") or utc_now(),
            completed_at=completed_at,
            pr_url=data.get("prUrl"),
            extra={k: v for k, v in data.items() if k not in _RECORD_KEYS},
        )


_SETTINGS_KEYS = {"workspacesRoot", "defaultSourceBranch", "autoCreateOnLaunch"}


@dataclass
class WorkspaceSettings:
    """The ``settings`` object of the document."""

    workspaces_root: str
    default_source_branch: str = DEFAULT_SOURCE_BRANCH
    auto_create_on_launch: bool = DEFAULT_AUTO_CREATE_ON_LAUNCH
    extra: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        if not self.workspaces_root or not str(self.workspaces_root).strip():
            raise ConfigValidationError("workspacesRoot must not be empty")
        if not self.default_source_branch or not str(self.default_source_branch).strip():
            raise ConfigValidationError("defaultSourceBranch must not be empty")
        if not isinstance(self.auto_create_on_launch, bool):
            raise ConfigValidationError(
                f"autoCreateOnLaunch must be a boolean, got {self.auto_create_on_launch!r}"
            )

    def to_dict(self) -> dict[str, Any]:
        result = dict(self.extra)
        result.update({
            "workspacesRoot": self.workspaces_root,
            "defaultSourceBranch": self.default_source_branch,
            "autoCreateOnLaunch": self.auto_create_on_launch,
        })
        return result

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], defaults: Callable[[], "WorkspaceSettings"]
    ) -> "WorkspaceSettings":
        """Create from a document entry, backfilling missing fields.

        *defaults* is only called when a field is missing, since computing
        the default source branch shells out to git.
        """
        missing = [k for k in _SETTINGS_KEYS if data.get(k) in (None, "")]
        if missing:
            logger.debug("Backfilling settings: %s", ", ".join(sorted(missing)))
            base = defaults()
        else:
            base = None

        auto_create = data.get("autoCreateOnLaunch")
        return cls(
            workspaces_root=data.get("workspacesRoot") or base.workspaces_root,
            default_source_branch=data.get("defaultSourceBranch") or base.default_source_branch,
            auto_create_on_launch=base.auto_create_on_launch if auto_create is None else auto_create,
            extra={k: v for k, v in data.items() if k not in _SETTINGS_KEYS},
        )


@dataclass
class WorktreesConfig:
    """Root document: settings plus workspace records keyed by name."""

    settings: WorkspaceSettings
    workspaces: dict[str, WorkspaceRecord] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    # Entries that could not be parsed; written back untouched
    unreadable: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result = dict(self.extra)
        result["settings"] = self.settings.to_dict()
        workspaces = dict(self.unreadable)
        workspaces.update({name: r.to_dict() for name, r in self.workspaces.items()})
        result["workspaces"] = workspaces
        return result

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], defaults: Callable[[], WorkspaceSettings]
    ) -> "WorktreesConfig":
        settings_data = data.get("settings")
        if not isinstance(settings_data, dict):
            settings_data = {}

        workspaces: dict[str, WorkspaceRecord] = {}
        unreadable: dict[str, Any] = {}
        workspaces_data = data.get("workspaces")
        if not isinstance(workspaces_data, dict):
            workspaces_data = {}
        for name, entry in workspaces_data.items():
            try:
                record = WorkspaceRecord.from_dict(entry)
                if not record.branch:
                    record.branch = name
                workspaces[name] = record
            except (ConfigValidationError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Ignoring unreadable workspace record %s: %s", name, e)
                unreadable[name] = entry

        return cls(
            settings=WorkspaceSettings.from_dict(settings_data, defaults),
            workspaces=workspaces,
            extra={k: v for k, v in data.items() if k not in ("settings", "workspaces")},
            unreadable=unreadable,
        )
