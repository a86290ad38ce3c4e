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

"""Result types returned by the worktree manager.

Provisioning returns exactly one of ``ExistingWorkspace``,
``CreatedWorkspace`` or ``WorkspaceConflict``. Callers dispatch on the
type (or on ``kind`` once serialized); a conflict is a normal outcome,
not an exception.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from task_worktrees.models import WorkspaceRecord


@dataclass
class ExistingWorkspace:
    """A tracked workspace was found intact on disk and reused."""

    name: str
    record: WorkspaceRecord

    kind = "existing"
    existing = True
    created = False
    needs_decision = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "existing": self.existing,
            "created": self.created,
            "workspace": self.record.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class CreatedWorkspace:
    """A new worktree was created and recorded."""

    name: str
    record: WorkspaceRecord
    reused_branch: bool = False

    kind = "created"
    existing = False
    created = True
    needs_decision = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "existing": self.existing,
            "created": self.created,
            "reusedBranch": self.reused_branch,
            "workspace": self.record.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class WorkspaceConflict:
    """The workspace branch is checked out by another live worktree.

    Resolve with ``force_create_workspace`` (discard the branch) or
    ``use_existing_branch`` (keep it, once the other worktree is gone).
    """

    name: str
    branch_name: str
    branch_in_use_at: str
    target_path: str

    kind = "conflict"
    existing = False
    created = False
    needs_decision = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "needsDecision": self.needs_decision,
            "branchName": self.branch_name,
            "branchInUseAt": self.branch_in_use_at,
            "targetPath": self.target_path,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


ProvisionResult = Union[ExistingWorkspace, CreatedWorkspace, WorkspaceConflict]


@dataclass
class CleanupResult:
    """Summary of a reconciliation pass."""

    success: bool
    removed_records: int = 0
    removed_names: list[str] = field(default_factory=list)
    deleted_branches: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.success:
            result["removedRecords"] = self.removed_records
            result["removedNames"] = list(self.removed_names)
            result["deletedBranches"] = list(self.deleted_branches)
        else:
            result["error"] = self.error
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)
