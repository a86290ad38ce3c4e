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

"""Worktree manager: the public entry point for workspace lifecycle operations.

Every public operation reloads the config document first and saves after
each mutation. Branch and worktree state is always read from git; the
records are only a cache of it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from task_worktrees import paths
from task_worktrees.cache import NullWorkspaceCache, WorkspaceCache, call_cache_hook
from task_worktrees.completion import CompletionOptions, open_pull_request
from task_worktrees.config import ConfigStore
from task_worktrees.errors import (
    GitError,
    WorkspaceNotFoundError,
    WorkspaceStateError,
)
from task_worktrees.git.repo import (
    git_branch_delete,
    git_branch_exists,
    git_branch_list,
    git_toplevel,
    git_worktree_list,
    git_worktree_prune,
)
from task_worktrees.models import (
    LinkedTask,
    TaskLink,
    WorkspaceRecord,
    WorkspaceSettings,
    WorktreesConfig,
    utc_now,
)
from task_worktrees.provisioner import (
    ProvisionOptions,
    cleanup_branch_and_worktree,
    create_worktree,
    discard_branch,
    fallback_branch_name,
    find_branch_holder,
    remove_stray_directory,
    same_path,
)
from task_worktrees.reconcile import find_orphaned_branches, find_stale_records
from task_worktrees.results import (
    CleanupResult,
    CreatedWorkspace,
    ExistingWorkspace,
    ProvisionResult,
    WorkspaceConflict,
)

logger = logging.getLogger(__name__)


class WorktreeManager:
    """Creates, reuses, completes and reconciles task workspaces for one repository."""

    def __init__(
        self,
        project_root: Path | None = None,
        cache: WorkspaceCache | None = None,
        config_path: Path | None = None,
    ):
        self.project_root = Path(project_root) if project_root else git_toplevel()
        self.cache = cache or NullWorkspaceCache()
        self.store = ConfigStore(self.project_root, config_path)

    @property
    def config(self) -> WorktreesConfig:
        return self.store.config

    @property
    def settings(self) -> WorkspaceSettings:
        return self.store.settings

    def _reload(self) -> None:
        self.store.load()

    # ------------------------------------------------------------------
    # Accessors

    def resolve_workspace_path(self, name: str) -> Path:
        return paths.resolve_workspace_path(self.project_root, self.settings.workspaces_root, name)

    def get_all_workspaces(self) -> dict[str, WorkspaceRecord]:
        self._reload()
        return dict(self.config.workspaces)

    def get_workspace(self, name: str) -> WorkspaceRecord | None:
        self._reload()
        return self.config.workspaces.get(name)

    def get_workspace_for_link(self, link: TaskLink) -> WorkspaceRecord | None:
        return self.get_workspace(paths.workspace_name(link))

    def get_subtask_workspaces(self, task_id: str) -> list[WorkspaceRecord]:
        """Records for the subtasks of *task_id*."""
        self._reload()
        return [
            record for record in self.config.workspaces.values()
            if record.link.is_subtask and record.link.task_id == str(task_id)
        ]

    def get_lifecycle_status(self, name: str) -> dict[str, Any] | None:
        record = self.get_workspace(name)
        if record is None:
            return None
        return {
            "name": name,
            "status": record.status.value,
            "createdAt": record.created_at,
            "lastAccessed": record.last_accessed,
            "completedAt": record.completed_at,
            "prUrl": record.pr_url,
            "link": record.link.to_dict(),
        }

    # ------------------------------------------------------------------
    # Provisioning

    def get_or_create_workspace(
        self, link: TaskLink, options: ProvisionOptions | None = None
    ) -> ProvisionResult:
        """Return the workspace for *link*, creating it if needed.

        Returns a ``WorkspaceConflict`` without changing anything when the
        workspace branch is checked out by another live worktree.
        """
        options = options or ProvisionOptions()
        self._reload()

        name = paths.workspace_name(link)
        record = self.config.workspaces.get(name)
        if record is not None and Path(record.path).exists():
            record.touch()
            self.store.save()
            call_cache_hook(self.cache, "validate_for_path", Path(record.path), self.project_root)
            logger.debug("Reusing workspace %s at %s", name, record.path)
            return ExistingWorkspace(name=name, record=record)

        if record is not None:
            logger.info("Workspace %s is recorded but %s is gone, recreating", name, record.path)

        target = self.resolve_workspace_path(name)
        reuse_branch = False
        if git_branch_exists(name, self.project_root):
            holder = find_branch_holder(name, target, self.project_root)
            if holder is not None:
                logger.info("Branch %s is checked out at %s", name, holder)
                return WorkspaceConflict(
                    name=name,
                    branch_name=name,
                    branch_in_use_at=str(holder),
                    target_path=str(target),
                )
            logger.info("Reusing orphaned branch %s", name)
            reuse_branch = True

        if target.exists() and not self._is_tracked(target):
            remove_stray_directory(target, self.project_root)

        if record is not None and record.branch != name:
            discard_branch(record.branch, self.project_root)

        source_branch = options.source_branch or self.settings.default_source_branch
        create_worktree(
            target,
            name,
            self.project_root,
            source_branch=source_branch,
            reuse_branch=reuse_branch,
        )
        record = self._record_workspace(name, name, target, source_branch, link, options)
        return CreatedWorkspace(name=name, record=record, reused_branch=reuse_branch)

    def force_create_workspace(
        self, link: TaskLink, options: ProvisionOptions | None = None
    ) -> CreatedWorkspace:
        """Discard any worktree and branch for *link* and create a fresh one."""
        options = options or ProvisionOptions()
        self._reload()

        name = paths.workspace_name(link)
        target = self.resolve_workspace_path(name)
        previous = self.config.workspaces.get(name)
        logger.info("Force creating workspace %s", name)

        branch = name
        if not cleanup_branch_and_worktree(name, target, self.project_root):
            branch = fallback_branch_name(name)
            logger.warning("Branch %s could not be deleted, using %s instead", name, branch)
        if previous is not None and previous.branch not in (name, branch):
            discard_branch(previous.branch, self.project_root)

        source_branch = options.source_branch or self.settings.default_source_branch
        create_worktree(target, branch, self.project_root, source_branch=source_branch)
        record = self._record_workspace(name, branch, target, source_branch, link, options)
        return CreatedWorkspace(name=name, record=record)

    def use_existing_branch(
        self, link: TaskLink, options: ProvisionOptions | None = None
    ) -> CreatedWorkspace:
        """Create the workspace for *link* on its existing, checked-in branch.

        Raises:
            GitError: If the branch does not exist.
            WorkspaceStateError: If another live worktree still has it checked
                out, or the recorded workspace is already in place.
        """
        options = options or ProvisionOptions()
        self._reload()

        name = paths.workspace_name(link)
        target = self.resolve_workspace_path(name)
        if not git_branch_exists(name, self.project_root):
            raise GitError(
                ["show-ref", "--verify", f"refs/heads/{name}"],
                f"branch {name} does not exist",
            )

        holder = find_branch_holder(name, target, self.project_root)
        if holder is not None:
            raise WorkspaceStateError(
                f"Branch {name} is still checked out at {holder}; "
                "remove that worktree first or force-create the workspace"
            )

        if target.exists() and self._is_tracked(target):
            raise WorkspaceStateError(
                f"Workspace {name} already exists at {target}; "
                "use it as is or force-create the workspace"
            )
        remove_stray_directory(target, self.project_root)

        source_branch = options.source_branch or self.settings.default_source_branch
        create_worktree(target, name, self.project_root, reuse_branch=True)
        record = self._record_workspace(name, name, target, source_branch, link, options)
        return CreatedWorkspace(name=name, record=record, reused_branch=True)

    def _is_tracked(self, path: Path) -> bool:
        return any(same_path(r.path, path) for r in self.config.workspaces.values())

    def _record_workspace(
        self,
        name: str,
        branch: str,
        target: Path,
        source_branch: str,
        link: TaskLink,
        options: ProvisionOptions,
    ) -> WorkspaceRecord:
        if options.title is not None:
            link = link.with_title(options.title)
        now = utc_now()
        record = WorkspaceRecord(
            path=str(target),
            branch=branch,
            source_branch=source_branch,
            link=link,
            linked_tasks=[LinkedTask.for_link(link, options.tag)],
            created_at=now,
            last_accessed=now,
        )
        self.config.workspaces[name] = record
        self.store.save()
        call_cache_hook(self.cache, "initialize_for_path", target, self.project_root)
        logger.info("Created workspace %s at %s", name, target)
        return record

    # ------------------------------------------------------------------
    # Completion

    def complete_workspace(
        self, name: str, options: CompletionOptions | None = None
    ) -> WorkspaceRecord:
        """Mark a workspace completed, optionally opening a pull request first.

        The record is only updated once the pull request exists, so a
        failure leaves it active and the call can be retried.

        Raises:
            WorkspaceNotFoundError: If no record exists for *name*.
            WorkspaceStateError: If the workspace is already completed.
            MissingDependencyError: If a PR was requested and ``gh`` is missing.
            PushError: If the branch cannot be pushed.
        """
        options = options or CompletionOptions()
        self._reload()

        record = self.config.workspaces.get(name)
        if record is None:
            raise WorkspaceNotFoundError(name)
        if not record.is_active:
            raise WorkspaceStateError(f"Workspace {name} is already {record.status.value}")

        pr_url = open_pull_request(record, options) if options.create_pr else None

        record.mark_completed(pr_url)
        self.store.save()
        logger.info("Completed workspace %s", name)
        return record

    def switch_source_branch(self, name: str, source_branch: str) -> WorkspaceRecord:
        """Change the branch future pull requests for *name* target.

        Only the record changes; the worktree's history is not rebased.
        """
        self._reload()
        record = self.config.workspaces.get(name)
        if record is None:
            raise WorkspaceNotFoundError(name)
        record.source_branch = source_branch
        self.store.save()
        return record

    def update_settings(self, **changes: Any) -> WorkspaceSettings:
        self._reload()
        return self.store.update_settings(**changes)

    # ------------------------------------------------------------------
    # Reconciliation

    def _drop_stale_records(self) -> list[str]:
        stale = find_stale_records(self.config.workspaces)
        for name in stale:
            record = self.config.workspaces.pop(name)
            call_cache_hook(self.cache, "invalidate_for_path", Path(record.path), self.project_root)
            logger.info("Removing stale workspace record %s (%s)", name, record.path)
        if stale:
            self.store.save()
        return stale

    def prune_invalid_workspaces(self) -> int:
        """Drop records whose directory no longer exists. Returns how many were removed."""
        self._reload()
        return len(self._drop_stale_records())

    def cleanup_stale_workspaces(self) -> CleanupResult:
        """Reconcile records and task branches with git.

        Stale records are dropped, then task branches that are neither
        checked out nor recorded are deleted. Branch deletion failures are
        logged and skipped.
        """
        try:
            self._reload()

            try:
                git_worktree_prune(self.project_root)
            except GitError as e:
                logger.warning("git worktree prune failed: %s", e)

            try:
                worktrees = git_worktree_list(self.project_root)
            except GitError as e:
                return CleanupResult(success=False, error=str(e))

            removed = self._drop_stale_records()

            try:
                branches = git_branch_list(self.project_root)
            except GitError as e:
                logger.warning("Could not list branches: %s", e)
                branches = []

            deleted: list[str] = []
            for branch in find_orphaned_branches(branches, worktrees, self.config.workspaces):
                try:
                    git_branch_delete(branch, self.project_root, force=True)
                except GitError as e:
                    logger.warning("Could not delete orphaned branch %s: %s", branch, e)
                    continue
                logger.info("Deleted orphaned branch %s", branch)
                deleted.append(branch)

            return CleanupResult(
                success=True,
                removed_records=len(removed),
                removed_names=removed,
                deleted_branches=deleted,
            )
        except (GitError, OSError) as e:
            logger.error("Cleanup failed: %s", e)
            return CleanupResult(success=False, error=str(e))
