"""Tests for pruning stale records and cleaning up orphaned branches."""

import json
import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

from task_worktrees.cache import WorkspaceCache
from task_worktrees.config import get_config_path
from task_worktrees.errors import GitError
from task_worktrees.git.repo import WorktreeEntry, git_branch_delete, git_branch_exists
from task_worktrees.manager import WorktreeManager
from task_worktrees.models import TaskLink, WorkspaceRecord
from task_worktrees.reconcile import find_orphaned_branches, find_stale_records


def git(*args, cwd):
    return subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    ).stdout.strip()


def _record(path, branch):
    return WorkspaceRecord(path=str(path), branch=branch, source_branch="main", link=TaskLink("1"))


class TestFindStaleRecords:
    def test_only_missing_paths(self, tmp_path):
        (tmp_path / "alive").mkdir()
        workspaces = {
            "task-1": _record(tmp_path / "alive", "task-1"),
            "task-2": _record(tmp_path / "gone", "task-2"),
        }
        assert find_stale_records(workspaces) == ["task-2"]


class TestFindOrphanedBranches:
    def test_filters(self, tmp_path):
        live = tmp_path / "live"
        live.mkdir()
        worktrees = [
            WorktreeEntry(path=tmp_path, branch="main"),
            WorktreeEntry(path=live, branch="task-1"),
            WorktreeEntry(path=tmp_path / "dead", branch="task-2"),
        ]
        workspaces = {"task-3": _record(tmp_path / "x", "task-3")}
        branches = ["main", "feature/x", "task-1", "task-2", "task-3", "task-4.1", "task-5-123"]

        assert find_orphaned_branches(branches, worktrees, workspaces) == ["task-2", "task-4.1"]

    def test_record_key_protects_renamed_branch(self, tmp_path):
        workspaces = {"task-6": _record(tmp_path / "x", "task-6-1700000000000")}
        assert find_orphaned_branches(["task-6"], [], workspaces) == []


class TestPruneInvalidWorkspaces:
    def test_removes_exactly_missing(self, manager, git_repo):
        records = [
            manager.get_or_create_workspace(TaskLink("1", str(i))).record for i in range(5)
        ]
        for record in records[1:4:2]:
            shutil.rmtree(record.path)

        assert manager.prune_invalid_workspaces() == 2

        remaining = json.loads(get_config_path(git_repo).read_text())["workspaces"]
        assert set(remaining) == {"task-1.0", "task-1.2", "task-1.4"}

    def test_nothing_to_prune(self, manager, git_repo):
        manager.get_or_create_workspace(TaskLink("1"))
        mtime = get_config_path(git_repo).stat().st_mtime_ns
        assert manager.prune_invalid_workspaces() == 0
        assert get_config_path(git_repo).stat().st_mtime_ns == mtime

    def test_invalidates_cache(self, git_repo):
        cache = MagicMock(spec=WorkspaceCache)
        cache.invalidate_for_path.side_effect = RuntimeError("cache offline")
        manager = WorktreeManager(git_repo, cache=cache)
        record = manager.get_or_create_workspace(TaskLink("1")).record
        shutil.rmtree(record.path)

        assert manager.prune_invalid_workspaces() == 1
        cache.invalidate_for_path.assert_called_once_with(Path(record.path), git_repo)


class TestCleanupStaleWorkspaces:
    def test_removes_records_and_orphaned_branches(self, manager, git_repo):
        kept = manager.get_or_create_workspace(TaskLink("1")).record
        stale = manager.get_or_create_workspace(TaskLink("2")).record
        shutil.rmtree(stale.path)
        git("branch", "task-3.1", "main", cwd=git_repo)
        git("branch", "feature-x", "main", cwd=git_repo)

        result = manager.cleanup_stale_workspaces()

        assert result.success
        assert result.removed_records == 1
        assert result.removed_names == ["task-2"]
        assert sorted(result.deleted_branches) == ["task-2", "task-3.1"]
        assert git_branch_exists("task-1", git_repo)
        assert git_branch_exists("feature-x", git_repo)
        assert not git_branch_exists("task-3.1", git_repo)
        assert set(manager.get_all_workspaces()) == {"task-1"}
        assert Path(kept.path).exists()

    def test_serialization(self, manager):
        data = manager.cleanup_stale_workspaces().to_dict()
        assert data == {"success": True, "removedRecords": 0, "removedNames": [], "deletedBranches": []}

    def test_branch_deletion_failure_is_skipped(self, manager, git_repo):
        git("branch", "task-7", "main", cwd=git_repo)
        git("branch", "task-8", "main", cwd=git_repo)

        def flaky_delete(branch, cwd, *, force=True):
            if branch == "task-7":
                raise GitError(["branch", "-D", branch], "locked")
            git_branch_delete(branch, cwd, force=force)

        with patch("task_worktrees.manager.git_branch_delete", side_effect=flaky_delete):
            result = manager.cleanup_stale_workspaces()

        assert result.success
        assert result.deleted_branches == ["task-8"]
        assert git_branch_exists("task-7", git_repo)

    def test_worktree_listing_failure(self, manager):
        with patch("task_worktrees.manager.git_worktree_list",
                   side_effect=GitError(["worktree", "list"], "fatal: broken")):
            result = manager.cleanup_stale_workspaces()

        assert not result.success
        assert "broken" in result.error
        assert result.to_dict() == {"success": False, "error": result.error}
