"""Tests for git/repo.py."""

import subprocess
from pathlib import Path

import pytest

from task_worktrees.errors import GitError
from task_worktrees.git.repo import (
    git_add_all,
    git_branch_delete,
    git_branch_exists,
    git_branch_list,
    git_commit,
    git_current_branch,
    git_has_commits,
    git_push,
    git_status_short,
    git_toplevel,
    git_worktree_add,
    git_worktree_list,
    git_worktree_prune,
    git_worktree_remove,
    is_nothing_to_commit,
    parse_worktree_list,
)


def _last_subject(branch, cwd):
    return subprocess.run(
        ["git", "log", branch, "--format=%s", "-n1"],
        cwd=cwd, check=True, capture_output=True, text=True,
    ).stdout.strip()


PORCELAIN = """\
worktree /repo
HEAD 1111111111111111111111111111111111111111
branch refs/heads/main

worktree /work/task-1
HEAD 2222222222222222222222222222222222222222
branch refs/heads/task-1
locked

worktree /work/detached
HEAD 3333333333333333333333333333333333333333
detached
prunable gitdir file points to non-existent location
"""


class TestParseWorktreeList:
    def test_parses_blocks(self):
        entries = parse_worktree_list(PORCELAIN)
        assert [e.path for e in entries] == [
            Path("/repo"), Path("/work/task-1"), Path("/work/detached")
        ]
        assert entries[0].branch == "main"
        assert entries[1].branch == "task-1"
        assert entries[1].locked

    def test_detached_and_prunable(self):
        entry = parse_worktree_list(PORCELAIN)[2]
        assert entry.branch is None
        assert entry.detached
        assert entry.prunable

    def test_empty_output(self):
        assert parse_worktree_list("") == []


def test_git_commit_and_log(git_repo):
    (git_repo / "hello.txt").write_text("hello")
    git_add_all(git_repo)
    sha = git_commit("add hello", git_repo)
    assert len(sha) == 40

    log = _last_subject("main", git_repo)
    assert log == "add hello"


def test_git_toplevel(git_repo):
    sub = git_repo / "sub"
    sub.mkdir()
    assert git_toplevel(sub).resolve() == git_repo.resolve()


def test_git_branch_exists(git_repo):
    assert git_branch_exists("main", git_repo)
    assert not git_branch_exists("nonexistent", git_repo)


def test_git_current_branch(git_repo):
    assert git_current_branch(git_repo) == "main"


def test_git_current_branch_without_commits(empty_repo):
    assert not git_has_commits(empty_repo)
    assert git_current_branch(empty_repo) == "main"


def test_git_branch_list_and_delete(git_repo):
    git_worktree_add(git_repo.parent / "wt", git_repo, new_branch="task-1", start_point="main")
    git_worktree_remove(git_repo.parent / "wt", git_repo)
    assert set(git_branch_list(git_repo)) == {"main", "task-1"}
    assert git_branch_list(git_repo, "task-*") == ["task-1"]

    git_branch_delete("task-1", git_repo)
    assert git_branch_list(git_repo) == ["main"]


def test_worktree_add_new_branch(git_repo):
    path = git_repo.parent / "wt-new"
    git_worktree_add(path, git_repo, new_branch="task-2", start_point="main")

    assert (path / "README.md").exists()
    assert git_current_branch(path) == "task-2"
    entries = git_worktree_list(git_repo)
    assert any(e.branch == "task-2" and e.path.resolve() == path.resolve() for e in entries)


def test_worktree_add_existing_branch(git_repo):
    git_worktree_add(git_repo.parent / "first", git_repo, new_branch="task-3", start_point="main")
    git_worktree_remove(git_repo.parent / "first", git_repo)

    path = git_repo.parent / "second"
    git_worktree_add(path, git_repo, branch="task-3")
    assert git_current_branch(path) == "task-3"


def test_worktree_add_requires_branch(git_repo):
    with pytest.raises(ValueError):
        git_worktree_add(git_repo.parent / "x", git_repo)


def test_worktree_remove_dirty_needs_force(git_repo):
    path = git_repo.parent / "dirty"
    git_worktree_add(path, git_repo, new_branch="task-4", start_point="main")
    (path / "scratch.txt").write_text("wip")

    with pytest.raises(GitError):
        git_worktree_remove(path, git_repo)
    git_worktree_remove(path, git_repo, force=True)
    assert not path.exists()


def test_worktree_prune_forgets_deleted_directory(git_repo):
    import shutil

    path = git_repo.parent / "gone"
    git_worktree_add(path, git_repo, new_branch="task-5", start_point="main")
    shutil.rmtree(path)

    git_worktree_prune(git_repo)
    assert all(e.branch != "task-5" for e in git_worktree_list(git_repo))


def test_git_status_short(git_repo):
    assert git_status_short(git_repo) == ""
    (git_repo / "new.txt").write_text("x")
    assert "new.txt" in git_status_short(git_repo)


def test_git_push_to_bare_remote(git_repo, remote_repo):
    (git_repo / "pushed.txt").write_text("x")
    git_add_all(git_repo)
    git_commit("push me", git_repo)
    git_push("main", git_repo)

    assert _last_subject("main", remote_repo) == "push me"


def test_git_error_carries_command_and_stderr(git_repo):
    with pytest.raises(GitError) as exc_info:
        git_branch_delete("does-not-exist", git_repo)
    err = exc_info.value
    assert err.command == ["branch", "-D", "does-not-exist"]
    assert err.returncode != 0
    assert "does-not-exist" in err.stderr
    assert str(err).startswith("git branch -D does-not-exist")


def test_is_nothing_to_commit(git_repo):
    with pytest.raises(GitError) as exc_info:
        git_commit("empty", git_repo)
    assert is_nothing_to_commit(exc_info.value)
    assert not is_nothing_to_commit(GitError(["push"], "rejected"))
