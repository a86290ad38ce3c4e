"""Pytest configuration and shared fixtures for task-worktrees tests."""

import subprocess
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent


def _git(*args, cwd):
    """Run git in *cwd* and return stripped stdout."""
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def _configure_identity(repo_dir):
    _git("config", "user.email", "test@test.com", cwd=repo_dir)
    _git("config", "user.name", "Test", cwd=repo_dir)
    _git("config", "commit.gpgsign", "false", cwd=repo_dir)


@pytest.fixture(autouse=True)
def _guard_project_repo(tmp_path, monkeypatch):
    """Prevent tests from accidentally modifying the project repo."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def git_repo(tmp_path):
    """Create a fresh git repo in an isolated temp directory."""
    repo_dir = tmp_path / "test-repo"
    repo_dir.mkdir()
    subprocess.run(["git", "init", str(repo_dir)], check=True, capture_output=True)
    _configure_identity(repo_dir)
    # Create initial commit so main exists
    (repo_dir / "README.md").write_text("# Test Repo\n")
    _git("add", ".", cwd=repo_dir)
    _git("commit", "-m", "initial commit", cwd=repo_dir)
    # Ensure branch is called main
    _git("branch", "-M", "main", cwd=repo_dir)
    # Sanity: confirm this is NOT the project repo
    assert str(repo_dir) != str(PROJECT_ROOT)
    assert not (repo_dir / "pyproject.toml").exists()
    return repo_dir


@pytest.fixture
def empty_repo(tmp_path):
    """A git repo on branch main with no commits."""
    repo_dir = tmp_path / "empty-repo"
    repo_dir.mkdir()
    subprocess.run(["git", "init", str(repo_dir)], check=True, capture_output=True)
    _configure_identity(repo_dir)
    _git("symbolic-ref", "HEAD", "refs/heads/main", cwd=repo_dir)
    return repo_dir


@pytest.fixture
def remote_repo(tmp_path, git_repo):
    """A bare repository registered as ``origin`` of git_repo."""
    remote_dir = tmp_path / "remote.git"
    subprocess.run(
        ["git", "init", "--bare", str(remote_dir)], check=True, capture_output=True
    )
    _git("remote", "add", "origin", str(remote_dir), cwd=git_repo)
    _git("push", "origin", "main", cwd=git_repo)
    return remote_dir


@pytest.fixture
def manager(git_repo):
    from task_worktrees.manager import WorktreeManager
    return WorktreeManager(git_repo)
