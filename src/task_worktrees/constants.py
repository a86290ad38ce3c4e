"""Constants for task-worktrees."""

import re

# Config file location, relative to the project root
CONFIG_DIR_NAME = ".taskmaster"
CONFIG_FILE_NAME = "worktrees.json"

# Settings defaults
DEFAULT_SOURCE_BRANCH = "main"
DEFAULT_AUTO_CREATE_ON_LAUNCH = True
WORKSPACES_ROOT_SUFFIX = "-worktrees"

DEFAULT_TAG = "master"
DEFAULT_REMOTE = "origin"

# First commit made when a repository has no history to branch from
INITIAL_COMMIT_MESSAGE = "Initial commit (created by task-worktrees)"
INITIAL_GITIGNORE = "# Generated by task-worktrees\n.taskmaster/\n*-worktrees/\n"

# Workspace names double as branch names: task-<taskId> or task-<taskId>.<subtaskId>
WORKSPACE_PREFIX = "task-"
TASK_BRANCH_PATTERN = re.compile(r"^task-\d+(?:\.\d+)?$")


def default_workspaces_root(project_name: str) -> str:
    """Workspaces root relative to the project root: ``../<project>-worktrees``."""
    return f"../{project_name}{WORKSPACES_ROOT_SUFFIX}"
