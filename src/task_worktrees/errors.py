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

"""Error types raised by the worktree lifecycle manager."""

from __future__ import annotations


class WorktreeError(Exception):
    """Base class for all task-worktrees errors."""


class GitError(WorktreeError):
    """A git command exited non-zero."""

    def __init__(self, args: list[str], stderr: str = "", returncode: int | None = None):
        self.command = list(args)
        self.stderr = stderr
        self.returncode = returncode
        message = f"git {' '.join(args)}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)


class GhError(WorktreeError):
    """A GitHub CLI command failed or produced no usable output."""

    def __init__(self, args: list[str], stderr: str = "", returncode: int | None = None):
        self.command = list(args)
        self.stderr = stderr
        self.returncode = returncode
        message = f"gh {' '.join(args)}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)


class WorkspaceNotFoundError(WorktreeError):
    """No workspace record exists under the given name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Workspace not found: {name}")


class WorkspaceStateError(WorktreeError):
    """Requested status change is not allowed for the workspace."""


class FilesystemCleanupError(WorktreeError):
    """A stale directory could not be removed before recreating a workspace."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(
            f"Workspace directory already exists at {path} and could not be cleaned up: {reason}"
        )


class MissingDependencyError(WorktreeError):
    """An external tool required for the operation is not installed."""

    def __init__(self, tool: str, hint: str = ""):
        self.tool = tool
        self.hint = hint
        message = f"{tool} is not installed"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class PushError(WorktreeError):
    """Pushing a branch failed, including the --set-upstream retry."""

    def __init__(self, branch: str, cause: GitError):
        self.branch = branch
        self.cause = cause
        super().__init__(f"Failed to push branch {branch}: {cause.stderr or cause}")


class ConfigLoadError(WorktreeError):
    """Raised when the worktrees config file cannot be read."""


class ConfigValidationError(WorktreeError):
    """Raised when configuration validation fails."""
