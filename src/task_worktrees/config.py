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

"""Persistence of the worktrees document (.taskmaster/worktrees.json).

The store is a plain load/mutate/save cycle over one JSON file. There is
no locking: two processes saving concurrently overwrite each other's
changes (last write wins on the whole document). Callers are expected to
be a single local operator.

Recognised shapes:

- current: ``{"settings": {...}, "workspaces": {...}}``
- legacy, versioned: ``{"version": "1", "worktrees": {...}}`` with no
  ``settings`` object
- legacy, manager format: ``{"config": {"worktreesRoot": ...}, "worktrees": {...}}``

Both legacy shapes are migrated on load and written back immediately.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from task_worktrees.constants import (
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_AUTO_CREATE_ON_LAUNCH,
    DEFAULT_SOURCE_BRANCH,
    default_workspaces_root,
)
from task_worktrees.errors import ConfigLoadError, ConfigValidationError, GitError
from task_worktrees.git.repo import git_current_branch
from task_worktrees.models import WorkspaceSettings, WorktreesConfig

logger = logging.getLogger(__name__)

# Keys of the manager-format ``config`` object and their current names
_LEGACY_SETTING_KEYS = {
    "worktreesRoot": "workspacesRoot",
    "defaultSourceBranch": "defaultSourceBranch",
    "autoCreateOnLaunch": "autoCreateOnLaunch",
}

_SETTABLE = {
    "workspaces_root": str,
    "default_source_branch": str,
    "auto_create_on_launch": bool,
}


def get_config_path(project_root: Path) -> Path:
    """Return the default config path for a project."""
    return Path(project_root) / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def detect_default_branch(project_root: Path) -> str:
    """Current branch of *project_root*, or ``main`` if it cannot be determined."""
    try:
        branch = git_current_branch(project_root)
    except (GitError, OSError) as e:
        logger.debug("Could not detect current branch, using %s: %s", DEFAULT_SOURCE_BRANCH, e)
        return DEFAULT_SOURCE_BRANCH
    return branch or DEFAULT_SOURCE_BRANCH


def _is_versioned_legacy(data: dict[str, Any]) -> bool:
    return "version" in data and not isinstance(data.get("settings"), dict)


def _is_manager_legacy(data: dict[str, Any]) -> bool:
    return isinstance(data.get("config"), dict) and not isinstance(data.get("settings"), dict)


class ConfigStore:
    """Loads, migrates and saves the worktrees document.

    Every mutation made by the manager is followed by an explicit
    ``save()``; nothing is batched.
    """

    def __init__(self, project_root: Path, config_path: Path | None = None):
        self.project_root = Path(project_root)
        self.config_path = Path(config_path) if config_path else get_config_path(self.project_root)
        self._default_settings: WorkspaceSettings | None = None
        self._config = self.load()

        if not self.config_path.exists():
            self.save()

    @property
    def config(self) -> WorktreesConfig:
        return self._config

    @property
    def settings(self) -> WorkspaceSettings:
        return self._config.settings

    def default_settings(self) -> WorkspaceSettings:
        """Settings used for a fresh document and for backfilling.

        Detection runs git once per store.
        """
        if self._default_settings is None:
            self._default_settings = WorkspaceSettings(
                workspaces_root=default_workspaces_root(self.project_root.name),
                default_source_branch=detect_default_branch(self.project_root),
                auto_create_on_launch=DEFAULT_AUTO_CREATE_ON_LAUNCH,
            )
        return WorkspaceSettings(
            workspaces_root=self._default_settings.workspaces_root,
            default_source_branch=self._default_settings.default_source_branch,
            auto_create_on_launch=self._default_settings.auto_create_on_launch,
        )

    def default_config(self) -> WorktreesConfig:
        return WorktreesConfig(settings=self.default_settings())

    def load(self) -> WorktreesConfig:
        """Read the document from disk.

        Returns defaults when the file is missing, is not valid JSON or is
        not a JSON object. Legacy shapes are migrated and saved.

        Raises:
            ConfigLoadError: If the file exists but cannot be read.
        """
        if not self.config_path.exists():
            self._config = self.default_config()
            return self._config

        try:
            content = self.config_path.read_text()
        except OSError as e:
            raise ConfigLoadError(f"Error reading {self.config_path}: {e}") from e

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in %s, using defaults: %s", self.config_path, e)
            self._config = self.default_config()
            return self._config

        if not isinstance(data, dict):
            logger.warning("Unexpected document in %s, using defaults", self.config_path)
            self._config = self.default_config()
            return self._config

        if _is_manager_legacy(data):
            logger.debug("Migrating manager-format worktrees config")
            self._config = WorktreesConfig.from_dict(
                self._migrate_manager_format(data), self.default_settings
            )
            self.save()
            return self._config

        if _is_versioned_legacy(data):
            logger.debug("Migrating versioned worktrees config to current format")
            self._config = WorktreesConfig.from_dict(
                self._migrate_versioned(data), self.default_settings
            )
            self.save()
            return self._config

        self._config = WorktreesConfig.from_dict(data, self.default_settings)
        return self._config

    def _migrate_versioned(self, data: dict[str, Any]) -> dict[str, Any]:
        migrated = {
            k: v for k, v in data.items()
            if k not in ("version", "worktrees", "workspaces", "settings")
        }
        migrated["settings"] = self.default_settings().to_dict()
        migrated["workspaces"] = data.get("workspaces") or data.get("worktrees") or {}
        return migrated

    def _migrate_manager_format(self, data: dict[str, Any]) -> dict[str, Any]:
        settings: dict[str, Any] = {}
        for key, value in data["config"].items():
            settings[_LEGACY_SETTING_KEYS.get(key, key)] = value

        migrated = {
            k: v for k, v in data.items()
            if k not in ("version", "config", "worktrees", "workspaces")
        }
        migrated["settings"] = settings
        migrated["workspaces"] = data.get("worktrees") or data.get("workspaces") or {}
        return migrated

    def save(self, config: WorktreesConfig | None = None) -> None:
        """Write the document, creating parent directories as needed."""
        if config is not None:
            self._config = config
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(json.dumps(self._config.to_dict(), indent=2) + "\n")

    def update_settings(self, **changes: Any) -> WorkspaceSettings:
        """Apply a partial settings update, validate it and save.

        Raises:
            ConfigValidationError: For unknown keys or invalid values.
        """
        settings = self._config.settings
        for key, value in changes.items():
            expected = _SETTABLE.get(key)
            if expected is None:
                raise ConfigValidationError(
                    f"Unknown setting '{key}'. Valid settings: {', '.join(_SETTABLE)}"
                )
            if not isinstance(value, expected):
                raise ConfigValidationError(
                    f"{key} must be of type {expected.__name__}, got {value!r}"
                )

        candidate = WorkspaceSettings(
            workspaces_root=changes.get("workspaces_root", settings.workspaces_root),
            default_source_branch=changes.get("default_source_branch", settings.default_source_branch),
            auto_create_on_launch=changes.get("auto_create_on_launch", settings.auto_create_on_launch),
            extra=dict(settings.extra),
        )
        candidate.validate()

        self._config.settings = candidate
        self.save()
        return candidate
