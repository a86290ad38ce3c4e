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

"""Lifecycle hooks for caches keyed by workspace path."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)


class WorkspaceCache(ABC):
    """Interface for a per-workspace cache (e.g. a code-intelligence index).

    The manager calls these hooks on creation, reuse and pruning of a
    workspace. Implementations may raise; the manager logs and ignores
    any failure.
    """

    @abstractmethod
    def initialize_for_path(self, path: Path, project_root: Path) -> None:
        """Build cache state for a newly created workspace."""

    @abstractmethod
    def validate_for_path(self, path: Path, project_root: Path) -> None:
        """Check cache state for a workspace that is being reused."""

    @abstractmethod
    def invalidate_for_path(self, path: Path, project_root: Path) -> None:
        """Drop cache state for a workspace that no longer exists."""


class NullWorkspaceCache(WorkspaceCache):
    """Cache that does nothing. Used when no cache is configured."""

    def initialize_for_path(self, path: Path, project_root: Path) -> None:
        pass

    def validate_for_path(self, path: Path, project_root: Path) -> None:
        pass

    def invalidate_for_path(self, path: Path, project_root: Path) -> None:
        pass


def call_cache_hook(cache: WorkspaceCache, hook: str, path: Path, project_root: Path) -> bool:
    """Run ``cache.<hook>(path, project_root)``, swallowing failures.

    Returns True if the hook completed.
    """
    try:
        getattr(cache, hook)(Path(path), project_root)
        return True
    except Exception as e:
        logger.warning("Cache %s failed for %s: %s", hook, path, e)
        return False
