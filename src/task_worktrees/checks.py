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

"""Dependency checks for external tools."""

import shutil
import subprocess
from dataclasses import dataclass


@dataclass
class DependencyStatus:
    """Status of an external command-line tool."""

    name: str
    installed: bool
    version: str | None = None
    path: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.installed and self.error is None


def _check_tool(name: str) -> DependencyStatus:
    path = shutil.which(name)

    if not path:
        return DependencyStatus(
            name=name,
            installed=False,
            error=f"{name} not found in PATH",
        )

    try:
        result = subprocess.run(
            [path, "--version"],
            capture_output=True,
            text=True,
            timeout=10,
        )
        version = result.stdout.strip() or result.stderr.strip()
        # gh prints a multi-line banner; the first line carries the version
        version = version.split("\n")[0] if version else "unknown"

        return DependencyStatus(
            name=name,
            installed=True,
            version=version,
            path=path,
        )

    except subprocess.TimeoutExpired:
        return DependencyStatus(
            name=name,
            installed=True,
            path=path,
            error=f"{name} version check timed out",
        )
    except OSError as e:
        return DependencyStatus(
            name=name,
            installed=True,
            path=path,
            error=str(e),
        )


def check_git() -> DependencyStatus:
    """Check if git is installed."""
    return _check_tool("git")


def check_gh() -> DependencyStatus:
    """Check if the GitHub CLI is installed."""
    return _check_tool("gh")


def check_all() -> list[DependencyStatus]:
    return [check_git(), check_gh()]
