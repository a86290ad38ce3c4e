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

"""Pull request creation through the GitHub CLI (``gh``)."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from task_worktrees.errors import GhError, MissingDependencyError

logger = logging.getLogger(__name__)

GH_INSTALL_HINT = "Install the GitHub CLI (https://cli.github.com) to create pull requests."


def gh_available() -> bool:
    return shutil.which("gh") is not None


def gh_pr_create(title: str, body: str, base: str, head: str, cwd: Path) -> str:
    """Open a pull request and return its URL.

    ``--head`` is always passed so the result does not depend on what is
    checked out in *cwd*.
    """
    args = [
        "pr", "create",
        "--title", title,
        "--body", body,
        "--base", base,
        "--head", head,
    ]
    logger.debug("gh %s", " ".join(args))
    try:
        result = subprocess.run(
            ["gh"] + args,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise MissingDependencyError("gh", GH_INSTALL_HINT) from e
    except subprocess.CalledProcessError as e:
        raise GhError(args, (e.stderr or "").strip(), e.returncode) from e

    lines = [line.strip() for line in result.stdout.strip().split("\n") if line.strip()]
    if not lines:
        raise GhError(args, "no pull request URL in output")
    return lines[-1]
