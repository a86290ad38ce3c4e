"""Task Worktrees - isolated git worktrees for tasks and subtasks."""

__version__ = "0.1.0"
