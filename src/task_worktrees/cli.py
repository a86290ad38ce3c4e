"""task-worktrees CLI - git worktree lifecycle for task workspaces."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from task_worktrees import __version__
from task_worktrees.checks import check_all
from task_worktrees.completion import CompletionOptions
from task_worktrees.constants import DEFAULT_REMOTE, DEFAULT_TAG
from task_worktrees.errors import ConfigValidationError, GitError, WorktreeError
from task_worktrees.git.repo import git_toplevel
from task_worktrees.manager import WorktreeManager
from task_worktrees.models import WorkspaceRecord
from task_worktrees.paths import parse_full_id, workspace_name
from task_worktrees.provisioner import ProvisionOptions
from task_worktrees.results import WorkspaceConflict

console = Console()

# Exit code for a branch conflict that needs --force or --reuse-branch
EXIT_CONFLICT = 2

# Accepted spellings for `config set`
_SETTING_NAMES = {
    "workspacesRoot": "workspaces_root",
    "workspaces_root": "workspaces_root",
    "defaultSourceBranch": "default_source_branch",
    "default_source_branch": "default_source_branch",
    "autoCreateOnLaunch": "auto_create_on_launch",
    "auto_create_on_launch": "auto_create_on_launch",
}


def _get_manager(ctx: click.Context) -> WorktreeManager:
    """Build the manager lazily so `doctor` and `--help` work outside a repository."""
    manager = ctx.obj.get("manager")
    if manager is not None:
        return manager

    project_root = ctx.obj.get("project_root")
    if project_root is None:
        try:
            project_root = git_toplevel(Path.cwd())
        except GitError:
            console.print("[red]Error:[/red] Not in a git repository")
            console.print("Run inside a repository or pass --project-root")
            raise SystemExit(1)

    try:
        manager = WorktreeManager(project_root, config_path=ctx.obj.get("config_path"))
    except WorktreeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)
    ctx.obj["manager"] = manager
    return manager


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _print_record(name: str, record: WorkspaceRecord) -> None:
    status_color = "green" if record.is_active else "dim"
    console.print(f"[bold]{name}[/bold] [{status_color}]{record.status.value}[/{status_color}]")
    console.print(f"  Path:          {record.path}")
    console.print(f"  Branch:        {record.branch}")
    console.print(f"  Source branch: {record.source_branch}")
    if record.title:
        console.print(f"  Title:         {record.title}")
    console.print(f"  Created:       {record.created_at}")
    console.print(f"  Last accessed: {record.last_accessed}")
    if record.completed_at:
        console.print(f"  Completed:     {record.completed_at}")
    if record.pr_url:
        console.print(f"  Pull request:  {record.pr_url}")


@click.group()
@click.version_option(__version__, prog_name="task-worktrees")
@click.option(
    "--project-root",
    envvar="TASK_WORKTREES_PROJECT_ROOT",
    type=click.Path(file_okay=False, path_type=Path),
    help="Repository root (default: git toplevel of the current directory)",
)
@click.option(
    "--config", "config_path",
    envvar="TASK_WORKTREES_CONFIG",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to worktrees.json (default: <project-root>/.taskmaster/worktrees.json)",
)
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["json", "text"]),
    default="text",
    envvar="TASK_WORKTREES_OUTPUT_FORMAT",
    help="Output format: text (default) or json",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Log level for diagnostics on stderr",
)
@click.pass_context
def main(
    ctx: click.Context,
    project_root: Path | None,
    config_path: Path | None,
    output_format: str,
    log_level: str,
) -> None:
    """Manage git worktrees for tasks and subtasks."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s: %(message)s")

    ctx.ensure_object(dict)
    ctx.obj["project_root"] = project_root.resolve() if project_root else None
    ctx.obj["config_path"] = config_path
    ctx.obj["output_format"] = output_format


@main.command()
@click.argument("task_id")
@click.option("--source", "source_branch", help="Branch to create the workspace from")
@click.option("--title", help="Task title stored with the workspace")
@click.option("--tag", default=DEFAULT_TAG, show_default=True, help="Task tag label")
@click.option("--force", is_flag=True, help="Discard an existing branch and worktree and start fresh")
@click.option("--reuse-branch", is_flag=True, help="Attach to the existing branch and keep its history")
@click.pass_context
def create(
    ctx: click.Context,
    task_id: str,
    source_branch: str | None,
    title: str | None,
    tag: str,
    force: bool,
    reuse_branch: bool,
) -> None:
    """Create (or reuse) the workspace for TASK_ID, e.g. 12 or 12.3."""
    if force and reuse_branch:
        console.print("[red]Error:[/red] --force and --reuse-branch are mutually exclusive")
        raise SystemExit(1)

    try:
        link = parse_full_id(task_id)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    manager = _get_manager(ctx)
    options = ProvisionOptions(source_branch=source_branch, title=title, tag=tag)
    try:
        if force:
            result = manager.force_create_workspace(link, options)
        elif reuse_branch:
            result = manager.use_existing_branch(link, options)
        else:
            result = manager.get_or_create_workspace(link, options)
    except WorktreeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    if ctx.obj["output_format"] == "json":
        _print_json(result.to_dict())
    elif isinstance(result, WorkspaceConflict):
        console.print(
            f"[yellow]Conflict:[/yellow] branch {result.branch_name} is checked out at "
            f"{result.branch_in_use_at}"
        )
        console.print(
            "Re-run with --force to discard it or --reuse-branch to keep it "
            "(after removing the other worktree)"
        )
    elif result.existing:
        console.print(f"[cyan]Reusing[/cyan] {result.name} at {result.record.path}")
    else:
        note = " (existing branch)" if result.reused_branch else ""
        console.print(f"[green]Created[/green] {result.name} at {result.record.path}{note}")

    if isinstance(result, WorkspaceConflict):
        raise SystemExit(EXIT_CONFLICT)


@main.command("list")
@click.option("--task", "task_id", help="Only show subtask workspaces of this task")
@click.pass_context
def list_workspaces(ctx: click.Context, task_id: str | None) -> None:
    """List recorded workspaces."""
    manager = _get_manager(ctx)
    try:
        if task_id:
            records = {
                workspace_name(r.link): r for r in manager.get_subtask_workspaces(task_id)
            }
        else:
            records = manager.get_all_workspaces()
    except WorktreeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    if ctx.obj["output_format"] == "json":
        _print_json({name: r.to_dict() for name, r in records.items()})
        return

    if not records:
        console.print("[dim]No workspaces[/dim]")
        return

    table = Table(title="Workspaces")
    table.add_column("Name", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Branch")
    table.add_column("Source")
    table.add_column("Exists")
    table.add_column("Path", style="dim")

    for name, record in sorted(records.items()):
        exists = Path(record.path).exists()
        table.add_row(
            name,
            "[green]active[/green]" if record.is_active else record.status.value,
            record.branch,
            record.source_branch,
            "yes" if exists else "[red]missing[/red]",
            record.path,
        )

    console.print(table)


@main.command()
@click.argument("name")
@click.pass_context
def show(ctx: click.Context, name: str) -> None:
    """Show the record of workspace NAME."""
    manager = _get_manager(ctx)
    record = manager.get_workspace(name)
    if record is None:
        console.print(f"[red]Error:[/red] Workspace not found: {name}")
        raise SystemExit(1)

    if ctx.obj["output_format"] == "json":
        _print_json(record.to_dict())
    else:
        _print_record(name, record)


@main.command()
@click.argument("name")
@click.pass_context
def path(ctx: click.Context, name: str) -> None:
    """Print the directory of workspace NAME.

    Falls back to the path the workspace would get if it is not recorded.
    """
    manager = _get_manager(ctx)
    record = manager.get_workspace(name)
    click.echo(record.path if record else str(manager.resolve_workspace_path(name)))


@main.command()
@click.argument("name")
@click.option("--pr", "create_pr", is_flag=True, help="Commit, push and open a pull request first")
@click.option("--title", "pr_title", help="Pull request title (default: '<id>: <title>')")
@click.option("--body", "pr_body", help="Pull request body (replaces the default template)")
@click.option("--description", default="", help="Text appended to the default PR body")
@click.option("--remote", default=DEFAULT_REMOTE, show_default=True, help="Remote to push to")
@click.pass_context
def complete(
    ctx: click.Context,
    name: str,
    create_pr: bool,
    pr_title: str | None,
    pr_body: str | None,
    description: str,
    remote: str,
) -> None:
    """Mark workspace NAME completed, optionally opening a pull request."""
    manager = _get_manager(ctx)
    options = CompletionOptions(
        create_pr=create_pr,
        pr_title=pr_title,
        pr_body=pr_body,
        pr_description=description,
        remote=remote,
    )
    try:
        record = manager.complete_workspace(name, options)
    except WorktreeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    if ctx.obj["output_format"] == "json":
        _print_json(record.to_dict())
        return

    console.print(f"[green]Completed[/green] {name}")
    if record.pr_url:
        console.print(f"Pull request: {record.pr_url}")


@main.command("switch-source")
@click.argument("name")
@click.argument("branch")
@click.pass_context
def switch_source(ctx: click.Context, name: str, branch: str) -> None:
    """Make future pull requests for NAME target BRANCH."""
    manager = _get_manager(ctx)
    try:
        record = manager.switch_source_branch(name, branch)
    except WorktreeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    if ctx.obj["output_format"] == "json":
        _print_json(record.to_dict())
    else:
        console.print(f"[green]OK:[/green] {name} now targets {branch}")


@main.command()
@click.pass_context
def prune(ctx: click.Context) -> None:
    """Drop records whose workspace directory no longer exists."""
    manager = _get_manager(ctx)
    try:
        removed = manager.prune_invalid_workspaces()
    except WorktreeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    if ctx.obj["output_format"] == "json":
        _print_json({"removedRecords": removed})
    else:
        console.print(f"[green]OK:[/green] Removed {removed} stale record(s)")


@main.command()
@click.pass_context
def cleanup(ctx: click.Context) -> None:
    """Prune stale records and delete orphaned task branches."""
    manager = _get_manager(ctx)
    result = manager.cleanup_stale_workspaces()

    if ctx.obj["output_format"] == "json":
        _print_json(result.to_dict())
    elif result.success:
        console.print(f"[green]OK:[/green] Removed {result.removed_records} stale record(s)")
        for branch in result.deleted_branches:
            console.print(f"  Deleted branch {branch}")
    else:
        console.print(f"[red]Error:[/red] {result.error}")

    if not result.success:
        raise SystemExit(1)


@main.group()
def config() -> None:
    """Workspace settings."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the current settings as JSON."""
    manager = _get_manager(ctx)
    _print_json(manager.settings.to_dict())


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set a setting: workspacesRoot, defaultSourceBranch or autoCreateOnLaunch."""
    field = _SETTING_NAMES.get(key)
    if field is None:
        console.print(f"[red]Error:[/red] Unknown setting '{key}'")
        console.print("Valid settings: workspacesRoot, defaultSourceBranch, autoCreateOnLaunch")
        raise SystemExit(1)

    converted: str | bool = value
    if field == "auto_create_on_launch":
        try:
            converted = click.BOOL.convert(value, None, ctx)
        except click.BadParameter:
            console.print(f"[red]Error:[/red] {key} must be true or false, got '{value}'")
            raise SystemExit(1)

    manager = _get_manager(ctx)
    try:
        settings = manager.update_settings(**{field: converted})
    except ConfigValidationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    if ctx.obj["output_format"] == "json":
        _print_json(settings.to_dict())
    else:
        console.print(f"[green]OK:[/green] {key} = {converted}")


@main.command()
def doctor() -> None:
    """Check that git and the GitHub CLI are available."""
    table = Table(title="Dependency Status")
    table.add_column("Dependency", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Version")
    table.add_column("Path")
    table.add_column("Notes")

    git, gh = check_all()

    table.add_row(
        "git",
        "[green]OK[/green]" if git.ok else "[red]FAIL[/red]",
        git.version or "-",
        git.path or "-",
        git.error or "(required)",
    )
    if gh.ok:
        gh_status = "[green]OK[/green]"
    elif gh.installed:
        gh_status = "[yellow]WARN[/yellow]"
    else:
        gh_status = "[dim]-[/dim]"
    table.add_row(
        "gh",
        gh_status,
        gh.version or "-",
        gh.path or "-",
        gh.error or "(needed for complete --pr)",
    )

    console.print(table)

    if git.ok:
        console.print("\n[green]All required dependencies OK[/green]")
    else:
        console.print("\n[red]git is required[/red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
