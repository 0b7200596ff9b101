"""CLI commands for branch-wide worktree management (``fa wt``)."""

import sys

import click
from rich.markup import escape
from rich.table import Table

from ..errors import FoundagentError
from ..workspace import WorktreeManager, WorktreeStatus
from .output import _fail, _print_json, _styled, _workspace, console


def _manager(ctx) -> WorktreeManager:
    return WorktreeManager(_workspace(ctx), max_workers=ctx.obj["settings"].max_workers)


@click.group()
def wt():
    """Create, list, switch and remove worktrees for a branch across all repositories."""
    pass


@wt.command()
@click.argument("branch")
@click.option("--from", "source", default=None, help="Branch to start from (default: each repo's default branch)")
@click.option("--force", is_flag=True, help="Replace existing worktrees and branches")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def create(ctx, branch, source, force, as_json):
    """Create a worktree for new branch BRANCH in every repository."""
    try:
        results = _manager(ctx).create(branch, source=source, force=force)
    except FoundagentError as e:
        _fail(e)
        return

    if as_json:
        _print_json([r.to_dict() for r in results])
    else:
        for r in results:
            line = f"{_styled(r.status.value)} {r.name}"
            if r.status == WorktreeStatus.CREATED:
                line += f" {r.branch} [dim](from {r.source_branch})[/]"
            if r.error:
                line += f" ({escape(r.error)})"
            console.print(line)

    if any(r.status == WorktreeStatus.FAILED for r in results):
        sys.exit(1)


@wt.command("list")
@click.argument("branch", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def list_worktrees(ctx, branch, as_json):
    """List worktrees with their status, optionally only for BRANCH."""
    try:
        workspace = _workspace(ctx)
        infos = WorktreeManager(workspace, max_workers=ctx.obj["settings"].max_workers).list_worktrees(branch)
    except FoundagentError as e:
        _fail(e)
        return

    if as_json:
        _print_json({
            "workspace_name": workspace.name,
            "total_worktrees": len(infos),
            "total_branches": len({info.branch for info in infos}),
            "worktrees": [info.to_dict() for info in infos],
        })
        return

    if not infos:
        console.print("[dim]No worktrees found. Create one with 'fa wt create <branch>'[/]")
        return

    table = Table()
    table.add_column("Branch")
    table.add_column("Repository")
    table.add_column("Status")
    table.add_column("Path")
    for info in infos:
        marker = "* " if info.is_current else "  "
        table.add_row(f"{marker}{info.branch}", info.name, _styled(info.status), info.path)
    console.print(table)


wt.add_command(list_worktrees, name="ls")


@wt.command()
@click.argument("branch", required=False)
@click.option("--create", "-c", "create_missing", is_flag=True, help="Create missing worktrees first")
@click.option("--from", "source", default=None, help="Source branch for new worktrees (only with --create)")
@click.option("--quiet", "-q", is_flag=True, help="Suppress warnings")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def switch(ctx, branch, create_missing, source, quiet, as_json):
    """Point the workspace at BRANCH's worktrees. Without BRANCH, list the branches."""
    try:
        workspace = _workspace(ctx)
        manager = WorktreeManager(workspace, max_workers=ctx.obj["settings"].max_workers)
        if not branch:
            branches = manager.available_branches()
            current = workspace.state_store.load().current_branch
        else:
            result = manager.switch(branch, create=create_missing, source=source)
    except FoundagentError as e:
        _fail(e)
        return

    if not branch:
        if as_json:
            _print_json({"branches": branches, "current_branch": current})
        elif not branches:
            console.print("[dim]No branches with worktrees. Create one with 'fa wt create <branch>'[/]")
        else:
            console.print("Available branches:")
            for name in branches:
                console.print(f" {'*' if name == current else ' '} {name}")
        return

    if as_json:
        payload = result.to_dict()
        payload["workspace_file"] = str(workspace.folders_path)
        _print_json(payload)
    elif result.already_on:
        console.print(f"Already on branch '{result.branch}'")
    else:
        for created in result.created:
            line = f"{_styled(created.status.value)} {created.name}"
            if created.error:
                line += f" ({escape(created.error)})"
            console.print(line)
        if result.missing and not quiet:
            console.print(f"[yellow]Branch '{result.branch}' has no worktree in: {', '.join(result.missing)}[/]")
        if result.dirty and not quiet:
            console.print(
                f"[yellow]Uncommitted changes remain on '{result.previous_branch}' in: "
                f"{', '.join(result.dirty)}[/]"
            )
        console.print(f"[green]✓[/] Switched to branch '{result.branch}'")
        console.print(f"[dim]Reload {workspace.folders_path.name} in your editor to see the new worktrees[/]")

    if any(r.status == WorktreeStatus.FAILED for r in result.created):
        sys.exit(1)


@wt.command()
@click.argument("branch")
@click.option("--force", is_flag=True, help="Remove even with changes, or on the default branch")
@click.option("--delete-branch", is_flag=True, help="Also delete the branch once its worktrees are gone")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def remove(ctx, branch, force, delete_branch, as_json):
    """Remove BRANCH's worktree from every repository."""
    try:
        result = _manager(ctx).remove(branch, force=force, delete_branch=delete_branch)
    except FoundagentError as e:
        _fail(e)
        return

    if as_json:
        _print_json(result.to_dict())
    else:
        for r in result.results:
            line = f"{_styled(r.status.value)} {r.name}"
            if r.error:
                line += f" ({escape(r.error)})"
            console.print(line)
        if result.branches_deleted:
            console.print(f"[green]✓[/] Deleted branch '{branch}' in: {', '.join(result.branches_deleted)}")
        for name, error in result.branch_errors.items():
            console.print(f"[yellow]{name}: {escape(error)}[/]")

    if not result.ok:
        sys.exit(1)


wt.add_command(remove, name="rm")
